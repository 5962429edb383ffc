"""
Knowmark: application entry point.

This is the **only** file that assembles the app.  All business logic
lives in the `api/`, `services/`, `models/`, and `core/` packages.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from knowmark.api.v1.api import api_router
from knowmark.core.config import settings
from knowmark.core.exceptions import register_exception_handlers
from knowmark.core.keys import load_key_material
from knowmark.db.base import Base
from knowmark.db.session import engine

# Ensure all models are imported so metadata.create_all can see them
from knowmark.models.user import User  # noqa: F401

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Fatal on failure: never serve with ephemeral or missing keys.
    logger.info("Initializing security salts and keys...")
    app.state.key_material = load_key_material(
        settings.SECURITY_DIR,
        generate=settings.SECURITY_GENERATE,
        key_size=settings.RSA_KEY_SIZE,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")

    logger.info("Knowmark v%s started", settings.VERSION)
    yield
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Quiz & classroom platform backend",
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS (credentials needed for the auth cookie)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "PUT", "POST", "DELETE"],
        allow_headers=["*"],
    )

    # Global exception handlers (problem+json, no stack-trace leakage)
    register_exception_handlers(application)

    # Mount API v1
    application.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return application


app = create_app()
