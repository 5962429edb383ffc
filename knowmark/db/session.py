"""
Async SQLAlchemy engine & session factory backing the Knowmark user store.

One engine per process; request handlers get sessions through
``knowmark.api.v1.deps.get_db`` and tests swap in their own factory.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from knowmark.core.config import settings

engine_args = {
    "echo": False,
    "pool_pre_ping": True,
}

if "postgresql" in settings.DATABASE_URL:
    engine_args.update(
        {
            "pool_size": 20,
            "max_overflow": 10,
            "pool_recycle": 300,
        }
    )

engine = create_async_engine(
    settings.DATABASE_URL,
    **engine_args,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

