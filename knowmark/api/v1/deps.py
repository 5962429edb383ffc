"""
FastAPI dependencies: auth guards, key material and database session.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Optional

from fastapi import Cookie, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from knowmark.core.config import settings
from knowmark.core.exceptions import AuthError
from knowmark.core.gate import Principal, authenticate, require_role
from knowmark.core.keys import KeyMaterial
from knowmark.core.roles import Role
from knowmark.core.security import AUTH_COOKIE_NAME
from knowmark.db.session import async_session_factory
from knowmark.db.user_store import SqlUserStore
from knowmark.services.users import UserService


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Key material ────────────────────────────────────────────────────
def get_key_material(request: Request) -> KeyMaterial:
    """Key material loaded by the app lifespan."""
    keys: KeyMaterial | None = getattr(request.app.state, "key_material", None)
    if keys is None:
        raise RuntimeError("key material is not loaded; the app lifespan did not run")
    return keys


def get_user_service(
    db: AsyncSession = Depends(get_db),
    keys: KeyMaterial = Depends(get_key_material),
) -> UserService:
    return UserService(
        SqlUserStore(db),
        keys,
        rounds=settings.BCRYPT_ROUNDS,
        admin_usernames=settings.ADMIN_USERNAMES,
    )


# ── Auth dependencies ───────────────────────────────────────────────
async def get_principal(
    jwt_auth: Optional[str] = Cookie(default=None, alias=AUTH_COOKIE_NAME),
    keys: KeyMaterial = Depends(get_key_material),
) -> Principal:
    """Verify the session cookie; fail closed with 401."""
    return authenticate(jwt_auth, keys.public_key_pem)


async def get_optional_principal(
    jwt_auth: Optional[str] = Cookie(default=None, alias=AUTH_COOKIE_NAME),
    keys: KeyMaterial = Depends(get_key_material),
) -> Principal | None:
    """Like :func:`get_principal` but yields ``None`` when unauthenticated."""
    try:
        return authenticate(jwt_auth, keys.public_key_pem)
    except AuthError:
        return None


class RoleRequired:
    """Dependency enforcing a minimum role, e.g. ``Depends(RoleRequired(Role.AUTHOR))``."""

    def __init__(self, minimum: Role) -> None:
        self.minimum = minimum

    async def __call__(self, principal: Principal = Depends(get_principal)) -> Principal:
        return require_role(principal, self.minimum)


require_member = RoleRequired(Role.NORMAL)
