"""
Authorization gate: turns a raw ``jwt_auth`` cookie into a :class:`Principal`
and checks it against a role threshold or resource ownership.

Kept free of any HTTP machinery; ``knowmark.api.v1.deps`` wires it into
FastAPI.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from knowmark.core.exceptions import AuthError, InvalidTokenError
from knowmark.core.roles import Role
from knowmark.core.security import SessionToken, decode_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """An identity proven by a verified, unexpired session token."""

    user_id: uuid.UUID
    role: Role

    @classmethod
    def from_token(cls, token: SessionToken) -> Principal:
        return cls(user_id=token.user_id, role=token.role)


def authenticate(raw_token: str | None, public_key_pem: bytes) -> Principal:
    if not raw_token:
        logger.debug("No auth cookie on request")
        raise AuthError("No JWT auth cookie.")

    try:
        token = decode_token(raw_token, public_key_pem)
    except InvalidTokenError as exc:
        logger.debug("Rejected auth cookie: %s", exc)
        raise AuthError("JWT cookie was malformed.") from None

    logger.debug("Decoded session token for user: %s", token.user_id)
    return Principal.from_token(token)


def require_role(principal: Principal, minimum: Role) -> Principal:
    if principal.role < minimum:
        raise AuthError(f"Requires the '{minimum}' role or higher.")
    return principal


def require_owner_or_admin(principal: Principal, owner_id: uuid.UUID) -> Principal:
    if principal.user_id != owner_id and principal.role < Role.ADMIN:
        raise AuthError("Only the owner or an admin can do this.")
    return principal
