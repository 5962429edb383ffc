"""
Password hashing (SHA-256 + bcrypt) and session tokens (RS256 JWT in a cookie).
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from fastapi import Response
from jose import JWTError, jwt
from passlib.hash import bcrypt as _bcrypt
from passlib.utils.binary import bcrypt64

from knowmark.core.exceptions import InvalidTokenError
from knowmark.core.roles import Role

if TYPE_CHECKING:
    from knowmark.models.user import User

AUTH_COOKIE_NAME = "jwt_auth"
ALGORITHM = "RS256"
TOKEN_LIFETIME = timedelta(weeks=1)

# bcrypt's checksum encodes 23 bytes of the 24-byte ciphertext.
PASSWORD_HASH_SIZE = 23


# ── Passwords ───────────────────────────────────────────────────────
@dataclass(frozen=True, eq=False)
class PasswordHash:
    """Raw bcrypt output. Compared in constant time, never sent to clients.

    Holds the 23 bytes encoded in the bcrypt checksum. Standard bcrypt drops
    the last byte of its 24-byte ciphertext, so that byte is never available.
    """

    digest: bytes = field(repr=False)

    def __post_init__(self) -> None:
        if len(self.digest) != PASSWORD_HASH_SIZE:
            raise ValueError(f"password hash must be {PASSWORD_HASH_SIZE} bytes")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PasswordHash):
            return NotImplemented
        return hmac.compare_digest(self.digest, other.digest)

    def __hash__(self) -> int:
        return hash(self.digest)

    def __bytes__(self) -> bytes:
        return self.digest


def _prehash(plain: str) -> bytes:
    # Fixed-length, NUL-free input; bcrypt would otherwise truncate at 72 bytes.
    return base64.b64encode(hashlib.sha256(plain.encode("utf-8")).digest())


def hash_password(plain: str, salt: bytes, *, rounds: int) -> PasswordHash:
    """Deterministically hash *plain* under the deployment-wide *salt*."""
    handler = _bcrypt.using(
        ident="2b",
        rounds=rounds,
        salt=bcrypt64.encode_bytes(salt).decode("ascii"),
    )
    checksum = handler.from_string(handler.hash(_prehash(plain))).checksum
    return PasswordHash(bcrypt64.decode_bytes(checksum.encode("ascii")))


def verify_password(plain: str, expected: PasswordHash, salt: bytes, *, rounds: int) -> bool:
    return hash_password(plain, salt, rounds=rounds) == expected


# ── Session tokens ──────────────────────────────────────────────────
def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def _from_timestamp(value: Any) -> datetime:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError("numeric date must be an integer")
    return datetime.fromtimestamp(value, tz=timezone.utc)


@dataclass(frozen=True)
class SessionToken:
    """Claims of a signed session: who the user is and what they may do."""

    issued_at: datetime
    expires_at: datetime
    user_id: uuid.UUID
    role: Role

    @classmethod
    def new(cls, user: User, *, now: datetime | None = None) -> SessionToken:
        issued_at = (now or _utcnow()).replace(microsecond=0)
        return cls(
            issued_at=issued_at,
            expires_at=issued_at + TOKEN_LIFETIME,
            user_id=user.id,
            role=Role(user.role),
        )

    def claims(self) -> dict[str, Any]:
        return {
            "iat": int(self.issued_at.timestamp()),
            "exp": int(self.expires_at.timestamp()),
            "user": str(self.user_id),
            "role": int(self.role),
        }

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> SessionToken:
        try:
            return cls(
                issued_at=_from_timestamp(claims["iat"]),
                expires_at=_from_timestamp(claims["exp"]),
                user_id=uuid.UUID(str(claims["user"])),
                role=Role.parse(claims["role"]),
            )
        except (KeyError, TypeError, ValueError, OverflowError) as exc:
            raise InvalidTokenError("token claims are malformed") from exc


def encode_token(token: SessionToken, private_key_pem: bytes) -> str:
    return jwt.encode(token.claims(), private_key_pem.decode("ascii"), algorithm=ALGORITHM)


def decode_token(raw: str, public_key_pem: bytes) -> SessionToken:
    """Verify signature and expiry of *raw* and return its claims.

    The accepted algorithm is pinned; the token header is never trusted.
    Every failure collapses into :class:`InvalidTokenError`.
    """
    try:
        claims = jwt.decode(
            raw,
            public_key_pem.decode("ascii"),
            algorithms=[ALGORITHM],
            options={"require_iat": True, "require_exp": True},
        )
    except (JWTError, ValueError, TypeError) as exc:
        raise InvalidTokenError(type(exc).__name__) from exc

    token = SessionToken.from_claims(claims)
    if token.expires_at < _utcnow():
        raise InvalidTokenError("token expired")
    return token


def set_auth_cookie(response: Response, token: SessionToken, private_key_pem: bytes) -> None:
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=encode_token(token, private_key_pem),
        expires=token.expires_at,
        path="/",
        secure=True,
        httponly=True,
        samesite="lax",
    )


def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(
        AUTH_COOKIE_NAME,
        path="/",
        secure=True,
        httponly=True,
        samesite="lax",
    )
