"""
User model: credentials & role.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Column, Integer, LargeBinary, String, TypeDecorator, Uuid

from knowmark.core.roles import Role
from knowmark.core.security import PASSWORD_HASH_SIZE, PasswordHash
from knowmark.db.base import Base


def user_id_for(email: str, username: str) -> uuid.UUID:
    """Content-addressed id: the same (email, username) always maps to one id."""
    return uuid.uuid5(uuid.NAMESPACE_OID, email + username)


class PasswordHashType(TypeDecorator):
    impl = LargeBinary(PASSWORD_HASH_SIZE)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return bytes(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return PasswordHash(bytes(value))


class RoleType(TypeDecorator):
    """Stores :class:`Role` as its stable integer value."""

    impl = Integer
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return int(Role.parse(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Role(value)


class User(Base):
    __tablename__ = "users"

    id: uuid.UUID = Column(Uuid, primary_key=True)  # type: ignore[assignment]
    email: str = Column(String(320), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    username: str = Column(String(32), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    pw_hash: PasswordHash = Column(PasswordHashType, nullable=False)  # type: ignore[assignment]
    role: Role = Column(  # type: ignore[assignment]
        RoleType,
        nullable=False,
        default=Role.NORMAL,
        server_default=str(int(Role.NORMAL)),
    )  # none | normal | author | admin

    def __repr__(self) -> str:
        return f"User(id={self.id}, username={self.username!r}, role={self.role})"
