"""
User credential lifecycle: signup, login, lookup and deletion.

Coordinates the password hasher, the role model and session tokens over a
user store. Nothing here knows about HTTP; endpoints translate the returned
tokens into cookies.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable

from fastapi.concurrency import run_in_threadpool

from knowmark.core.exceptions import ConflictError, NotFoundError
from knowmark.core.gate import Principal, require_owner_or_admin, require_role
from knowmark.core.keys import KeyMaterial
from knowmark.core.roles import Role
from knowmark.core.security import PasswordHash, SessionToken, hash_password
from knowmark.db.user_store import SqlUserStore
from knowmark.models.user import User
from knowmark.schemas.user import UserLogin, UserSignup, bad_login

logger = logging.getLogger(__name__)


class UserService:
    def __init__(
        self,
        store: SqlUserStore,
        keys: KeyMaterial,
        *,
        rounds: int,
        admin_usernames: Iterable[str] = (),
    ) -> None:
        self.store = store
        self.keys = keys
        self.rounds = rounds
        self.admin_usernames = frozenset(admin_usernames)

    async def _hash(self, password: str) -> PasswordHash:
        # bcrypt is deliberately slow; keep it off the event loop.
        return await run_in_threadpool(
            hash_password, password, self.keys.salt, rounds=self.rounds
        )

    async def signup(self, data: UserSignup) -> tuple[User, SessionToken]:
        """Create a user, or log in when the same email and password sign up again."""
        data.validate_shape()

        existing = await self.store.find_by_email(data.email)
        if existing is not None:
            if await self._hash(data.password) == existing.pw_hash:
                logger.info("Repeated signup treated as login for user %s", existing.id)
                return existing, SessionToken.new(existing)
            raise ConflictError(
                "Email already registered.", title="Bad email.", email=data.email
            )

        if await self.store.find_by_username(data.username) is not None:
            raise ConflictError(
                "Username already used.", title="Bad username.", username=data.username
            )

        role = Role.ADMIN if data.username in self.admin_usernames else Role.NORMAL
        user = User(
            id=data.id,
            email=data.email,
            username=data.username,
            pw_hash=await self._hash(data.password),
            role=role,
        )
        logger.info("Creating a new user with UUID: %s (role=%s)", user.id, role)
        await self.store.insert(user)
        return user, SessionToken.new(user)

    async def login(self, data: UserLogin) -> tuple[User, SessionToken]:
        is_email = data.is_email
        data.validate_shape()

        if is_email:
            user = await self.store.find_by_email(data.identifier)
        else:
            user = await self.store.find_by_username(data.identifier)

        # Same failure whether the user is missing or the password is wrong.
        pw_hash = await self._hash(data.password)
        if user is None or pw_hash != user.pw_hash:
            logger.debug("Rejected login attempt")
            raise bad_login(is_email)

        logger.info("User %s logged in", user.id)
        return user, SessionToken.new(user)

    async def current(self, principal: Principal) -> User:
        """Return the principal's own record; no role is required to read it."""
        user = await self.store.find_by_id(principal.user_id)
        if user is None:
            raise NotFoundError(title="User doesn't exist.", id=str(principal.user_id))
        return user

    async def get(self, principal: Principal, user_id: uuid.UUID) -> User:
        require_role(principal, Role.NORMAL)
        user = await self.store.find_by_id(user_id)
        if user is None:
            raise NotFoundError(title="User doesn't exist.", id=str(user_id))
        return user

    async def delete(self, principal: Principal, user_id: uuid.UUID) -> tuple[User, bool]:
        """Delete *user_id*; the flag tells whether the principal deleted themself."""
        require_owner_or_admin(principal, user_id)
        removed = await self.store.delete_by_id(user_id)
        if removed is None:
            raise NotFoundError(title="User doesn't exist.", id=str(user_id))
        logger.info("Deleted user %s", removed.id)
        return removed, principal.user_id == user_id
