"""
User store: lookups and writes on the ``users`` table.

Driver errors are wrapped in :class:`StoreError` (logged with the operation
name, never the payload); unique-index violations surface as
:class:`ConflictError` because the signup check-then-insert is not atomic.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from knowmark.core.exceptions import ConflictError, StoreError
from knowmark.models.user import User

logger = logging.getLogger(__name__)


class SqlUserStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @asynccontextmanager
    async def _operation(self, name: str) -> AsyncIterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error("User store operation '%s' failed", name, exc_info=True)
            raise StoreError(f"user store operation '{name}' failed") from exc

    async def _find_one(self, name: str, *criteria) -> User | None:
        async with self._operation(name):
            result = await self.session.execute(select(User).where(*criteria))
            return result.scalar_one_or_none()

    async def find_by_id(self, user_id: uuid.UUID) -> User | None:
        return await self._find_one("find_by_id", User.id == user_id)

    async def find_by_email(self, email: str) -> User | None:
        return await self._find_one("find_by_email", User.email == email)

    async def find_by_username(self, username: str) -> User | None:
        return await self._find_one("find_by_username", User.username == username)

    async def insert(self, user: User) -> User:
        self.session.add(user)
        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            logger.info("Duplicate user rejected by unique index")
            raise ConflictError(
                "Email or username already registered.",
                email=user.email,
                username=user.username,
            ) from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error("User store operation 'insert' failed", exc_info=True)
            raise StoreError("user store operation 'insert' failed") from exc
        return user

    async def delete_by_id(self, user_id: uuid.UUID) -> User | None:
        """Remove and return the user, or ``None`` if no such id."""
        async with self._operation("delete_by_id"):
            user = await self.session.get(User, user_id)
            if user is None:
                return None
            await self.session.delete(user)
            await self.session.commit()
            return user
