"""Pydantic schemas for signup, login and user responses."""

from __future__ import annotations

import uuid

from pydantic import BaseModel, Field

from knowmark.core.exceptions import AuthError, ValidationError
from knowmark.core.roles import Role
from knowmark.models.user import User, user_id_for

USERNAME_MIN, USERNAME_MAX = 5, 32
SIGNUP_PASSWORD_MIN, SIGNUP_PASSWORD_MAX = 8, 1024  # exclusive min
LOGIN_IDENTIFIER_MIN, LOGIN_IDENTIFIER_MAX = 5, 32
LOGIN_PASSWORD_MIN, LOGIN_PASSWORD_MAX = 8, 50


def _nbytes(value: str) -> int:
    return len(value.encode("utf-8"))


def bad_login(is_email: bool) -> AuthError:
    """The one failure for every login problem; never says which part was wrong."""
    return AuthError(title="Bad email or password." if is_email else "Bad username or password.")


class UserSignup(BaseModel):
    email: str
    username: str
    password: str = Field(repr=False)

    @property
    def id(self) -> uuid.UUID:
        return user_id_for(self.email, self.username)

    def validate_shape(self) -> None:
        if "@" not in self.email:
            raise ValidationError(
                "Not a valid e-mail address.", title="Bad email.", email=self.email
            )
        if _nbytes(self.username) < USERNAME_MIN:
            raise ValidationError(
                f"Username must be at least {USERNAME_MIN} characters (bytes) long.",
                title="Bad username.",
                username=self.username,
            )
        if _nbytes(self.username) > USERNAME_MAX:
            raise ValidationError(
                f"Username can't be longer than {USERNAME_MAX} (bytes) characters.",
                title="Bad username.",
                username=self.username,
            )
        if _nbytes(self.password) <= SIGNUP_PASSWORD_MIN:
            raise ValidationError(
                f"Password must be longer than {SIGNUP_PASSWORD_MIN} characters (bytes).",
                title="Bad password.",
            )
        if _nbytes(self.password) > SIGNUP_PASSWORD_MAX:
            raise ValidationError(
                f"Passwords longer than {SIGNUP_PASSWORD_MAX} characters aren't supported.",
                title="Bad password.",
            )


class UserLogin(BaseModel):
    identifier: str
    password: str = Field(repr=False)

    @property
    def is_email(self) -> bool:
        return "@" in self.identifier

    def validate_shape(self) -> None:
        if not (
            LOGIN_IDENTIFIER_MIN <= _nbytes(self.identifier) <= LOGIN_IDENTIFIER_MAX
            and LOGIN_PASSWORD_MIN <= _nbytes(self.password) <= LOGIN_PASSWORD_MAX
        ):
            raise bad_login(self.is_email)


class UserRead(BaseModel):
    """What clients may see of a user: never the email or password hash."""

    id: uuid.UUID
    username: str
    user_role: str

    @classmethod
    def from_user(cls, user: User) -> UserRead:
        return cls(id=user.id, username=user.username, user_role=str(Role(user.role)))
