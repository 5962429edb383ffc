"""
User roles: a small total order of privilege levels.

The integer values are part of the token wire format and must never be
renumbered: tokens issued before a deploy are still read after it.

    0 none < 1 normal < 2 author < 3 admin
"""

from __future__ import annotations

from enum import IntEnum


class Role(IntEnum):
    NONE = 0
    NORMAL = 1
    AUTHOR = 2
    ADMIN = 3

    def __str__(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, value: int | str) -> Role:
        """Accept the integer wire value or the lowercase name."""
        if isinstance(value, bool):
            raise ValueError(f"Invalid role: {value!r}")
        if isinstance(value, int):
            return cls(value)
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"Invalid role: {value!r}") from None
        raise ValueError(f"Invalid role: {value!r}")


def can_author(role: Role) -> bool:
    """Whether a user with *role* may create quizzes."""
    return role >= Role.AUTHOR
