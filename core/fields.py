"""
core/fields.py -- Field types for list configs.

A list is a named record type; its fields decide three things:
  1. the SQL column the ListStore creates for it (column_type())
  2. the GraphQL scalar used in the list's public type (graphql_type)
  3. who may read or write it (access)

PasswordField is also the secret capability the auth package relies on:
compare() and generate_hash() are coroutines so callers can await them
without blocking the event loop on bcrypt's deliberate slowness.

Password hashing uses bcrypt directly rather than passlib[bcrypt]: passlib's
wrap-bug detection builds a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

Layer rule: core/ may not import from api/ or auth/.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import bcrypt
from sqlalchemy import String, Text
from sqlalchemy.types import TypeEngine

AccessFn = Callable[..., bool]


def _allow_all(*args: Any, **kwargs: Any) -> bool:
    return True


def deny_all(*args: Any, **kwargs: Any) -> bool:
    """Access function that closes a field to every non-sudo caller."""
    return False


@dataclass
class Field:
    """Base field definition. Subclasses pick the column and GraphQL types."""

    is_required: bool = False
    access: AccessFn = _allow_all
    graphql_type: str = "String"

    def column_type(self) -> TypeEngine:
        return Text()

    @property
    def is_readable(self) -> bool:
        """Closed fields (access always False) are left out of the public type."""
        return self.access is not deny_all


@dataclass
class TextField(Field):
    is_unique: bool = False

    def column_type(self) -> TypeEngine:
        return String(255) if self.is_unique else Text()


@dataclass
class TimestampField(Field):
    """ISO 8601 UTC timestamp stored as text (same convention as the stores)."""

    def column_type(self) -> TypeEngine:
        return String(32)


@dataclass
class PasswordField(Field):
    """bcrypt-hashed secret. Never exposed through GraphQL, only its presence."""

    rounds: int = 12

    @property
    def is_readable(self) -> bool:
        return False

    def hash_sync(self, plain: str) -> str:
        """Return a bcrypt hash of the given plaintext.

        Inputs longer than 72 bytes are silently truncated by bcrypt (a known
        bcrypt limitation). The HTTP layer caps input length well below that.
        """
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    async def generate_hash(self, plain: str) -> str:
        return await asyncio.to_thread(self.hash_sync, plain)

    async def compare(self, plain: str, hashed: str) -> bool:
        """Return True if plain matches the stored bcrypt hash.

        bcrypt.checkpw compares in constant time. Malformed hashes (e.g. a
        value written outside this field) count as a mismatch.
        """

        def _check() -> bool:
            try:
                return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
            except ValueError:
                return False

        return await asyncio.to_thread(_check)


# ---------------------------------------------------------------------------
# Factories -- the spelling list configs use
# ---------------------------------------------------------------------------


def text(*, is_required: bool = False, is_unique: bool = False, access: AccessFn = _allow_all) -> TextField:
    return TextField(is_required=is_required, is_unique=is_unique, access=access)


def timestamp(*, is_required: bool = False, access: AccessFn = _allow_all) -> TimestampField:
    return TimestampField(is_required=is_required, access=access)


def password(*, is_required: bool = False, rounds: int = 12) -> PasswordField:
    return PasswordField(is_required=is_required, rounds=rounds)
