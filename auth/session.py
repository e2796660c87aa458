"""
auth/session.py -- Stateless session capability backed by signed JWTs.

The session store is deliberately not designed here: a session is just a
signed (listKey, itemId) pair with an expiry, carried in a cookie or an
Authorization: Bearer header. Ending a session clears the cookie; a copied
bearer token stays valid until it expires.

Lookup priority mirrors the HTTP dependency helpers:
  1. Session cookie -- set by the GraphQL login mutations.
  2. Authorization: Bearer <token> header -- API clients.
"""

from __future__ import annotations

from typing import Any

from starlette.requests import Request

from auth.tokens import create_session_token, decode_session_token
from core.config import get_settings


class SessionStrategy:
    """Implements core.context.SessionPort with auth.tokens JWTs."""

    def __init__(self, max_age: int = 0) -> None:
        self.max_age = max_age

    def start(self, list_key: str, item_id: Any) -> str:
        return create_session_token(list_key, str(item_id), expire_seconds=self.max_age)

    def get(self, request: Request) -> dict | None:
        """Return {"listKey", "itemId"} for the request, or None. Never raises."""
        token: str | None = request.cookies.get(get_settings().session_cookie_name)
        if not token:
            auth_header = request.headers.get("Authorization", "")
            if auth_header.startswith("Bearer "):
                token = auth_header[7:]
        if not token:
            return None
        return decode_session_token(token)
