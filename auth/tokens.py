"""
auth/tokens.py -- Bearer token generation and session JWT utilities.

Security design decisions:
  Reset / magic-auth tokens: generate_token() draws from the secrets module
       (os.urandom underneath), never from random. The alphabet is restricted
       to [A-Za-z0-9] so tokens survive URLs and email clients unescaped.
       20 characters of that alphabet is ~119 bits of entropy.

  Session JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and
       carry the list key, the item id and an expiry. Verification returns
       None on any failure -- the caller treats that as "no session".

  SECRET_KEY: sourced from core.config.get_settings(). The Settings class
       validates the key at startup [M6].

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import base64
import re
import secrets
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from core.config import get_settings

_ALGORITHM = "HS256"
_NON_ALPHANUMERIC = re.compile(r"[^A-Za-z0-9]")

TOKEN_LENGTH = 20


# ---------------------------------------------------------------------------
# Reset / magic-auth tokens
# ---------------------------------------------------------------------------


def generate_token(length: int = TOKEN_LENGTH) -> str:
    """Return exactly `length` random characters from [A-Za-z0-9].

    Base64 of `length` random bytes yields ~4/3 * length characters; '+', '/'
    and '=' are stripped, and in the rare case that leaves too few characters
    another batch is drawn.
    """
    if length <= 0:
        raise ValueError("Token length must be positive.")
    chars = ""
    while len(chars) < length:
        chars += _NON_ALPHANUMERIC.sub("", base64.b64encode(secrets.token_bytes(length)).decode("ascii"))
    return chars[:length]


# ---------------------------------------------------------------------------
# Session JWT encode / decode
# ---------------------------------------------------------------------------


def create_session_token(list_key: str, item_id: str, expire_seconds: int = 0) -> str:
    """Encode a signed JWT binding a session to one item of one list.

    Args:
        list_key:       List the item belongs to (e.g. "User").
        item_id:        The item's id, stored as a string claim.
        expire_seconds: Session duration. If 0 (default), uses
                        Settings.session_max_age.
    """
    settings = get_settings()
    duration = expire_seconds if expire_seconds > 0 else settings.session_max_age
    payload = {
        "sub": str(item_id),
        "listKey": list_key,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=duration),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=_ALGORITHM)


def decode_session_token(token: str) -> dict | None:
    """Decode and verify a session JWT. Returns {"listKey", "itemId"} or None.

    Returning None (rather than raising) keeps the caller simple: any invalid
    or expired token is treated as no session at all.
    """
    try:
        payload = jwt.decode(token, get_settings().secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if "sub" not in payload or "listKey" not in payload:
        return None
    return {"listKey": payload["listKey"], "itemId": payload["sub"]}


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, token: str) -> None:
    """Write the session JWT as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- CSRF mitigation for the
        GraphQL endpoint, which only accepts POST for mutations.
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age: matches the JWT expiry so both expire together.
    """
    settings = get_settings()
    response.set_cookie(
        settings.session_cookie_name,
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
        max_age=settings.session_max_age,
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(get_settings().session_cookie_name)
