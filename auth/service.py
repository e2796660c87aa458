"""
auth/service.py -- Password authentication and reset/magic-auth token lifecycle.

Components:
  find_identity()   -- exactly-one lookup by identity value, shared below.
  Authenticator     -- identity + secret -> AuthenticationResult.
  TokenIssuer       -- writes a fresh token + issuedAt for one item.
  TokenRedeemer     -- checks a token (match, single use, expiry) and stamps
                       redeemedAt.

Security design decisions:
  protect_identities: every failure message is replaced with one generic
       string so callers cannot tell "no such identity" from "wrong secret".
       Success messages are never masked. With protection off, the message is
       "[<prefix>:<code>] <explanation>" for debugging.

  Timing equalization: with protection on, every failure that has not
       already paid a secret operation runs one dummy generate_hash() before
       returning: failed lookups (none, several, no secret/token stored) and,
       in TokenRedeemer, wrong, spent or expired tokens. The work factor is
       whatever the secret field uses, so no pre-computed hash is needed. This
       narrows the response-time gap between unknown identities and wrong
       secrets; it does not remove it (lookup latency and hash cost variance
       still show).

  Persistence errors: logged in full here, returned to the caller only as a
       generic "[<type>:error] Internal error encountered".

Every component receives the AuthConfig and the ListStore explicitly; the
writes go through context.sudo() because callers are typically anonymous.
"""

from __future__ import annotations

import hmac
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from auth.models import (
    PASSWORD_RESET,
    TOKEN_TYPES,
    AuthConfig,
    AuthenticationResult,
    RedeemResult,
    TokenIssueResult,
)
from auth.tokens import TOKEN_LENGTH, generate_token
from core.config import get_settings
from core.context import Context
from core.store import ListStore

logger = logging.getLogger("listauth.auth")

DUMMY_PLAINTEXT = "simulated-password-to-counter-timing-attack"

IDENTITY_NOT_FOUND = "identity:notFound"
IDENTITY_MULTIPLE_FOUND = "identity:multipleFound"
SECRET_NOT_SET = "secret:notSet"
SECRET_MISMATCH = "secret:mismatch"
TOKEN_NOT_SET = "token:notSet"
TOKEN_MISMATCH = "token:mismatch"
TOKEN_REDEEMED = "token:redeemed"
TOKEN_EXPIRED = "token:expired"


class AuthConfigError(ValueError):
    """Auth is configured against a list or field that cannot support it.

    Raised during setup (validate_config / with_auth) and by the secret field
    capability check. Never caught by this package.
    """


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def resolve_protect_identities(config: AuthConfig) -> bool:
    if config.protect_identities is None:
        return get_settings().protect_identities
    return config.protect_identities


# ---------------------------------------------------------------------------
# Secret field capability check
# ---------------------------------------------------------------------------


def validate_secret_field(config: AuthConfig, store: ListStore):
    """Return the secret field, or raise AuthConfigError if it cannot hash and compare."""
    field = store.config.fields.get(config.secret_field)
    if field is None:
        raise AuthConfigError(
            f"createAuth for list {config.list_key!r} is using a secretField of "
            f"{config.secret_field!r} but the list has no such field"
        )
    for capability in ("compare", "generate_hash"):
        if not callable(getattr(field, capability, None)):
            raise AuthConfigError(
                "Field type specified does not support required functionality. "
                f"createAuth for list {config.list_key!r} is using a secretField of "
                f"{config.secret_field!r} but field type does not provide the required "
                f"{capability}() functionality."
            )
    return field


# ---------------------------------------------------------------------------
# Identity resolver
# ---------------------------------------------------------------------------


@dataclass
class IdentityLookup:
    items: list[dict[str, Any]]
    code: Optional[str]  # None when exactly one item matched

    @property
    def item(self) -> Optional[dict[str, Any]]:
        return self.items[0] if self.code is None else None


def find_identity(store: ListStore, identity_field: str, value: Any) -> IdentityLookup:
    items = store.find({identity_field: value})
    if not items:
        return IdentityLookup(items, IDENTITY_NOT_FOUND)
    if len(items) > 1:
        return IdentityLookup(items, IDENTITY_MULTIPLE_FOUND)
    return IdentityLookup(items, None)


class _IdentityMessages:
    """Builds failure messages and applies the protect_identities mask."""

    def __init__(self, config: AuthConfig, store: ListStore) -> None:
        self.config = config
        self.store = store
        self.protect_identities = resolve_protect_identities(config)

    def explain(self, code: str, token_type: str = "") -> str:
        identity_field = self.config.identity_field
        explanations = {
            IDENTITY_NOT_FOUND: f"The {identity_field} value provided didn't identify any {self.store.plural_label}",
            IDENTITY_MULTIPLE_FOUND: (
                f"The {identity_field} value provided identified more than one {self.store.label}"
            ),
            SECRET_NOT_SET: (
                f"The {self.store.label} identified has no {self.config.secret_field} set "
                "so can not be authenticated"
            ),
            SECRET_MISMATCH: f"The {self.config.secret_field} provided is incorrect",
            TOKEN_NOT_SET: f"The {self.store.label} identified has no {token_type} token issued",
            TOKEN_MISMATCH: "The token provided is incorrect",
            TOKEN_REDEEMED: "The token provided has already been redeemed",
            TOKEN_EXPIRED: "The token provided has expired",
        }
        return explanations[code]

    def failure_message(self, prefix: str, code: str, generic: str, token_type: str = "") -> str:
        if self.protect_identities:
            return generic
        return f"[{prefix}:{code}] {self.explain(code, token_type)}"


# ---------------------------------------------------------------------------
# Authenticator
# ---------------------------------------------------------------------------


class Authenticator(_IdentityMessages):
    """Validate an identity/secret pair against the auth list.

    Usage:
        result = await Authenticator(config, store).attempt("a@x.com", "pw1")
        if result.success:
            item = result.item
    """

    GENERIC_FAILURE = "[passwordAuth:failure] Authentication failed"

    def __init__(self, config: AuthConfig, store: ListStore) -> None:
        super().__init__(config, store)
        self.secret = validate_secret_field(config, store)

    async def attempt(self, identity: Any, secret: str) -> AuthenticationResult:
        lookup = find_identity(self.store, self.config.identity_field, identity)
        code = lookup.code
        if code is None and not lookup.item.get(self.config.secret_field):
            code = SECRET_NOT_SET
        if code is not None:
            # Equalize timing -- do NOT return before the dummy hash
            if self.protect_identities:
                await self.secret.generate_hash(DUMMY_PLAINTEXT)
            return self._failure(code)

        item = lookup.item
        if not await self.secret.compare(secret, item[self.config.secret_field]):
            return self._failure(SECRET_MISMATCH)
        return AuthenticationResult(success=True, message="Authentication successful", item=item)

    def _failure(self, code: str) -> AuthenticationResult:
        logger.debug("Password authentication failed on %s: %s", self.store.key, code)
        return AuthenticationResult(
            success=False,
            message=self.failure_message("passwordAuth", code, self.GENERIC_FAILURE),
            code=code,
        )


# ---------------------------------------------------------------------------
# Token issuer
# ---------------------------------------------------------------------------


def _check_token_type(token_type: str) -> None:
    if token_type not in TOKEN_TYPES:
        raise ValueError(f"Unknown token type {token_type!r}; expected one of {TOKEN_TYPES}")


class TokenIssuer(_IdentityMessages):
    """Generate and persist a password-reset or magic-auth token for one item.

    Issuing again overwrites the previous token of that type and clears its
    redeemedAt. There is no locking: two concurrent issues for the same
    identity race and the last write wins.
    """

    def __init__(self, config: AuthConfig, store: ListStore, now: Callable[[], datetime] = _utcnow) -> None:
        super().__init__(config, store)
        self.now = now

    async def issue(self, token_type: str, identity: Any, context: Context) -> TokenIssueResult:
        _check_token_type(token_type)
        lookup = find_identity(self.store, self.config.identity_field, identity)
        if lookup.code is not None:
            return TokenIssueResult(
                success=False,
                message=self.failure_message(
                    token_type, lookup.code, f"[{token_type}:failure] Token generation failed"
                ),
                code=lookup.code,
            )

        item = lookup.item
        token = generate_token(TOKEN_LENGTH)
        errors = self.store.update_item(
            context.sudo(),
            item["id"],
            {
                f"{token_type}Token": token,
                f"{token_type}IssuedAt": self.now().isoformat(),
                f"{token_type}RedeemedAt": None,
            },
        )
        if errors:
            logger.error(
                "Could not store %s token for %s %s: %s",
                token_type,
                self.store.key,
                item["id"],
                "; ".join(f"{e.code}: {e.message}" for e in errors),
            )
            return TokenIssueResult(
                success=False,
                message=f"[{token_type}:error] Internal error encountered",
                code="error",
            )
        logger.info("Issued %s token for %s %s", token_type, self.store.key, item["id"])
        return TokenIssueResult(success=True, message="Token generated!", item_id=item["id"], token=token)


# ---------------------------------------------------------------------------
# Token redeemer
# ---------------------------------------------------------------------------


class TokenRedeemer(_IdentityMessages):
    """Check a token for one identity and mark it redeemed.

    Check order: identity lookup, token stored, token matches
    (hmac.compare_digest), not yet redeemed, not expired. Mismatch is checked
    before the redeemed/expired state so a caller without the token learns
    nothing about the stored one.

    With protection on, each of those failures costs one dummy hash, so a
    known identity with a bad token answers no faster than an unknown one.

    Password-reset redemption writes the new secret hash in the same update
    that stamps redeemedAt, so a token can never be spent without the secret
    changing (or vice versa).
    """

    def __init__(self, config: AuthConfig, store: ListStore, now: Callable[[], datetime] = _utcnow) -> None:
        super().__init__(config, store)
        self.secret = validate_secret_field(config, store)
        self.now = now

    def valid_for(self, token_type: str) -> timedelta:
        settings = get_settings()
        if token_type == PASSWORD_RESET:
            link, default = self.config.password_reset_link, settings.password_reset_token_minutes
        else:
            link, default = self.config.magic_auth_link, settings.magic_auth_token_minutes
        minutes = link.tokens_valid_for_mins if link and link.tokens_valid_for_mins is not None else default
        return timedelta(minutes=minutes)

    async def redeem(
        self,
        token_type: str,
        identity: Any,
        token: str,
        context: Context,
        new_secret: Optional[str] = None,
    ) -> RedeemResult:
        _check_token_type(token_type)
        if new_secret is not None and token_type != PASSWORD_RESET:
            raise ValueError("new_secret only applies to passwordReset tokens")

        lookup = find_identity(self.store, self.config.identity_field, identity)
        code = lookup.code
        if code is None and not lookup.item.get(f"{token_type}Token"):
            code = TOKEN_NOT_SET
        if code is None:
            code = self._check_token(token_type, lookup.item, token)
        if code is not None:
            # Every failure pays one hash, found or not
            if self.protect_identities:
                await self.secret.generate_hash(DUMMY_PLAINTEXT)
            return self._failure(token_type, code)

        item = lookup.item
        data: dict[str, Any] = {f"{token_type}RedeemedAt": self.now().isoformat()}
        if new_secret is not None:
            data[self.config.secret_field] = await self.secret.generate_hash(new_secret)
        errors = self.store.update_item(context.sudo(), item["id"], data)
        if errors:
            logger.error(
                "Could not redeem %s token for %s %s: %s",
                token_type,
                self.store.key,
                item["id"],
                "; ".join(f"{e.code}: {e.message}" for e in errors),
            )
            return RedeemResult(
                success=False, message=f"[{token_type}:error] Internal error encountered", code="error"
            )
        logger.info("Redeemed %s token for %s %s", token_type, self.store.key, item["id"])
        return RedeemResult(success=True, message="Token redeemed", item=item)

    def _check_token(self, token_type: str, item: dict[str, Any], token: str) -> Optional[str]:
        stored = item[f"{token_type}Token"]
        if not hmac.compare_digest(stored.encode("utf-8"), token.encode("utf-8")):
            return TOKEN_MISMATCH
        if item.get(f"{token_type}RedeemedAt"):
            return TOKEN_REDEEMED
        issued_at = item.get(f"{token_type}IssuedAt")
        if not issued_at or self.now() > datetime.fromisoformat(issued_at) + self.valid_for(token_type):
            return TOKEN_EXPIRED
        return None

    def _failure(self, token_type: str, code: str) -> RedeemResult:
        logger.debug("%s redemption failed on %s: %s", token_type, self.store.key, code)
        return RedeemResult(
            success=False,
            message=self.failure_message(
                token_type, code, f"[{token_type}:failure] Token redemption failed", token_type
            ),
            code=code,
        )
