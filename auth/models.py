"""
auth/models.py -- Domain dataclasses for the auth add-on.

Pattern: Data class (pure data container, zero logic). AuthConfig is the
explicit configuration object every auth component receives at construction;
nothing in auth/ reads module-level state for list key, field names or
delivery callbacks.

Result types are tagged by `success`. Failures carry the masked or specific
message (see auth/service.py) plus the machine code for logging and tests.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Optional, Union

# Token types select which ancillary field triple is written/read:
# <type>Token, <type>IssuedAt, <type>RedeemedAt.
PASSWORD_RESET = "passwordReset"
MAGIC_AUTH = "magicAuth"
TOKEN_TYPES = (PASSWORD_RESET, MAGIC_AUTH)

SendTokenFn = Callable[..., Union[None, Awaitable[None]]]


@dataclass
class TokenLinkConfig:
    """Delivery callback and lifetime for one token type.

    send_token is called as send_token(item_id=..., identity=..., token=...)
    and may be a plain function or a coroutine function.
    """

    send_token: SendTokenFn
    tokens_valid_for_mins: Optional[int] = None  # None -> Settings default


@dataclass
class InitFirstItemConfig:
    """Fields collected by createInitial<List>, e.g. ["name", "email", "password"]."""

    fields: list[str]
    extra_create_input: dict[str, Any] = field(default_factory=dict)
    skip_signup: bool = False


@dataclass
class AuthGqlNames:
    """Overrides for the generated operation names. Unset -> derived from list key."""

    authenticate_item_with_password: Optional[str] = None
    send_item_password_reset_link: Optional[str] = None
    send_item_magic_auth_link: Optional[str] = None
    redeem_item_password_reset_token: Optional[str] = None
    redeem_item_magic_auth_token: Optional[str] = None
    create_initial_item: Optional[str] = None


@dataclass(frozen=True)
class ResolvedGqlNames:
    create_initial_item: str
    create_initial_item_input: str
    authenticate_item_with_password: str
    item_authentication_with_password_result: str
    send_item_password_reset_link: str
    send_item_password_reset_link_result: str
    send_item_magic_auth_link: str
    send_item_magic_auth_link_result: str
    redeem_item_password_reset_token: str
    redeem_item_password_reset_token_result: str
    redeem_item_magic_auth_token: str
    redeem_item_magic_auth_token_result: str


@dataclass
class AuthConfig:
    """Everything create_auth() needs to know about the auth list.

    protect_identities defaults to None, meaning "use Settings.protect_identities".
    password_reset_link / magic_auth_link left unset fall back to the logging
    delivery in auth/delivery.py.
    """

    list_key: str
    identity_field: str
    secret_field: str
    protect_identities: Optional[bool] = None
    password_reset_link: Optional[TokenLinkConfig] = None
    magic_auth_link: Optional[TokenLinkConfig] = None
    init_first_item: Optional[InitFirstItemConfig] = None
    gql_names: AuthGqlNames = field(default_factory=AuthGqlNames)


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


@dataclass
class AuthenticationResult:
    success: bool
    message: str
    item: Optional[dict[str, Any]] = None
    code: Optional[str] = None


@dataclass
class TokenIssueResult:
    success: bool
    message: str
    item_id: Any = None
    token: Optional[str] = None
    code: Optional[str] = None


@dataclass
class RedeemResult:
    success: bool
    message: str
    item: Optional[dict[str, Any]] = None
    code: Optional[str] = None
