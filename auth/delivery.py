"""
auth/delivery.py -- Default token delivery.

Real deployments pass their own send_token (email, SMS...) through
TokenLinkConfig. The fallback below only logs the payload, token included,
which is fine on a developer machine and wrong anywhere else; it says so
every time it runs.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any

from auth.models import PASSWORD_RESET, AuthConfig, SendTokenFn

logger = logging.getLogger("listauth.delivery")


def build_default_send_fn(link_type: str) -> SendTokenFn:
    def send_token(*, item_id: Any, identity: str, token: str) -> None:
        logger.warning(
            "Sending %s link (logging delivery, NOT for production): item_id=%s identity=%s token=%s",
            link_type,
            item_id,
            identity,
            token,
        )

    return send_token


def resolve_send_fn(config: AuthConfig, token_type: str) -> SendTokenFn:
    """The configured send_token for token_type, or the logging fallback."""
    if token_type == PASSWORD_RESET:
        link, link_type = config.password_reset_link, "Password Reset"
    else:
        link, link_type = config.magic_auth_link, "Magic Auth"
    return link.send_token if link is not None else build_default_send_fn(link_type)


async def deliver_token(send_token: SendTokenFn, *, item_id: Any, identity: str, token: str) -> None:
    """Call send_token, awaiting it when it is a coroutine function."""
    result = send_token(item_id=item_id, identity=identity, token=token)
    if inspect.isawaitable(result):
        await result
