"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware) and in
api/routes/graphql.py (to apply the per-route limit with @limiter.limit()).

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.

The GraphQL endpoint carries every login and token-link mutation, so one
limit on it bounds password guessing and reset-link flooding alike. The
limit string is read from Settings on each request (AUTH_RATE_LIMIT).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def auth_rate_limit() -> str:
    return get_settings().auth_rate_limit
