"""
auth/dependencies.py -- Request helpers that turn an HTTP request into a Context.

try_get_session() is the soft lookup (returns None on any failure): the
session token must verify AND still name an existing item of a configured
list. A token for a deleted item is treated exactly like no token.

build_context() is what the GraphQL route and the admin page middleware use;
it never raises for a bad session.

Layer rule: may import starlette (request objects) but not api/.
"""

from __future__ import annotations

from starlette.requests import Request

from core.context import Context


def try_get_session(request: Request) -> dict | None:
    """Return {"listKey", "itemId"} for a valid session, None otherwise."""
    session = request.app.state.sessions.get(request)
    if session is None:
        return None
    store = request.app.state.db.lists.get(session["listKey"])
    if store is None or not store.find({"id": session["itemId"]}):
        return None
    return session


def build_context(request: Request) -> Context:
    return Context(
        lists=request.app.state.db.lists,
        sessions=request.app.state.sessions,
        session=try_get_session(request),
    )
