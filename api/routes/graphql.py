"""
api/routes/graphql.py -- POST /api/graphql, the single entry point for auth.

The request body is the standard GraphQL envelope ({query, variables,
operationName}). Execution goes through ariadne's graphql() coroutine with a
fresh core.context.Context per request; the schema is built once in
api/main.py and kept on app.state.

Session cookies are applied here, on the way out: resolvers only record a
started or ended session on the context (Context.session_changes).

Security:
  [H2] The whole endpoint is rate-limited (AUTH_RATE_LIMIT, per client IP).
  [M5] Cache-Control: no-store on every response -- they can carry session
       tokens and user records.
  Error detail (stack traces) only appears in responses when DEBUG=true.
"""

from __future__ import annotations

from ariadne import graphql
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.limiter import auth_rate_limit, limiter
from api.models import GraphQLRequest
from auth.dependencies import build_context
from auth.tokens import clear_session_cookie, set_session_cookie
from core.config import get_settings

router = APIRouter()


@limiter.limit(auth_rate_limit)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/graphql")
async def graphql_endpoint(request: Request, body: GraphQLRequest) -> JSONResponse:
    """Execute one GraphQL operation against the app schema.

    Returns 200 when the operation ran (resolver errors are reported in the
    "errors" list, as GraphQL specifies) and 400 when the document itself
    failed to parse or validate.
    """
    context = build_context(request)
    success, result = await graphql(
        request.app.state.schema,
        body.model_dump(by_alias=True, exclude_none=True),
        context_value=context,
        debug=get_settings().debug,
        logger="listauth.graphql",
    )
    resp = JSONResponse(result, status_code=200 if success else 400)
    if "token" in context.session_changes:
        set_session_cookie(resp, context.session_changes["token"])
    elif context.session_changes.get("ended"):
        clear_session_cookie(resp)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp
