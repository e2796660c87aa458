"""
API request and response models for the listauth HTTP layer.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in core/ and auth/, which own the
internal representation. The GraphQL payload itself is validated by the
schema; GraphQLRequest only checks the envelope.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class GraphQLRequest(BaseModel):
    """Body of POST /api/graphql.

    max_length on query keeps pathological documents away from the parser;
    the limit is generous for hand-written operations.
    """

    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(min_length=1, max_length=20_000)
    variables: Optional[dict[str, Any]] = None
    operation_name: Optional[str] = Field(default=None, alias="operationName", max_length=200)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
