"""
core/models.py -- Application configuration dataclasses.

Pattern: Data class (pure data container, near-zero logic). The app config is
the single object every layer reads: the store builds tables from
ListConfig.fields, the schema layer builds GraphQL types from it, and the
auth package extends it through with_auth().

Layer rule: no imports from api/ or auth/.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from core.fields import Field

if TYPE_CHECKING:
    from core.context import Context
    from core.schema import SchemaExtension


@dataclass
class ListConfig:
    """A named record type. The key doubles as the GraphQL type name (User)."""

    fields: dict[str, Field]
    label: str = ""
    plural: str = ""

    def singular_label(self, key: str) -> str:
        return self.label or key

    def plural_label(self, key: str) -> str:
        return self.plural or f"{self.singular_label(key)}s"


@dataclass(frozen=True)
class PageRedirect:
    """Result of an admin page middleware: send the browser elsewhere."""

    to: str
    kind: str = "redirect"


PageMiddleware = Callable[[str, bool, "Context"], Awaitable[Optional[PageRedirect]]]


@dataclass
class AdminConfig:
    """Admin UI integration points. The UI itself is rendered elsewhere."""

    public_pages: list[str] = field(default_factory=list)
    page_middleware: Optional[PageMiddleware] = None
    enable_session_item: bool = False


@dataclass
class AppConfig:
    """Top-level application configuration.

    extend_graphql_schema holds the extensions layered on top of the list
    types, applied in order by core.schema.build_schema().
    """

    lists: dict[str, ListConfig]
    admin: Optional[AdminConfig] = None
    extend_graphql_schema: list[SchemaExtension] = field(default_factory=list)
