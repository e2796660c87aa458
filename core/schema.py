"""
core/schema.py -- GraphQL schema assembly for the configured lists.

The base schema is generated from the AppConfig: one object type per list
with its readable fields, plus a root Query and Mutation. Extensions (such as
the one auth/ produces) contribute SDL using `extend type Query` /
`extend type Mutation` and their own ariadne bindables.

The SDL is written as plain strings, the ariadne convention (type_defs), and
turned into an executable schema with make_executable_schema().

Layer rule: no imports from api/ or auth/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ariadne import ObjectType, QueryType, make_executable_schema
from graphql import GraphQLSchema

from core.fields import PasswordField
from core.models import AppConfig


@dataclass
class SchemaExtension:
    """SDL plus the ariadne bindables that implement it."""

    type_defs: str
    bindables: list[Any] = field(default_factory=list)


_BASE_TYPE_DEFS = """
type Query {
  health: String!
}

type Mutation {
  _empty: Boolean
}
"""


def list_type_defs(app_config: AppConfig) -> str:
    """Return SDL for every list: `type <Key> { id: ID! ... }`.

    Fields closed by access control are left out entirely. Password fields
    are never readable; <name>_is_set reports whether one is stored.
    """
    blocks = [_BASE_TYPE_DEFS]
    for key, list_config in app_config.lists.items():
        lines = ["  id: ID!"]
        for name, f in list_config.fields.items():
            if isinstance(f, PasswordField):
                lines.append(f"  {name}_is_set: Boolean!")
            elif f.is_readable:
                lines.append(f"  {name}: {f.graphql_type}")
        blocks.append("type %s {\n%s\n}\n" % (key, "\n".join(lines)))
    return "\n".join(blocks)


def _is_set_resolver(field_name: str):
    def resolve(obj: dict, info) -> bool:
        return bool(obj.get(field_name))

    return resolve


def list_bindables(app_config: AppConfig) -> list[Any]:
    query = QueryType()
    query.set_field("health", lambda *_: "ok")
    bindables: list[Any] = [query]
    for key, list_config in app_config.lists.items():
        object_type = ObjectType(key)
        for name, f in list_config.fields.items():
            if isinstance(f, PasswordField):
                object_type.set_field(f"{name}_is_set", _is_set_resolver(name))
        bindables.append(object_type)
    return bindables


def build_schema(app_config: AppConfig) -> GraphQLSchema:
    """Compose the base list schema with every configured extension."""
    type_defs = [list_type_defs(app_config)]
    bindables = list_bindables(app_config)
    for extension in app_config.extend_graphql_schema:
        type_defs.append(extension.type_defs)
        bindables.extend(extension.bindables)
    return make_executable_schema(type_defs, *bindables)
