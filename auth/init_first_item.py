"""
auth/init_first_item.py -- createInitial<List> mutation for first-run setup.

While the auth list is empty, anyone may create its first item (typically the
first admin) and is signed in as that item. Once one item exists the mutation
refuses: the count is re-checked inside the resolver, not trusted from the
admin redirect middleware.

Two concurrent first-run requests can both see count() == 0. A unique
identity field turns the loser into an IntegrityError; the resolver reports
that as the same "already exists" error.
"""

from __future__ import annotations

import logging
from typing import Any

from ariadne import MutationType
from graphql import GraphQLError
from sqlalchemy.exc import IntegrityError

from auth.models import AuthConfig, ResolvedGqlNames
from core.fields import PasswordField
from core.schema import SchemaExtension

logger = logging.getLogger("listauth.auth")

_ALREADY_INITIALISED = "Initial items can only be created when no items exist in that list"


def init_first_item_type_defs(config: AuthConfig, gql_names: ResolvedGqlNames, graphql_types: dict[str, str]) -> str:
    inputs = "\n".join(f"  {name}: {graphql_types[name]}" for name in config.init_first_item.fields)
    return f"""
input {gql_names.create_initial_item_input} {{
{inputs}
}}

extend type Mutation {{
  {gql_names.create_initial_item}(data: {gql_names.create_initial_item_input}!): {gql_names.item_authentication_with_password_result}!
}}
"""


def init_first_item_schema_extension(
    config: AuthConfig,
    gql_names: ResolvedGqlNames,
    graphql_types: dict[str, str],
) -> SchemaExtension:
    """Build the createInitial<List> extension.

    graphql_types maps each collected field to its input scalar; it comes from
    the list config, which is only known once with_auth() sees the app config.
    """
    list_key = config.list_key
    init = config.init_first_item
    mutation = MutationType()

    @mutation.field(gql_names.create_initial_item)
    async def resolve_create_initial_item(_, info, data: dict[str, Any]):
        context = info.context
        store = context.lists[list_key]
        if store.count() != 0:
            raise GraphQLError(_ALREADY_INITIALISED)

        values = {name: data.get(name) for name in init.fields}
        for name, value in list(values.items()):
            field = store.config.fields[name]
            if isinstance(field, PasswordField) and value is not None:
                values[name] = await field.generate_hash(value)
        values.update(init.extra_create_input)

        try:
            item = store.create_item(context.sudo(), values)
        except IntegrityError as exc:
            logger.warning("createInitial%s lost a race or violated a constraint: %s", list_key, exc)
            raise GraphQLError(_ALREADY_INITIALISED) from exc

        logger.info("Created initial %s %s", list_key, item["id"])
        token = await context.start_session(list_key, item["id"])
        return {"token": token, "item": item}

    return SchemaExtension(
        type_defs=init_first_item_type_defs(config, gql_names, graphql_types),
        bindables=[mutation],
    )
