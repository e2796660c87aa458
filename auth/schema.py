"""
auth/schema.py -- GraphQL surface for password auth and token links.

get_extend_graphql_schema() returns a SchemaExtension (SDL + ariadne
bindables) that core.schema.build_schema() layers onto the list schema.
Operation names are derived from the list key (see auth/factory.py):

  Query     authenticatedItem: AuthenticatedItem
  Mutation  authenticate<List>WithPassword(<identity>, <secret>)
            send<List>PasswordResetLink(<identity>)
            send<List>MagicAuthLink(<identity>)
            redeem<List>PasswordResetToken(<identity>, token, <secret>)
            redeem<List>MagicAuthToken(<identity>, token)
            endSession

Resolvers are thin: they build the service objects from the AuthConfig and
the request Context, call them, and translate the outcome. Failed password
and magic-auth logins raise AuthenticationFailed (a GraphQLError) so the
result type can stay non-nullable {token, item}; the token-link mutations
never raise and always answer {success, message}.
"""

from __future__ import annotations

from typing import Optional

from ariadne import MutationType, QueryType, UnionType
from graphql import GraphQLError

from auth.delivery import deliver_token, resolve_send_fn
from auth.models import MAGIC_AUTH, PASSWORD_RESET, AuthConfig, ResolvedGqlNames, SendTokenFn
from auth.service import Authenticator, TokenIssuer, TokenRedeemer, validate_secret_field
from core.schema import SchemaExtension


class AuthenticationFailed(GraphQLError):
    """A login mutation failed; message is already masked when required."""

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message, extensions={"code": "AUTHENTICATION_FAILED", "reason": code or "failure"})


def auth_type_defs(config: AuthConfig, gql_names: ResolvedGqlNames) -> str:
    list_key = config.list_key
    identity = config.identity_field
    secret = config.secret_field
    n = gql_names
    return f"""
union AuthenticatedItem = {list_key}

extend type Query {{
  authenticatedItem: AuthenticatedItem
}}

extend type Mutation {{
  {n.authenticate_item_with_password}({identity}: String!, {secret}: String!): {n.item_authentication_with_password_result}!
  {n.send_item_password_reset_link}({identity}: String!): {n.send_item_password_reset_link_result}!
  {n.send_item_magic_auth_link}({identity}: String!): {n.send_item_magic_auth_link_result}!
  {n.redeem_item_password_reset_token}({identity}: String!, token: String!, {secret}: String!): {n.redeem_item_password_reset_token_result}!
  {n.redeem_item_magic_auth_token}({identity}: String!, token: String!): {n.redeem_item_magic_auth_token_result}!
  endSession: Boolean!
}}

type {n.item_authentication_with_password_result} {{
  token: String!
  item: {list_key}!
}}

type {n.send_item_password_reset_link_result} {{
  success: Boolean!
  message: String!
}}

type {n.send_item_magic_auth_link_result} {{
  success: Boolean!
  message: String!
}}

type {n.redeem_item_password_reset_token_result} {{
  success: Boolean!
  message: String!
}}

type {n.redeem_item_magic_auth_token_result} {{
  token: String!
  item: {list_key}!
}}
"""


def get_extend_graphql_schema(config: AuthConfig, gql_names: ResolvedGqlNames) -> SchemaExtension:
    list_key = config.list_key
    send_password_reset_link = resolve_send_fn(config, PASSWORD_RESET)
    send_magic_auth_link = resolve_send_fn(config, MAGIC_AUTH)

    query = QueryType()
    mutation = MutationType()
    authenticated_item = UnionType("AuthenticatedItem")

    @mutation.field(gql_names.authenticate_item_with_password)
    async def resolve_authenticate_with_password(_, info, **args):
        context = info.context
        result = await Authenticator(config, context.lists[list_key]).attempt(
            args[config.identity_field], args[config.secret_field]
        )
        if not result.success:
            raise AuthenticationFailed(result.message, result.code)
        token = await context.start_session(list_key, result.item["id"])
        return {"token": token, "item": result.item}

    async def _send_link(info, token_type: str, identity: str, send_token: SendTokenFn) -> dict:
        context = info.context
        store = context.lists[list_key]
        validate_secret_field(config, store)
        result = await TokenIssuer(config, store).issue(token_type, identity, context)
        if result.success:
            await deliver_token(send_token, item_id=result.item_id, identity=identity, token=result.token)
        return {"success": result.success, "message": result.message}

    @mutation.field(gql_names.send_item_password_reset_link)
    async def resolve_send_password_reset_link(_, info, **args):
        return await _send_link(info, PASSWORD_RESET, args[config.identity_field], send_password_reset_link)

    @mutation.field(gql_names.send_item_magic_auth_link)
    async def resolve_send_magic_auth_link(_, info, **args):
        return await _send_link(info, MAGIC_AUTH, args[config.identity_field], send_magic_auth_link)

    @mutation.field(gql_names.redeem_item_password_reset_token)
    async def resolve_redeem_password_reset_token(_, info, **args):
        context = info.context
        result = await TokenRedeemer(config, context.lists[list_key]).redeem(
            PASSWORD_RESET,
            args[config.identity_field],
            args["token"],
            context,
            new_secret=args[config.secret_field],
        )
        return {"success": result.success, "message": result.message}

    @mutation.field(gql_names.redeem_item_magic_auth_token)
    async def resolve_redeem_magic_auth_token(_, info, **args):
        context = info.context
        result = await TokenRedeemer(config, context.lists[list_key]).redeem(
            MAGIC_AUTH, args[config.identity_field], args["token"], context
        )
        if not result.success:
            raise AuthenticationFailed(result.message, result.code)
        token = await context.start_session(list_key, result.item["id"])
        return {"token": token, "item": result.item}

    @mutation.field("endSession")
    async def resolve_end_session(_, info):
        await info.context.end_session()
        return True

    @query.field("authenticatedItem")
    async def resolve_authenticated_item(_, info):
        session = info.context.session
        if not session:
            return None
        item_id, session_list_key = session.get("itemId"), session.get("listKey")
        if not isinstance(item_id, str) or session_list_key != list_key:
            return None
        store = info.context.lists.get(session_list_key)
        if store is None:
            return None
        items = store.find({"id": item_id})
        if not items:
            return None
        return {**items[0], "__typename": session_list_key}

    @authenticated_item.type_resolver
    def resolve_authenticated_item_type(obj, *_):
        return obj["__typename"]

    return SchemaExtension(
        type_defs=auth_type_defs(config, gql_names),
        bindables=[query, mutation, authenticated_item],
    )
