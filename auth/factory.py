"""
auth/factory.py -- create_auth(): turns an AuthConfig into app config pieces.

Pattern: Facade. The returned Auth object bundles everything an application
needs to wire auth in by hand, plus with_auth() which does the wiring:

  auth.gql_names              resolved operation/type names for the list
  auth.fields                 the six token fields to add to the auth list
  auth.admin                  public pages + redirect middleware for the admin UI
  auth.extensions(app)        GraphQL schema extensions (auth + first item)
  auth.validate_config(app)   setup-time checks; raises AuthConfigError
  auth.with_auth(app)         validated, merged copy of the app config

Usage:
    auth = create_auth(AuthConfig(list_key="User", identity_field="email", secret_field="password"))
    app_config = auth.with_auth(AppConfig(lists={"User": ListConfig(fields={...})}))
"""

from __future__ import annotations

import dataclasses
import logging
import re
from typing import Optional

from auth.init_first_item import init_first_item_schema_extension
from auth.models import TOKEN_TYPES, AuthConfig, ResolvedGqlNames
from auth.schema import get_extend_graphql_schema
from auth.service import AuthConfigError
from core.context import Context
from core.fields import Field, deny_all, text, timestamp
from core.models import AdminConfig, AppConfig, PageRedirect
from core.schema import SchemaExtension

logger = logging.getLogger("listauth.auth")

ADMIN_PUBLIC_PAGES = ["/signin", "/init"]

_LIST_KEY_RE = re.compile(r"^[A-Z][A-Za-z0-9]*$")


def resolve_gql_names(config: AuthConfig) -> ResolvedGqlNames:
    key = config.list_key
    custom = config.gql_names
    return ResolvedGqlNames(
        create_initial_item=custom.create_initial_item or f"createInitial{key}",
        create_initial_item_input=f"CreateInitial{key}Input",
        authenticate_item_with_password=custom.authenticate_item_with_password or f"authenticate{key}WithPassword",
        item_authentication_with_password_result=f"{key}AuthenticationWithPasswordResult",
        send_item_password_reset_link=custom.send_item_password_reset_link or f"send{key}PasswordResetLink",
        send_item_password_reset_link_result=f"send{key}PasswordResetLinkResult",
        send_item_magic_auth_link=custom.send_item_magic_auth_link or f"send{key}MagicAuthLink",
        send_item_magic_auth_link_result=f"send{key}MagicAuthLinkResult",
        redeem_item_password_reset_token=custom.redeem_item_password_reset_token or f"redeem{key}PasswordResetToken",
        redeem_item_password_reset_token_result=f"redeem{key}PasswordResetTokenResult",
        redeem_item_magic_auth_token=custom.redeem_item_magic_auth_token or f"redeem{key}MagicAuthToken",
        redeem_item_magic_auth_token_result=f"redeem{key}MagicAuthTokenResult",
    )


def token_fields() -> dict[str, Field]:
    """<type>Token / <type>IssuedAt / <type>RedeemedAt for each token type.

    All six are closed to normal access; only sudo contexts write them and
    they never appear in the list's GraphQL type.
    """
    fields: dict[str, Field] = {}
    for token_type in TOKEN_TYPES:
        fields[f"{token_type}Token"] = text(access=deny_all)
        fields[f"{token_type}IssuedAt"] = timestamp(access=deny_all)
        fields[f"{token_type}RedeemedAt"] = timestamp(access=deny_all)
    return fields


class Auth:
    def __init__(self, config: AuthConfig) -> None:
        self.config = config
        self.gql_names = resolve_gql_names(config)
        self.fields = token_fields()
        self.admin = AdminConfig(
            public_pages=list(ADMIN_PUBLIC_PAGES),
            page_middleware=self.page_middleware,
            enable_session_item=True,
        )

    # ------------------------------------------------------------------
    # Admin UI
    # ------------------------------------------------------------------

    async def page_middleware(self, path: str, is_valid_session: bool, context: Context) -> Optional[PageRedirect]:
        """Decide where an admin page request should go. None means "serve it".

        Redirects:
          - from /signin (or /init) to / when a valid session is present
          - to /init when init_first_item is configured and the list is empty
          - to /signin when no valid session is present
        """
        has_init = self.config.init_first_item is not None
        if is_valid_session:
            if path == "/signin" or (has_init and path == "/init"):
                return PageRedirect(to="/")
            return None
        if has_init and context.lists[self.config.list_key].count() == 0:
            if path != "/init":
                return PageRedirect(to="/init")
            return None
        if path != "/signin":
            return PageRedirect(to="/signin")
        return None

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def extensions(self, app_config: AppConfig) -> list[SchemaExtension]:
        extensions = [get_extend_graphql_schema(self.config, self.gql_names)]
        if self.config.init_first_item is not None:
            list_fields = app_config.lists[self.config.list_key].fields
            graphql_types = {
                name: list_fields[name].graphql_type + ("!" if list_fields[name].is_required else "")
                for name in self.config.init_first_item.fields
            }
            extensions.append(init_first_item_schema_extension(self.config, self.gql_names, graphql_types))
        return extensions

    # ------------------------------------------------------------------
    # Config validation and merging
    # ------------------------------------------------------------------

    def validate_config(self, app_config: AppConfig) -> None:
        """Fail fast on a config that auth cannot work with. Raises AuthConfigError."""
        key = self.config.list_key
        list_config = app_config.lists.get(key)
        if list_config is None:
            raise AuthConfigError(
                f"In createAuth, you've specified the list {key!r} but you do not have a list named {key!r}"
            )
        for role in ("identity_field", "secret_field"):
            name = getattr(self.config, role)
            if name not in list_config.fields:
                raise AuthConfigError(
                    f"In createAuth, you've specified {name!r} as your {role} on {key!r} "
                    f"but {key!r} does not have a field named {name!r}"
                )
        if self.config.init_first_item is not None:
            for name in self.config.init_first_item.fields:
                if name not in list_config.fields:
                    raise AuthConfigError(
                        f"In createAuth, you've specified the field {name!r} in init_first_item.fields "
                        f"but it does not exist on the list {key!r}"
                    )

    def with_auth(self, app_config: AppConfig) -> AppConfig:
        """Return a copy of app_config with auth merged in. The input is not modified.

        Existing admin middleware runs only when auth's own middleware lets the
        request through. Auth's schema extensions are applied before any the
        app already had.
        """
        self.validate_config(app_config)

        admin = app_config.admin
        if admin is not None:
            existing_middleware = admin.page_middleware

            async def page_middleware(path: str, is_valid_session: bool, context: Context):
                redirect = await self.page_middleware(path, is_valid_session, context)
                if redirect is None and existing_middleware is not None:
                    return await existing_middleware(path, is_valid_session, context)
                return redirect

            admin = AdminConfig(
                public_pages=[*admin.public_pages, *self.admin.public_pages],
                page_middleware=page_middleware,
                enable_session_item=True,
            )

        key = self.config.list_key
        lists = dict(app_config.lists)
        lists[key] = dataclasses.replace(lists[key], fields={**lists[key].fields, **self.fields})
        merged = AppConfig(lists=lists, admin=admin)
        merged.extend_graphql_schema = [*self.extensions(merged), *app_config.extend_graphql_schema]
        logger.info("Auth enabled on list %s (identity=%s)", key, self.config.identity_field)
        return merged


def create_auth(config: AuthConfig) -> Auth:
    """Generate the config needed to add standard auth features to an app."""
    if not _LIST_KEY_RE.match(config.list_key):
        raise AuthConfigError(f"createAuth list key {config.list_key!r} must be CamelCase (e.g. 'User')")
    return Auth(config)
