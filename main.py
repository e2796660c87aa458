#!/usr/bin/env python3
"""
listauth -- operator CLI for the example app in asgi.py.

Usage:
  python main.py check                      validate the app config and build the schema
  python main.py schema                     print the GraphQL SDL
  python main.py hash-password              read a password from the terminal, print its hash
  python main.py send-reset a@example.com   issue a password-reset token and deliver it
  python main.py send-magic-link a@example.com

Environment variables:
  SECRET_KEY     Required unless DEBUG=true.
  DATABASE_URL   SQLAlchemy URL of the list database (default: sqlite file next to the code).
"""

import argparse
import asyncio
import getpass
import sys

from graphql import print_schema

from asgi import app_config, auth
from auth.delivery import deliver_token, resolve_send_fn
from auth.models import MAGIC_AUTH, PASSWORD_RESET
from auth.service import AuthConfigError, TokenIssuer
from core.config import get_settings
from core.context import Context
from core.fields import PasswordField
from core.schema import build_schema
from core.store import Database


def _check() -> int:
    try:
        auth.validate_config(app_config)
        build_schema(app_config)
    except AuthConfigError as exc:
        print(f"  [!] {exc}")
        return 1
    print(f"  Config OK: {len(app_config.lists)} list(s), auth on {auth.config.list_key}")
    return 0


def _hash_password() -> int:
    secret_field = app_config.lists[auth.config.list_key].fields[auth.config.secret_field]
    if not isinstance(secret_field, PasswordField):
        print(f"  [!] {auth.config.secret_field} is not a password field")
        return 1
    plain = getpass.getpass("Password: ")
    if not plain:
        print("  [!] Empty password")
        return 1
    print(secret_field.hash_sync(plain))
    return 0


async def _send(token_type: str, identity: str) -> int:
    db = Database(app_config, get_settings().database_url)
    try:
        context = Context(lists=db.lists)
        result = await TokenIssuer(auth.config, db.lists[auth.config.list_key]).issue(token_type, identity, context)
        if result.success:
            await deliver_token(
                resolve_send_fn(auth.config, token_type),
                item_id=result.item_id,
                identity=identity,
                token=result.token,
            )
        print(f"  {result.message}")
        return 0 if result.success else 1
    finally:
        db.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="listauth operator commands")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("check", help="Validate the auth config and build the schema")
    sub.add_parser("schema", help="Print the GraphQL SDL")
    sub.add_parser("hash-password", help="Hash a password with the secret field's settings")
    reset = sub.add_parser("send-reset", help="Issue and deliver a password-reset token")
    reset.add_argument("identity")
    magic = sub.add_parser("send-magic-link", help="Issue and deliver a magic-auth token")
    magic.add_argument("identity")
    args = parser.parse_args(argv)

    if args.command == "check":
        return _check()
    if args.command == "schema":
        print(print_schema(build_schema(app_config)))
        return 0
    if args.command == "hash-password":
        return _hash_password()
    if args.command == "send-reset":
        return asyncio.run(_send(PASSWORD_RESET, args.identity))
    return asyncio.run(_send(MAGIC_AUTH, args.identity))


if __name__ == "__main__":
    sys.exit(main())
