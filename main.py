#!/usr/bin/env python3
"""
JWT Pizza service -- operator command line.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 3000 --reload
  python main.py create-admin --name "pizza admin" --email a@jwt.com --password admin

The Admin role cannot be obtained through the API. create-admin is how the
first administrator is made: it creates the account, or adds the Admin grant
to an existing account with that email.

Environment variables (see core/config.py):
  SECRET_KEY     Required unless DEBUG=true. At least 32 characters.
  DATABASE_URL   SQLAlchemy URL. Defaults to jwtpizza.db next to the code.
"""

import argparse
import getpass
import sys

from auth.store import UserStore
from auth.tokens import MAX_PASSWORD_BYTES, hash_password
from core.config import get_settings
from core.db import make_engine


def _create_admin(args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("Admin password: ")
    if not password:
        print("  [!] A password is required.")
        return 1
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        print(f"  [!] Passwords are limited to {MAX_PASSWORD_BYTES} bytes.")
        return 1
    settings = get_settings()
    store = UserStore(make_engine(settings.database_url))
    try:
        user_id = store.ensure_admin(args.name, args.email, hash_password(password))
    finally:
        store.close()
    print(f"  Admin {args.email} ready (user id {user_id}).")
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jwtpizza",
        description="JWT Pizza service -- authentication, franchises, and ordering.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=3000)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development only).")
    serve.set_defaults(func=_serve)

    admin = sub.add_parser("create-admin", help="Create an admin account or elevate an existing one.")
    admin.add_argument("--name", default="pizza admin")
    admin.add_argument("--email", required=True)
    admin.add_argument("--password", help="Prompted for when omitted.")
    admin.set_defaults(func=_create_admin)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
