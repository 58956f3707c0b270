#!/usr/bin/env python3
"""
PassGate -- user administration and server launcher.

Usage:
  python main.py create-user --email ada@example.com --username ada --name "Ada L" --locale en
  python main.py set-password --email ada@example.com
  python main.py disable-2fa --email ada@example.com
  python main.py delete-user --email ada@example.com
  python main.py serve --host 127.0.0.1 --port 8000

Passwords are read interactively (never from argv, which ends up in shell
history and process listings).

Environment variables:
  DATABASE_URL    User store location. Defaults to auth/passgate_auth.db.
  SECRET_KEY      Required unless DEBUG=true.
  ENCRYPTION_KEY  32-character key protecting two-factor secrets.
"""

import argparse
import getpass
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.store import UserStore
from auth.tokens import hash_password
from core.config import get_settings


def _prompt_password() -> Optional[str]:
    first = getpass.getpass("  Password: ")
    second = getpass.getpass("  Repeat password: ")
    if first != second:
        print("  [!] Passwords do not match.")
        return None
    if not first:
        print("  [!] Password must not be empty.")
        return None
    if len(first.encode("utf-8")) > 72:
        print("  [!] Password must be at most 72 bytes (bcrypt limit).")
        return None
    return first


def _find(store: UserStore, email: str) -> Optional[User]:
    user = store.get_by_email(email)
    if user is None:
        print(f"  [!] No user with email '{email}'.")
    return user


def cmd_create_user(store: UserStore, args: argparse.Namespace) -> int:
    password = None
    if not args.no_password:
        password = _prompt_password()
        if password is None:
            return 1
    user = User(
        email=args.email,
        username=args.username,
        name=args.name,
        locale=args.locale,
        hashed_password=hash_password(password) if password else None,
    )
    try:
        uid = store.create_user(user)
    except IntegrityError:
        print("  [!] A user with that email or username already exists.")
        return 1
    print(f"  Created user {uid} ({args.email})")
    return 0


def cmd_set_password(store: UserStore, args: argparse.Namespace) -> int:
    user = _find(store, args.email)
    if user is None:
        return 1
    password = _prompt_password()
    if password is None:
        return 1
    store.update_user(user.id, hashed_password=hash_password(password))
    print(f"  Password updated for {args.email}")
    return 0


def cmd_disable_2fa(store: UserStore, args: argparse.Namespace) -> int:
    """Recovery path for a user who lost their authenticator device."""
    user = _find(store, args.email)
    if user is None:
        return 1
    store.set_two_factor(user.id, secret=None, enabled=False)
    print(f"  Two-factor authentication disabled for {args.email}")
    return 0


def cmd_delete_user(store: UserStore, args: argparse.Namespace) -> int:
    user = _find(store, args.email)
    if user is None:
        return 1
    store.delete_user(user.id)
    print(f"  Deleted user {user.id} ({args.email})")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="PassGate -- credential sign-in service administration.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-user", help="Create a user (prompts for a password)")
    create.add_argument("--email", required=True)
    create.add_argument("--username")
    create.add_argument("--name")
    create.add_argument("--locale", default="en")
    create.add_argument("--no-password", action="store_true", help="Create without a local password")

    for name, help_text in (
        ("set-password", "Set or reset a user's password"),
        ("disable-2fa", "Turn off two-factor authentication for a user"),
        ("delete-user", "Permanently delete a user"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--email", required=True)

    serve = sub.add_parser("serve", help="Run the API server with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true")
    return parser


_COMMANDS = {
    "create-user": cmd_create_user,
    "set-password": cmd_set_password,
    "disable-2fa": cmd_disable_2fa,
    "delete-user": cmd_delete_user,
}


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.command == "serve":
        return cmd_serve(args)
    store = UserStore(get_settings().database_url)
    try:
        return _COMMANDS[args.command](store, args)
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
