#!/usr/bin/env python3
"""
BookOrbit -- book catalog and order API.

Usage:
  python main.py serve
  python main.py serve --port 8000 --reload
  python main.py set-role librarian@example.com librarian
  python main.py mint-token someone@example.com --name "Some One"

Environment variables (see core/config.py for the full list):
  DATABASE_URL          SQLAlchemy URL. Defaults to a SQLite file in the project root.
  IDENTITY_PROVIDER     "firebase" (default) or "local".
  FIREBASE_PROJECT_ID   Required when IDENTITY_PROVIDER=firebase.
  SECRET_KEY            Required unless DEBUG=true.
  PORT                  Listen port (default 5000).
"""

import argparse
import sys

from core.config import get_settings


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "api.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload,
    )
    return 0


def _set_role(args: argparse.Namespace) -> int:
    """Promote or demote an existing user. Roles are never changed over HTTP."""
    from core.database import create_db_engine
    from core.errors import InvalidInput
    from users.store import UserDirectory

    engine = create_db_engine(get_settings().database_url)
    try:
        users = UserDirectory(engine)
        try:
            updated = users.set_role(args.email, args.role)
        except InvalidInput as e:
            print(f"  [!] {e.message}")
            return 2
    finally:
        engine.dispose()
    if not updated:
        print(f"  [!] No user with email '{args.email}'. They must log in once first.")
        return 1
    print(f"  {args.email} is now {args.role}")
    return 0


def _mint_token(args: argparse.Namespace) -> int:
    """Print a local identity token. Only accepted when IDENTITY_PROVIDER=local."""
    settings = get_settings()
    if settings.identity_provider != "local":
        print("  [!] mint-token only works with IDENTITY_PROVIDER=local.")
        return 1
    from auth.tokens import create_identity_token

    print(create_identity_token(args.email, name=args.name, expire_seconds=args.expires))
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="bookorbit",
        description="BookOrbit API server and operator tools.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None, help="Bind address (default: HOST or 0.0.0.0)")
    serve.add_argument("--port", type=int, default=None, help="Listen port (default: PORT or 5000)")
    serve.add_argument("--reload", action="store_true", help="Auto-reload on code changes (development)")
    serve.set_defaults(func=_serve)

    set_role = sub.add_parser("set-role", help="Change a user's role")
    set_role.add_argument("email")
    set_role.add_argument("role", choices=["user", "librarian", "admin"])
    set_role.set_defaults(func=_set_role)

    mint = sub.add_parser("mint-token", help="Print a local identity token for an email")
    mint.add_argument("email")
    mint.add_argument("--name", default=None)
    mint.add_argument("--expires", type=int, default=0, help="Lifetime in seconds (default: settings)")
    mint.set_defaults(func=_mint_token)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
