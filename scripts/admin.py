"""
Admin command line for identity maintenance.

Usernames can only change through here; the HTTP API never touches them
after registration.

Usage:
    python -m scripts.admin list-users
    python -m scripts.admin set-username <email> <new_username>
    python -m scripts.admin reset-password <email> <new_password>
"""

import argparse
import asyncio
import sys
from typing import Optional, Sequence

from placebook.config import get_settings
from placebook.context import AppContext, build_context
from placebook.database import close_db
from placebook.errors import NotFoundError, PlacebookError
from placebook.logging_config import configure_logging, get_logger

logger = get_logger(__name__)


async def list_users(context: AppContext, args: argparse.Namespace) -> None:
    async with context.session_maker() as session:
        users = await context.identity_service(session).list_users()
    for user in users:
        print(f"{user.id}  {user.username:<24} {user.email}")
    print(f"{len(users)} user(s)")


async def set_username(context: AppContext, args: argparse.Namespace) -> None:
    async with context.session_maker() as session:
        identity = context.identity_service(session)
        user = await identity.get_user_by_email(args.email)
        if user is None:
            raise NotFoundError("User not found")
        updated = await identity.change_username(user.id, args.username)
        await session.commit()
    print(f"Username for {updated.email} is now {updated.username}")


async def reset_password(context: AppContext, args: argparse.Namespace) -> None:
    async with context.session_maker() as session:
        user = await context.identity_service(session).reset_password(args.email, args.password)
        await session.commit()
    print(f"Password reset for {user.email}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="placebook-admin", description=__doc__.split("\n\n")[0])
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("list-users", help="List all users").set_defaults(handler=list_users)

    rename = commands.add_parser("set-username", help="Change a user's username")
    rename.add_argument("email")
    rename.add_argument("username")
    rename.set_defaults(handler=set_username)

    reset = commands.add_parser("reset-password", help="Set a new password for a user")
    reset.add_argument("email")
    reset.add_argument("password")
    reset.set_defaults(handler=reset_password)

    return parser


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    configure_logging(log_level=settings.log_level, environment=settings.environment, debug=settings.debug)
    context = build_context(settings)
    try:
        await args.handler(context, args)
    except PlacebookError as e:
        logger.error("Admin command failed: %s", e.message, extra={"command": args.command})
        print(f"error: {e.message}", file=sys.stderr)
        return 1
    finally:
        await close_db(context.engine)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
