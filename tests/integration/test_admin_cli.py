"""Admin CLI commands run against the test database."""

import argparse

import pytest

from placebook.context import AppContext
from placebook.errors import ConflictError, NotFoundError
from scripts.admin import build_parser, list_users, reset_password, set_username


async def _register(context: AppContext, email: str) -> None:
    async with context.session_maker() as session:
        await context.identity_service(session).register(email, "secret1")
        await session.commit()


def test_parser_requires_a_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_parser_set_username():
    args = build_parser().parse_args(["set-username", "a@x.com", "ada"])

    assert args.handler is set_username
    assert (args.email, args.username) == ("a@x.com", "ada")


@pytest.mark.asyncio
async def test_set_username(context: AppContext, capsys):
    await _register(context, "a@x.com")

    await set_username(context, argparse.Namespace(email="a@x.com", username="ada"))

    assert "is now ada" in capsys.readouterr().out
    async with context.session_maker() as session:
        user = await context.identity_service(session).get_user_by_email("a@x.com")
    assert user.username == "ada"


@pytest.mark.asyncio
async def test_set_username_conflict_and_missing(context: AppContext):
    await _register(context, "a@x.com")
    await _register(context, "b@x.com")

    with pytest.raises(ConflictError):
        await set_username(context, argparse.Namespace(email="a@x.com", username="b"))
    with pytest.raises(NotFoundError):
        await set_username(context, argparse.Namespace(email="nobody@x.com", username="c"))


@pytest.mark.asyncio
async def test_reset_password(context: AppContext):
    await _register(context, "a@x.com")

    await reset_password(context, argparse.Namespace(email="a@x.com", password="fresh-secret"))

    async with context.session_maker() as session:
        user, _ = await context.identity_service(session).authenticate("a@x.com", "fresh-secret")
    assert user.email == "a@x.com"


@pytest.mark.asyncio
async def test_list_users(context: AppContext, capsys):
    await _register(context, "a@x.com")
    await _register(context, "b@x.com")

    await list_users(context, argparse.Namespace())

    out = capsys.readouterr().out
    assert "a@x.com" in out
    assert "2 user(s)" in out
