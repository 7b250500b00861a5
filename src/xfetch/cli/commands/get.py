"""Single-object lookups: user profiles, tweets and lists."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import typer
from pydantic import BaseModel

from xfetch.cli.state import (
    build_client,
    emit_json,
    extract_list_id,
    extract_tweet_id,
    get_state,
    run_async,
)
from xfetch.core import NotFoundError
from xfetch.twitter import TwitterGraphQLClient

app = typer.Typer(
    name="get",
    help="Look up a single user, tweet or list",
    no_args_is_help=True,
)


def _lookup(
    ctx: typer.Context,
    kind: str,
    identifier: str,
    fetch: Callable[[TwitterGraphQLClient], Awaitable[BaseModel | None]],
) -> None:
    async def run() -> Any:
        client = build_client(get_state(ctx))
        result = await fetch(client)
        if result is None:
            raise NotFoundError(kind, identifier)
        return result

    emit_json(run_async(run()).model_dump(mode="json"))


@app.command("user")
def user(
    ctx: typer.Context,
    handle: str = typer.Argument(..., help="Handle (with or without @) or numeric user id"),
) -> None:
    """
    Show a user profile.

    Example:
        xfetch get user @jack
    """
    handle = handle.lstrip("@")
    if handle.isdigit():
        _lookup(ctx, "user", handle, lambda client: client.get_user_by_id(handle))
    else:
        _lookup(ctx, "user", f"@{handle}", lambda client: client.get_user_by_screen_name(handle))


@app.command("tweet")
def tweet(
    ctx: typer.Context,
    tweet_id: str = typer.Argument(..., help="Tweet id or URL", callback=extract_tweet_id),
) -> None:
    """Show a single tweet."""
    _lookup(ctx, "tweet", tweet_id, lambda client: client.get_tweet(tweet_id))


@app.command("list")
def list_info(
    ctx: typer.Context,
    list_id: str = typer.Argument(..., help="List id or URL", callback=extract_list_id),
) -> None:
    """Show list details."""
    _lookup(ctx, "list", list_id, lambda client: client.get_list(list_id))
