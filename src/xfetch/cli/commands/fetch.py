"""Paginated fetch commands.

Every command drives one client operation through the paginator, so all of
them share ``--all``/``--max-pages`` paging, ``--resume`` checkpoints and
transport retries. Results are printed as JSON on stdout.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, Optional

import typer

from xfetch.cli.state import (
    build_client,
    emit_json,
    err_console,
    extract_list_id,
    extract_tweet_id,
    get_state,
    report_error,
)
from xfetch.core import LogContext, NotFoundError, XFetchError, get_settings
from xfetch.scraper import (
    FetchPage,
    PaginationOptions,
    PaginationProgress,
    Paginator,
    with_retries,
)
from xfetch.storage import JsonFileStore
from xfetch.twitter import TwitterGraphQLClient
from xfetch.twitter.endpoints import NotificationKind

app = typer.Typer(
    name="fetch",
    help="Fetch timelines, search results and social graphs",
    no_args_is_help=True,
)

FetchFactory = Callable[[TwitterGraphQLClient], Awaitable[FetchPage]]

# Paging options shared by every command
COUNT_OPTION = typer.Option(20, "--count", "-n", help="Items per page", min=1, max=100)
CURSOR_OPTION = typer.Option(None, "--cursor", help="Start from this cursor")
ALL_OPTION = typer.Option(False, "--all", "-a", help="Fetch until the collection is exhausted")
MAX_PAGES_OPTION = typer.Option(
    None,
    "--max-pages",
    "-p",
    help="Stop after this many pages in this run; a resumed run counts from zero",
    min=1,
)
RESUME_OPTION = typer.Option(
    None,
    "--resume",
    "-r",
    help="Checkpoint file; progress is saved there and picked up on the next run",
)
DELAY_OPTION = typer.Option(None, "--delay", help="Milliseconds between pages", min=0)
RETRIES_OPTION = typer.Option(None, "--retries", help="Attempts per page on transport errors", min=1)


def _print_progress(progress: PaginationProgress) -> None:
    err_console.print(
        f"[dim]Page {progress.page}: {progress.items} items ({progress.total} total)[/dim]"
    )


async def _resolve_user_id(client: TwitterGraphQLClient, user: str) -> str:
    """Accept either a numeric id or a handle."""
    handle = user.lstrip("@")
    if handle.isdigit():
        return handle
    profile = await client.get_user_by_screen_name(handle)
    if profile is None:
        raise NotFoundError("user", f"@{handle}")
    return profile.id


def _paginate(
    ctx: typer.Context,
    make_fetch: FetchFactory,
    *,
    query: str,
    cursor: Optional[str],
    all_pages: bool,
    max_pages: Optional[int],
    resume: Optional[Path],
    delay: Optional[int],
    retries: Optional[int],
) -> None:
    settings = get_settings()
    options = PaginationOptions(
        all=all_pages,
        max_pages=max_pages,
        delay_ms=delay if delay is not None else settings.page_delay_ms,
        query=query,
    )
    paginator: Paginator[Any] = Paginator(
        options,
        JsonFileStore(resume) if resume else None,
        on_progress=_print_progress,
    )

    async def run(client: TwitterGraphQLClient) -> Any:
        fetch = await make_fetch(client)

        async def fetch_page(page_cursor: Optional[str]) -> Any:
            return await fetch(page_cursor or cursor)

        return await paginator.fetch_all(
            with_retries(fetch_page, attempts=retries or settings.page_retries)
        )

    try:
        # Proxy options are parsed here, so bad ones are reported like fetch errors
        client = build_client(get_state(ctx))
        with LogContext(command=ctx.info_name, query=query):
            result = asyncio.run(run(client))
    except XFetchError as e:
        report_error(e)
        if resume:
            err_console.print(f"Progress saved. Re-run with [bold]--resume {resume}[/bold] to continue.")
        raise typer.Exit(1) from e

    emit_json(
        {
            "items": [item.model_dump(mode="json") for item in result.items],
            "pagesLoaded": result.pages_loaded,
            "complete": result.complete,
            "nextCursor": None if result.complete else paginator.state.cursor,
        }
    )
    if result.checkpoint:
        err_console.print(
            f"More pages available. Re-run with [bold]--resume {result.checkpoint}[/bold] to continue."
        )


@app.command("search")
def search(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Search query, e.g. 'from:jack python'"),
    product: str = typer.Option(
        "Latest",
        "--product",
        help="Top, Latest, Media or People",
    ),
    count: int = COUNT_OPTION,
    cursor: Optional[str] = CURSOR_OPTION,
    all_pages: bool = ALL_OPTION,
    max_pages: Optional[int] = MAX_PAGES_OPTION,
    resume: Optional[Path] = RESUME_OPTION,
    delay: Optional[int] = DELAY_OPTION,
    retries: Optional[int] = RETRIES_OPTION,
) -> None:
    """
    Search tweets (or users with --product People).

    Example:
        xfetch fetch search "python asyncio" --max-pages 5 --resume search.json
    """

    async def make_fetch(client: TwitterGraphQLClient) -> FetchPage:
        return lambda c: client.search(query, count=count, cursor=c, product=product)

    _paginate(
        ctx,
        make_fetch,
        query=query,
        cursor=cursor,
        all_pages=all_pages,
        max_pages=max_pages,
        resume=resume,
        delay=delay,
        retries=retries,
    )


@app.command("tweets")
def tweets(
    ctx: typer.Context,
    user: str = typer.Argument(..., help="Handle or numeric user id"),
    replies: bool = typer.Option(False, "--replies", help="Include replies"),
    count: int = COUNT_OPTION,
    cursor: Optional[str] = CURSOR_OPTION,
    all_pages: bool = ALL_OPTION,
    max_pages: Optional[int] = MAX_PAGES_OPTION,
    resume: Optional[Path] = RESUME_OPTION,
    delay: Optional[int] = DELAY_OPTION,
    retries: Optional[int] = RETRIES_OPTION,
) -> None:
    """Fetch a user's tweets."""

    async def make_fetch(client: TwitterGraphQLClient) -> FetchPage:
        user_id = await _resolve_user_id(client, user)
        return lambda c: client.get_user_tweets(
            user_id, count=count, cursor=c, include_replies=replies
        )

    _paginate(
        ctx,
        make_fetch,
        query=f"tweets:{user}",
        cursor=cursor,
        all_pages=all_pages,
        max_pages=max_pages,
        resume=resume,
        delay=delay,
        retries=retries,
    )


@app.command("followers")
def followers(
    ctx: typer.Context,
    user: str = typer.Argument(..., help="Handle or numeric user id"),
    count: int = COUNT_OPTION,
    cursor: Optional[str] = CURSOR_OPTION,
    all_pages: bool = ALL_OPTION,
    max_pages: Optional[int] = MAX_PAGES_OPTION,
    resume: Optional[Path] = RESUME_OPTION,
    delay: Optional[int] = DELAY_OPTION,
    retries: Optional[int] = RETRIES_OPTION,
) -> None:
    """Fetch the followers of a user."""

    async def make_fetch(client: TwitterGraphQLClient) -> FetchPage:
        user_id = await _resolve_user_id(client, user)
        return lambda c: client.get_followers(user_id, count=count, cursor=c)

    _paginate(
        ctx,
        make_fetch,
        query=f"followers:{user}",
        cursor=cursor,
        all_pages=all_pages,
        max_pages=max_pages,
        resume=resume,
        delay=delay,
        retries=retries,
    )


@app.command("following")
def following(
    ctx: typer.Context,
    user: str = typer.Argument(..., help="Handle or numeric user id"),
    count: int = COUNT_OPTION,
    cursor: Optional[str] = CURSOR_OPTION,
    all_pages: bool = ALL_OPTION,
    max_pages: Optional[int] = MAX_PAGES_OPTION,
    resume: Optional[Path] = RESUME_OPTION,
    delay: Optional[int] = DELAY_OPTION,
    retries: Optional[int] = RETRIES_OPTION,
) -> None:
    """Fetch the accounts a user follows."""

    async def make_fetch(client: TwitterGraphQLClient) -> FetchPage:
        user_id = await _resolve_user_id(client, user)
        return lambda c: client.get_following(user_id, count=count, cursor=c)

    _paginate(
        ctx,
        make_fetch,
        query=f"following:{user}",
        cursor=cursor,
        all_pages=all_pages,
        max_pages=max_pages,
        resume=resume,
        delay=delay,
        retries=retries,
    )


@app.command("likes")
def likes(
    ctx: typer.Context,
    user: str = typer.Argument(..., help="Handle or numeric user id"),
    count: int = COUNT_OPTION,
    cursor: Optional[str] = CURSOR_OPTION,
    all_pages: bool = ALL_OPTION,
    max_pages: Optional[int] = MAX_PAGES_OPTION,
    resume: Optional[Path] = RESUME_OPTION,
    delay: Optional[int] = DELAY_OPTION,
    retries: Optional[int] = RETRIES_OPTION,
) -> None:
    """Fetch tweets liked by a user."""

    async def make_fetch(client: TwitterGraphQLClient) -> FetchPage:
        user_id = await _resolve_user_id(client, user)
        return lambda c: client.get_likes(user_id, count=count, cursor=c)

    _paginate(
        ctx,
        make_fetch,
        query=f"likes:{user}",
        cursor=cursor,
        all_pages=all_pages,
        max_pages=max_pages,
        resume=resume,
        delay=delay,
        retries=retries,
    )


@app.command("bookmarks")
def bookmarks(
    ctx: typer.Context,
    count: int = COUNT_OPTION,
    cursor: Optional[str] = CURSOR_OPTION,
    all_pages: bool = ALL_OPTION,
    max_pages: Optional[int] = MAX_PAGES_OPTION,
    resume: Optional[Path] = RESUME_OPTION,
    delay: Optional[int] = DELAY_OPTION,
    retries: Optional[int] = RETRIES_OPTION,
) -> None:
    """Fetch the authenticated account's bookmarks."""

    async def make_fetch(client: TwitterGraphQLClient) -> FetchPage:
        return lambda c: client.get_bookmarks(count=count, cursor=c)

    _paginate(
        ctx,
        make_fetch,
        query="bookmarks",
        cursor=cursor,
        all_pages=all_pages,
        max_pages=max_pages,
        resume=resume,
        delay=delay,
        retries=retries,
    )


@app.command("home")
def home(
    ctx: typer.Context,
    latest: bool = typer.Option(False, "--latest", help="Following tab instead of For you"),
    count: int = COUNT_OPTION,
    cursor: Optional[str] = CURSOR_OPTION,
    all_pages: bool = ALL_OPTION,
    max_pages: Optional[int] = MAX_PAGES_OPTION,
    resume: Optional[Path] = RESUME_OPTION,
    delay: Optional[int] = DELAY_OPTION,
    retries: Optional[int] = RETRIES_OPTION,
) -> None:
    """Fetch the home timeline."""

    async def make_fetch(client: TwitterGraphQLClient) -> FetchPage:
        return lambda c: client.get_home_timeline(count=count, cursor=c, latest=latest)

    _paginate(
        ctx,
        make_fetch,
        query="home:latest" if latest else "home",
        cursor=cursor,
        all_pages=all_pages,
        max_pages=max_pages,
        resume=resume,
        delay=delay,
        retries=retries,
    )


@app.command("list")
def list_tweets(
    ctx: typer.Context,
    list_id: str = typer.Argument(..., help="List id or URL", callback=extract_list_id),
    count: int = COUNT_OPTION,
    cursor: Optional[str] = CURSOR_OPTION,
    all_pages: bool = ALL_OPTION,
    max_pages: Optional[int] = MAX_PAGES_OPTION,
    resume: Optional[Path] = RESUME_OPTION,
    delay: Optional[int] = DELAY_OPTION,
    retries: Optional[int] = RETRIES_OPTION,
) -> None:
    """Fetch the latest tweets of a list."""

    async def make_fetch(client: TwitterGraphQLClient) -> FetchPage:
        return lambda c: client.get_list_tweets(list_id, count=count, cursor=c)

    _paginate(
        ctx,
        make_fetch,
        query=f"list:{list_id}",
        cursor=cursor,
        all_pages=all_pages,
        max_pages=max_pages,
        resume=resume,
        delay=delay,
        retries=retries,
    )


@app.command("thread")
def thread(
    ctx: typer.Context,
    tweet: str = typer.Argument(..., help="Tweet id or URL", callback=extract_tweet_id),
    cursor: Optional[str] = CURSOR_OPTION,
    all_pages: bool = ALL_OPTION,
    max_pages: Optional[int] = MAX_PAGES_OPTION,
    resume: Optional[Path] = RESUME_OPTION,
    delay: Optional[int] = DELAY_OPTION,
    retries: Optional[int] = RETRIES_OPTION,
) -> None:
    """Fetch a tweet with its thread and replies."""

    async def make_fetch(client: TwitterGraphQLClient) -> FetchPage:
        return lambda c: client.get_thread(tweet, cursor=c)

    _paginate(
        ctx,
        make_fetch,
        query=f"thread:{tweet}",
        cursor=cursor,
        all_pages=all_pages,
        max_pages=max_pages,
        resume=resume,
        delay=delay,
        retries=retries,
    )


@app.command("lists")
def lists(
    ctx: typer.Context,
    user: str = typer.Argument(..., help="Handle or numeric user id"),
    count: int = typer.Option(100, "--count", "-n", help="Items per page", min=1, max=100),
    cursor: Optional[str] = CURSOR_OPTION,
    all_pages: bool = ALL_OPTION,
    max_pages: Optional[int] = MAX_PAGES_OPTION,
    resume: Optional[Path] = RESUME_OPTION,
    delay: Optional[int] = DELAY_OPTION,
    retries: Optional[int] = RETRIES_OPTION,
) -> None:
    """Fetch the lists a user owns."""

    async def make_fetch(client: TwitterGraphQLClient) -> FetchPage:
        user_id = await _resolve_user_id(client, user)
        return lambda c: client.get_user_lists(user_id, count=count, cursor=c)

    _paginate(
        ctx,
        make_fetch,
        query=f"lists:{user}",
        cursor=cursor,
        all_pages=all_pages,
        max_pages=max_pages,
        resume=resume,
        delay=delay,
        retries=retries,
    )


@app.command("list-members")
def list_members(
    ctx: typer.Context,
    list_id: str = typer.Argument(..., help="List id or URL", callback=extract_list_id),
    count: int = COUNT_OPTION,
    cursor: Optional[str] = CURSOR_OPTION,
    all_pages: bool = ALL_OPTION,
    max_pages: Optional[int] = MAX_PAGES_OPTION,
    resume: Optional[Path] = RESUME_OPTION,
    delay: Optional[int] = DELAY_OPTION,
    retries: Optional[int] = RETRIES_OPTION,
) -> None:
    """Fetch the members of a list."""

    async def make_fetch(client: TwitterGraphQLClient) -> FetchPage:
        return lambda c: client.get_list_members(list_id, count=count, cursor=c)

    _paginate(
        ctx,
        make_fetch,
        query=f"list-members:{list_id}",
        cursor=cursor,
        all_pages=all_pages,
        max_pages=max_pages,
        resume=resume,
        delay=delay,
        retries=retries,
    )


@app.command("notifications")
def notifications(
    ctx: typer.Context,
    kind: NotificationKind = typer.Option(
        NotificationKind.ALL,
        "--type",
        "-t",
        help="all, mentions or verified",
    ),
    count: int = COUNT_OPTION,
    cursor: Optional[str] = CURSOR_OPTION,
    all_pages: bool = ALL_OPTION,
    max_pages: Optional[int] = MAX_PAGES_OPTION,
    resume: Optional[Path] = RESUME_OPTION,
    delay: Optional[int] = DELAY_OPTION,
    retries: Optional[int] = RETRIES_OPTION,
) -> None:
    """
    Fetch tweets from the notification timeline.

    Example:
        xfetch fetch notifications --type mentions --max-pages 2
    """

    async def make_fetch(client: TwitterGraphQLClient) -> FetchPage:
        return lambda c: client.get_notifications(kind, count=count, cursor=c)

    _paginate(
        ctx,
        make_fetch,
        query=f"notifications:{kind.value}",
        cursor=cursor,
        all_pages=all_pages,
        max_pages=max_pages,
        resume=resume,
        delay=delay,
        retries=retries,
    )


@app.command("dms")
def dms(
    ctx: typer.Context,
    cursor: Optional[str] = CURSOR_OPTION,
    all_pages: bool = ALL_OPTION,
    max_pages: Optional[int] = MAX_PAGES_OPTION,
    resume: Optional[Path] = RESUME_OPTION,
    delay: Optional[int] = DELAY_OPTION,
    retries: Optional[int] = RETRIES_OPTION,
) -> None:
    """Fetch DM conversations, most recently active first."""

    async def make_fetch(client: TwitterGraphQLClient) -> FetchPage:
        return lambda c: client.get_dm_inbox(cursor=c)

    _paginate(
        ctx,
        make_fetch,
        query="dms",
        cursor=cursor,
        all_pages=all_pages,
        max_pages=max_pages,
        resume=resume,
        delay=delay,
        retries=retries,
    )


@app.command("dm")
def dm(
    ctx: typer.Context,
    conversation_id: str = typer.Argument(..., help="Conversation id, as listed by 'fetch dms'"),
    cursor: Optional[str] = CURSOR_OPTION,
    all_pages: bool = ALL_OPTION,
    max_pages: Optional[int] = MAX_PAGES_OPTION,
    resume: Optional[Path] = RESUME_OPTION,
    delay: Optional[int] = DELAY_OPTION,
    retries: Optional[int] = RETRIES_OPTION,
) -> None:
    """Fetch the messages of one DM conversation, newest page first."""

    async def make_fetch(client: TwitterGraphQLClient) -> FetchPage:
        return lambda c: client.get_dm_conversation(conversation_id, cursor=c)

    _paginate(
        ctx,
        make_fetch,
        query=f"dm:{conversation_id}",
        cursor=cursor,
        all_pages=all_pages,
        max_pages=max_pages,
        resume=resume,
        delay=delay,
        retries=retries,
    )
