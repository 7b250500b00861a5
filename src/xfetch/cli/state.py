"""Shared state and helpers for CLI commands."""

from __future__ import annotations

import asyncio
import json
import re
from collections.abc import Coroutine
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console

from xfetch.core import (
    Credential,
    Settings,
    UnknownOperationError,
    XFetchError,
    get_settings,
)
from xfetch.storage import JsonFileStore
from xfetch.twitter import TwitterGraphQLClient

T = TypeVar("T")

# Data goes to stdout, everything meant for humans to stderr
err_console = Console(stderr=True)


@dataclass
class CliState:
    """Global options given before the sub-command."""

    auth_token: str | None = None
    ct0: str | None = None
    proxy: str | None = None
    proxy_file: Path | None = None


def get_state(ctx: typer.Context) -> CliState:
    obj = ctx.find_root().obj
    return obj if isinstance(obj, CliState) else CliState()


def session_store(settings: Settings | None = None) -> JsonFileStore:
    settings = settings or get_settings()
    return JsonFileStore(settings.session_path)


def load_session(settings: Settings | None = None) -> Credential | None:
    """Return the saved session credential, if any."""
    record = session_store(settings).read()
    if record is None:
        return None
    return Credential.model_validate(record)


def resolve_credential_source(
    state: CliState, settings: Settings | None = None
) -> tuple[str | None, list[Credential]]:
    """Pick credentials: explicit options, then the saved session, then settings.

    Returns the name of the source used (``None`` when nothing is configured)
    together with the credentials.
    """
    settings = settings or get_settings()
    if state.auth_token or state.ct0:
        if not (state.auth_token and state.ct0):
            err_console.print("[red]Error:[/red] --auth-token and --ct0 must be given together")
            raise typer.Exit(1)
        return "options", [Credential(auth_token=state.auth_token, ct0=state.ct0)]

    try:
        session = load_session(settings)
    except (XFetchError, ValueError) as e:
        err_console.print(f"[yellow]Ignoring unreadable session file:[/yellow] {e}")
        session = None
    if session is not None:
        return "session", [session]
    if settings.credentials:
        return "settings", list(settings.credentials)
    return None, []


def resolve_credentials(state: CliState, settings: Settings | None = None) -> list[Credential]:
    return resolve_credential_source(state, settings)[1]


def build_client(state: CliState) -> TwitterGraphQLClient:
    """Create a client from global options and settings."""
    settings = get_settings()
    credentials = resolve_credentials(state, settings)
    if not credentials:
        err_console.print(
            "[red]Error:[/red] no credentials. Run [bold]xfetch auth set[/bold] "
            "or pass --auth-token and --ct0."
        )
        raise typer.Exit(1)
    return TwitterGraphQLClient.from_settings(
        settings,
        credentials=credentials,
        proxy=state.proxy,
        proxy_file=str(state.proxy_file) if state.proxy_file else None,
    )


def emit_json(data: Any) -> None:
    """Write ``data`` as JSON to stdout."""
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def report_error(error: XFetchError) -> None:
    """Print a library error for humans, with a hint where one helps."""
    err_console.print(f"[red]Error:[/red] {error.message}")
    if isinstance(error, UnknownOperationError):
        err_console.print(
            "Run [bold]xfetch query-ids refresh[/bold] to load the current query ids."
        )


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine, turning library errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except XFetchError as e:
        report_error(e)
        raise typer.Exit(1) from e


_TWEET_URL = re.compile(r"status(?:es)?/(\d+)")
_LIST_URL = re.compile(r"(?:twitter|x)\.com/i/lists/(\d+)")


def extract_tweet_id(value: str) -> str:
    """Accept a tweet id or a tweet URL."""
    value = value.strip()
    if value.isdigit():
        return value
    match = _TWEET_URL.search(value)
    if match is None:
        raise typer.BadParameter(f"not a tweet id or URL: {value}")
    return match.group(1)


def extract_list_id(value: str) -> str:
    """Accept a list id or a list URL."""
    value = value.strip()
    if value.isdigit() and len(value) >= 5:
        return value
    match = _LIST_URL.search(value)
    if match is None:
        raise typer.BadParameter(f"not a list id or URL: {value}")
    return match.group(1)
