"""Saved session commands."""

from __future__ import annotations

from typing import Optional

import typer

from xfetch.cli.state import (
    emit_json,
    err_console,
    get_state,
    load_session,
    resolve_credential_source,
    session_store,
)
from xfetch.core import CheckpointIOError, Credential, get_settings

app = typer.Typer(
    name="auth",
    help="Manage the saved session",
    no_args_is_help=True,
)


def _mask(value: str) -> str:
    return f"{value[:4]}…{value[-4:]}" if len(value) > 12 else "****"


@app.command("set")
def set_session(
    auth_token: str = typer.Option(
        ...,
        "--auth-token",
        prompt=True,
        hide_input=True,
        help="auth_token cookie value",
    ),
    ct0: str = typer.Option(
        ...,
        "--ct0",
        prompt=True,
        hide_input=True,
        help="ct0 (CSRF) cookie value",
    ),
    username: Optional[str] = typer.Option(None, "--username", "-u", help="Account handle"),
    user_id: Optional[str] = typer.Option(None, "--user-id", help="Account REST id"),
) -> None:
    """
    Save browser cookies as the default session.

    Example:
        xfetch auth set --auth-token abc... --ct0 def... --username me
    """
    try:
        credential = Credential(
            auth_token=auth_token,
            ct0=ct0,
            username=username.lstrip("@") if username else None,
            user_id=user_id,
        )
    except ValueError as e:
        err_console.print(f"[red]Error:[/red] invalid credential: {e}")
        raise typer.Exit(1) from e

    store = session_store()
    try:
        store.write(credential.model_dump(by_alias=True, exclude_none=True))
    except CheckpointIOError as e:
        err_console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1) from e
    err_console.print(f"[green]Session saved to {store.location}[/green]")


@app.command("show")
def show() -> None:
    """Show the saved session with tokens masked."""
    settings = get_settings()
    try:
        credential = load_session(settings)
    except (CheckpointIOError, ValueError) as e:
        err_console.print(f"[red]Error:[/red] unreadable session: {e}")
        raise typer.Exit(1) from e

    if credential is None:
        err_console.print("[yellow]No saved session[/yellow]")
        raise typer.Exit(1)

    emit_json(
        {
            "path": str(settings.session_path),
            "authToken": _mask(credential.auth_token),
            "ct0": _mask(credential.ct0),
            "username": credential.username,
            "userId": credential.user_id,
        }
    )


@app.command("clear")
def clear() -> None:
    """Delete the saved session."""
    store = session_store()
    if not store.exists():
        err_console.print("[yellow]No saved session[/yellow]")
        return
    try:
        store.delete()
    except CheckpointIOError as e:
        err_console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1) from e
    err_console.print("[green]Session cleared[/green]")


@app.command("check")
def check(ctx: typer.Context) -> None:
    """
    Report which credentials a command would use.

    Exits with status 1 when none are configured.
    """
    source, credentials = resolve_credential_source(get_state(ctx))
    if not credentials:
        err_console.print(
            "[red]No credentials.[/red] Run [bold]xfetch auth set[/bold] "
            "or pass --auth-token and --ct0."
        )
        raise typer.Exit(1)

    emit_json(
        {
            "source": source,
            "credentials": [
                {
                    "authToken": _mask(credential.auth_token),
                    "ct0": _mask(credential.ct0),
                    "username": credential.username,
                }
                for credential in credentials
            ],
        }
    )
