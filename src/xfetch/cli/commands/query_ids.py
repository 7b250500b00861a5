"""Query id cache commands."""

from __future__ import annotations

import typer
from rich.table import Table

from xfetch.cli.state import emit_json, err_console, run_async
from xfetch.core import get_settings
from xfetch.storage import JsonFileStore
from xfetch.twitter import QueryIdResolver

app = typer.Typer(
    name="query-ids",
    help="Inspect and refresh GraphQL query ids",
    no_args_is_help=True,
)


def _resolver() -> QueryIdResolver:
    settings = get_settings()
    return QueryIdResolver(
        JsonFileStore(settings.query_id_cache_path),
        ttl_ms=settings.query_id_ttl_ms,
        timeout=settings.request_timeout_ms / 1000,
    )


@app.command("list")
def list_ids(
    table: bool = typer.Option(
        False,
        "--table",
        "-t",
        help="Render a table on stderr instead of JSON",
    ),
) -> None:
    """
    Show the query ids currently in use.

    Example:
        xfetch query-ids list
    """
    resolver = _resolver()
    ids = resolver.list()
    age = resolver.cache_age_seconds

    if table:
        status = "fresh" if resolver.is_cache_fresh else ("stale" if age is not None else "fallback")
        out = Table(title=f"Query ids ({status})")
        out.add_column("Operation", style="cyan")
        out.add_column("Query id", style="green")
        for name, query_id in sorted(ids.items()):
            out.add_row(name, query_id)
        err_console.print(out)
        return

    emit_json(
        {
            "fresh": resolver.is_cache_fresh,
            "ageSeconds": round(age, 1) if age is not None else None,
            "ids": ids,
        }
    )


@app.command("refresh")
def refresh() -> None:
    """
    Scrape current query ids from the X web client and cache them.

    Falls back to the built-in table when x.com cannot be reached.
    """
    resolver = _resolver()
    with err_console.status("Fetching client bundles..."):
        ids = run_async(resolver.refresh())
    if resolver.is_cache_fresh:
        err_console.print(f"[green]Cached {len(ids)} query ids[/green]")
    else:
        err_console.print("[yellow]Refresh failed, using built-in query ids[/yellow]")
    emit_json(ids)
