"""Proxy list commands."""

from __future__ import annotations

from pathlib import Path

import typer

from xfetch.cli.state import emit_json, err_console
from xfetch.core import ProxyFileError
from xfetch.twitter import ProxyPool

app = typer.Typer(
    name="proxies",
    help="Proxy list tools",
    no_args_is_help=True,
)


@app.command("check")
def check(
    proxy_file: Path = typer.Option(
        ...,
        "--proxy-file",
        "-f",
        help="File with one proxy per line (# for comments)",
    ),
) -> None:
    """
    Parse a proxy list and print the proxies that would be used.

    Malformed lines are reported and skipped.

    Example:
        xfetch proxies check --proxy-file proxies.txt
    """
    pool = ProxyPool()
    try:
        count = pool.load_file(proxy_file)
    except ProxyFileError as e:
        err_console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1) from e

    err_console.print(f"[green]{count} valid proxies[/green] in {proxy_file}")
    emit_json(
        [
            {
                "url": proxy.masked_url,
                "protocol": proxy.protocol.value,
                "host": proxy.host,
                "port": proxy.port,
            }
            for proxy in pool.proxies
        ]
    )
