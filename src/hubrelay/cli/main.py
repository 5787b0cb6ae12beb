"""hubrelay CLI — run the relay, negotiate, and broadcast from a shell.

Usage:
    hubrelay serve                               # Run the relay with uvicorn
    hubrelay negotiate                           # Print connection info
    hubrelay send "taxi-update-42"               # Broadcast a payload
    cat update.json | hubrelay send -            # Broadcast stdin
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

from hubrelay import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("HUBRELAY_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the relay."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Handles nested event loops (e.g. CliRunner inside an async test)
    by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _error_detail(r: httpx.Response) -> str:
    try:
        return r.json().get("detail", r.text)
    except (ValueError, AttributeError):
        return r.text


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="hubrelay")
def main():
    """hubrelay — negotiate + broadcast relay for a real-time hub."""


@main.command()
@click.option("--host", help="Bind address (default: HUBRELAY_HOST)")
@click.option("--port", type=int, help="Bind port (default: HUBRELAY_PORT)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the relay server."""
    import uvicorn

    from hubrelay.config import settings

    uvicorn.run(
        "hubrelay.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@main.command()
def negotiate():
    """Fetch connection info (url + access token) for the hub."""
    _run(_negotiate_impl())


async def _negotiate_impl():
    async with _client() as c:
        r = await c.post("/api/negotiate")
    if r.status_code != 200:
        click.secho(f"Negotiate failed ({r.status_code}): {_error_detail(r)}", fg="red", err=True)
        sys.exit(1)
    click.echo(json.dumps(r.json(), indent=2))


@main.command()
@click.argument("payload")
@click.option(
    "--key", "-k",
    envvar="HUBRELAY_FUNCTION_KEY",
    help="Function key (or set HUBRELAY_FUNCTION_KEY)",
)
def send(payload: str, key: Optional[str]):
    """Broadcast PAYLOAD to every hub subscriber.

    Pass "-" to read the payload from stdin.
    """
    if payload == "-":
        payload = click.get_text_stream("stdin").read()
    _run(_send_impl(payload, key))


async def _send_impl(payload: str, key: Optional[str]):
    headers = {"Content-Type": "text/plain; charset=utf-8"}
    if key:
        headers["x-functions-key"] = key
    async with _client() as c:
        r = await c.post("/api/message", content=payload.encode("utf-8"), headers=headers)
    if r.status_code != 200:
        click.secho(f"Broadcast failed ({r.status_code}): {_error_detail(r)}", fg="red", err=True)
        sys.exit(1)
    click.secho("Broadcast accepted", fg="green")


if __name__ == "__main__":
    main()
