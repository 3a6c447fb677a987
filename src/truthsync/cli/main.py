"""truthsync CLI — watch the engine state, send heartbeats, pause/resume.

Usage:
    truthsync watch                      # Live status line per update (Ctrl-C to stop)
    truthsync watch --seconds 30         # ...for 30 seconds
    truthsync state                      # One-shot snapshot, pretty JSON
    truthsync health                     # Engine health
    truthsync heartbeat                  # Single dead-man's-switch heartbeat
    truthsync pause | resume | kill      # Control commands (admin token required)
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import sys
from typing import Optional

import click
from pydantic import ValidationError

from truthsync import __version__
from truthsync.api.client import TruthClient
from truthsync.api.errors import ApiError, AuthError
from truthsync.config import Settings
from truthsync.logging_config import configure_logging
from truthsync.state.accessor import StateView, TruthState

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _client(cfg: Settings) -> TruthClient:
    """Build a REST client pointed at the engine."""
    return TruthClient(cfg.api_url, cfg.admin_token, timeout=cfg.http_timeout_s)


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _fail(err: ApiError) -> None:
    click.secho(f"Error: {err}", fg="red", err=True)
    if isinstance(err, AuthError):
        click.secho(
            "Hint: set TRUTHSYNC_ADMIN_TOKEN (or pass --token) to the engine's admin token.",
            fg="yellow",
            err=True,
        )
    sys.exit(1)


def _status_line(view: StateView) -> str:
    """One line summarizing a StateView."""
    if view.connected:
        source = click.style("LIVE", fg="green")
    elif view.state is not None:
        source = click.style("POLL", fg="yellow")
    else:
        source = click.style("DOWN", fg="red")

    if view.loading:
        body = "loading..."
    elif isinstance(view.state, dict):
        body = f"state_version={view.state.get('state_version', '-')}"
    else:
        body = "no state"

    line = f"[{source}] {body}"
    if view.last_event is not None and view.last_event.event_type:
        line += f" | last event: {view.last_event.event_type}"
    if view.error:
        line += " | " + click.style(view.error, fg="red")
    return line


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="truthsync")
@click.option("--api-url", help="Engine base URL (or set TRUTHSYNC_API_URL)")
@click.option("--token", help="Admin token (or set TRUTHSYNC_ADMIN_TOKEN)")
@click.pass_context
def main(ctx: click.Context, api_url: Optional[str], token: Optional[str]):
    """truthsync — live engine state with REST fallback and heartbeat."""
    overrides = {}
    if api_url:
        overrides["api_url"] = api_url
    if token:
        overrides["admin_token"] = token
    try:
        cfg = Settings(**overrides)
    except ValidationError as e:
        raise click.UsageError(str(e)) from e

    configure_logging(cfg.log_level, cfg.log_json)
    ctx.obj = cfg


# ---------------------------------------------------------------------------
# truthsync watch
# ---------------------------------------------------------------------------


@main.command()
@click.option("--seconds", type=float, default=None, help="Stop after N seconds")
@click.pass_obj
def watch(cfg: Settings, seconds: Optional[float]):
    """Follow the live state; falls back to polling while disconnected."""
    try:
        _run(_watch_impl(cfg, seconds))
    except KeyboardInterrupt:
        click.echo()
        click.echo("Stopped.")


async def _watch_impl(cfg: Settings, seconds: Optional[float]):
    async with TruthState.from_settings(cfg) as truth:
        last_line: Optional[str] = None

        def render() -> None:
            nonlocal last_line
            line = _status_line(truth.view())
            if line != last_line:
                click.echo(line)
                last_line = line

        truth.subscribe(render)
        render()

        if seconds is None:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(seconds)


# ---------------------------------------------------------------------------
# One-shot commands
# ---------------------------------------------------------------------------


@main.command()
@click.pass_obj
def state(cfg: Settings):
    """Fetch one full snapshot over REST."""
    click.echo(_pretty_json(_invoke(cfg, "fetch_state")))


@main.command()
@click.pass_obj
def health(cfg: Settings):
    """Show the engine health endpoint."""
    data = _invoke(cfg, "fetch_health")
    status = data.get("status", "unknown") if isinstance(data, dict) else "unknown"
    color = "green" if status == "ok" else "yellow"
    click.secho(f"Engine: {status}", fg=color, bold=True)
    click.echo(_pretty_json(data))


@main.command()
@click.pass_obj
def heartbeat(cfg: Settings):
    """Send one dead-man's-switch heartbeat."""
    _invoke(cfg, "send_heartbeat")
    click.secho("Heartbeat sent", fg="green")


@main.command()
@click.pass_obj
def pause(cfg: Settings):
    """Pause trading."""
    _invoke(cfg, "pause")
    click.secho("Engine paused", fg="yellow")


@main.command()
@click.pass_obj
def resume(cfg: Settings):
    """Resume trading."""
    _invoke(cfg, "resume")
    click.secho("Engine resumed", fg="green")


@main.command()
@click.confirmation_option(prompt="Kill switch: flatten and stop the engine?")
@click.pass_obj
def kill(cfg: Settings):
    """Trigger the engine kill switch."""
    _invoke(cfg, "kill")
    click.secho("Kill switch triggered", fg="red", bold=True)


# ---------------------------------------------------------------------------
# REST plumbing
# ---------------------------------------------------------------------------


def _invoke(cfg: Settings, method: str):
    """Call one TruthClient method; API errors exit with status 1."""
    try:
        return _run(_call(cfg, method))
    except ApiError as e:
        _fail(e)


async def _call(cfg: Settings, method: str):
    async with _client(cfg) as c:
        return await getattr(c, method)()
