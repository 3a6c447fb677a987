"""Tests for the truthsync CLI — REST commands against a mocked engine."""

import json

import httpx
import pytest
from click.testing import CliRunner

from truthsync.api.client import TruthClient
from truthsync.cli import main as cli
from truthsync.schemas.stream import EventMessage
from truthsync.state.accessor import StateView


@pytest.fixture()
def engine(monkeypatch):
    """Point every CLI command at an httpx.MockTransport handler."""
    monkeypatch.delenv("TRUTHSYNC_ADMIN_TOKEN", raising=False)
    monkeypatch.delenv("TRUTHSYNC_API_URL", raising=False)
    monkeypatch.setattr(cli, "configure_logging", lambda *args, **kwargs: None)
    requests = []
    responses = {}

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return responses.get(request.url.path, httpx.Response(404))

    def fake_client(cfg):
        return TruthClient(
            cfg.api_url, cfg.admin_token, transport=httpx.MockTransport(handler)
        )

    monkeypatch.setattr(cli, "_client", fake_client)
    return requests, responses


def test_state_prints_snapshot(engine):
    requests, responses = engine
    responses["/api/v1/state"] = httpx.Response(200, json={"state_version": 12})

    result = CliRunner().invoke(cli.main, ["--token", "tok", "state"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"state_version": 12}
    assert requests[0].headers["Authorization"] == "Bearer tok"


def test_state_forbidden_exits_with_hint(engine):
    _, responses = engine
    responses["/api/v1/state"] = httpx.Response(403)

    result = CliRunner().invoke(cli.main, ["state"])

    assert result.exit_code == 1
    assert "403: Missing or invalid admin token" in result.output
    assert "TRUTHSYNC_ADMIN_TOKEN" in result.output


def test_pause_without_token_fails_locally(engine):
    requests, _ = engine

    result = CliRunner().invoke(cli.main, ["pause"])

    assert result.exit_code == 1
    assert "Admin token required" in result.output
    assert requests == []


def test_pause_with_token(engine):
    requests, responses = engine
    responses["/api/v1/control/pause"] = httpx.Response(200, json={"ok": True})

    result = CliRunner().invoke(cli.main, ["--token", "tok", "pause"])

    assert result.exit_code == 0, result.output
    assert "Engine paused" in result.output
    assert requests[0].method == "POST"


def test_kill_requires_confirmation(engine):
    requests, responses = engine
    responses["/api/v1/control/kill"] = httpx.Response(200, json={"ok": True})

    aborted = CliRunner().invoke(cli.main, ["--token", "tok", "kill"], input="n\n")
    assert aborted.exit_code == 1
    assert requests == []

    confirmed = CliRunner().invoke(cli.main, ["--token", "tok", "kill", "--yes"])
    assert confirmed.exit_code == 0, confirmed.output
    assert requests[0].url.path == "/api/v1/control/kill"


def test_heartbeat_command(engine):
    requests, responses = engine
    responses["/api/v1/heartbeat"] = httpx.Response(204)

    result = CliRunner().invoke(cli.main, ["--token", "tok", "heartbeat"])

    assert result.exit_code == 0, result.output
    assert "Heartbeat sent" in result.output
    assert requests[0].url.path == "/api/v1/heartbeat"


def test_health_command(engine):
    _, responses = engine
    responses["/api/v1/health"] = httpx.Response(200, json={"status": "ok"})

    result = CliRunner().invoke(cli.main, ["health"])

    assert result.exit_code == 0, result.output
    assert "Engine: ok" in result.output


def test_invalid_settings_are_usage_errors(engine, monkeypatch):
    monkeypatch.setenv("TRUTHSYNC_POLL_INTERVAL_S", "0")

    result = CliRunner().invoke(cli.main, ["state"])

    assert result.exit_code == 2
    assert "POLL_INTERVAL_S" in result.output


# ═══════════════════════════════════════════════════════════
# Status line
# ═══════════════════════════════════════════════════════════


def test_status_line_live():
    view = StateView(
        state={"state_version": 3},
        error=None,
        connected=True,
        loading=False,
        last_event=EventMessage(
            type="event", state_version=3, timestamp=0, event_type="order_filled"
        ),
    )
    line = cli._status_line(view)

    assert "LIVE" in line
    assert "state_version=3" in line
    assert "last event: order_filled" in line


def test_status_line_polling_with_error():
    view = StateView(
        state={"state_version": 2},
        error="WebSocket connection error: refused",
        connected=False,
        loading=False,
    )
    line = cli._status_line(view)

    assert "POLL" in line
    assert "WebSocket connection error" in line


def test_status_line_down_and_loading():
    line = cli._status_line(StateView(None, None, False, True))
    assert "DOWN" in line
    assert "loading..." in line
