#!/usr/bin/env python3
"""
truthsync example — three dashboard panels, one WebSocket.

Each panel gets its own TruthState, but all three share a single
ConnectionMultiplexer, so the engine sees exactly one stream client.
Kill the engine while this runs and watch the panels drop to POLL,
then come back to LIVE once it restarts.

Run with: python examples/shared_consumers.py [seconds]

Requires: pip install -e .
Engine must be running: http://127.0.0.1:3001 (or set TRUTHSYNC_API_URL)
"""

import asyncio
import sys

from truthsync.config import settings
from truthsync.logging_config import configure_logging
from truthsync.realtime.multiplexer import ConnectionMultiplexer
from truthsync.state.accessor import TruthState

PANELS = ("positions", "orders", "risk")


async def main(seconds: float):
    configure_logging(settings.log_level, settings.log_json)

    # ── One multiplexer for the whole process ────────────────────
    first = TruthState.from_settings(settings)
    mux: ConnectionMultiplexer = first.multiplexer
    truths = [first] + [
        TruthState.from_settings(settings, multiplexer=mux) for _ in PANELS[1:]
    ]

    # ── Each panel renders on its own ────────────────────────────
    for name, truth in zip(PANELS, truths):
        def render(name=name, truth=truth):
            view = truth.view()
            source = "LIVE" if view.connected else "POLL"
            version = (view.state or {}).get("state_version", "-")
            print(f"  [{name:<9}] {source} state_version={version}"
                  + (f" error={view.error}" if view.error else ""))

        truth.subscribe(render)
        truth.start()

    print(f"Panels: {len(truths)}  Stream subscribers: {mux.subscriber_count}")

    try:
        await asyncio.sleep(seconds)
    finally:
        # ── Last panel out closes the socket ─────────────────────
        for truth in truths:
            await truth.aclose()
        print(f"\nClosed. Stream subscribers: {mux.subscriber_count}")


if __name__ == "__main__":
    duration = float(sys.argv[1]) if len(sys.argv) > 1 else 30.0
    try:
        asyncio.run(main(duration))
    except KeyboardInterrupt:
        pass
