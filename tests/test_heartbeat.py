"""Tests for HeartbeatEmitter."""

import asyncio

import pytest

from conftest import wait_for
from truthsync.api.errors import HTTPStatusError
from truthsync.state.heartbeat import HeartbeatEmitter


@pytest.mark.asyncio
async def test_first_beat_waits_one_interval():
    calls = []

    async def send():
        calls.append(1)

    emitter = HeartbeatEmitter(send, interval=0.05)
    emitter.start()
    await asyncio.sleep(0.01)
    assert calls == []

    await wait_for(lambda: calls)
    await emitter.aclose()
    assert emitter.sent >= 1


@pytest.mark.asyncio
async def test_failures_are_swallowed_and_counted():
    async def send():
        raise HTTPStatusError("Heartbeat 500", 500)

    emitter = HeartbeatEmitter(send, interval=0.01)
    emitter.start()
    await wait_for(lambda: emitter.failed >= 3)

    assert emitter.running
    assert emitter.sent == 0
    await emitter.aclose()
    assert not emitter.running


@pytest.mark.asyncio
async def test_unexpected_exception_does_not_stop_beats():
    calls = []

    async def send():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("bug in send")

    emitter = HeartbeatEmitter(send, interval=0.01)
    emitter.start()
    await wait_for(lambda: emitter.sent >= 2)
    await emitter.aclose()


@pytest.mark.asyncio
async def test_stop_halts_beats():
    calls = []

    async def send():
        calls.append(1)

    emitter = HeartbeatEmitter(send, interval=0.01)
    emitter.start()
    await wait_for(lambda: calls)
    emitter.stop()
    count = len(calls)
    await asyncio.sleep(0.05)

    assert len(calls) == count
