from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, List

import httpx
import pytest

from streambox.services.stream_status import StatusStore
from streambox.worker.monitor import (
    ProbeResult,
    StreamMonitor,
    classify_response,
    extract_sequence,
)

PROBE_URL = "http://engine:3333/app/stream/llhls.m3u8"
PLAYLIST = "#EXTM3U\n#EXT-X-MEDIA-SEQUENCE:{seq}\n#EXTINF:1.0,\nseg{seq}.ts\n"

Step = Callable[[httpx.Request], httpx.Response]


def _error(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("engine down", request=request)


def _timeout(request: httpx.Request) -> httpx.Response:
    raise httpx.ReadTimeout("probe timed out", request=request)


def _live(seq: int = 1) -> Step:
    return lambda request: httpx.Response(200, text=PLAYLIST.format(seq=seq))


def _empty(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, content=b"")


def _status(code: int) -> Step:
    return lambda request: httpx.Response(code, text="not here")


class ScriptedEngine:
    """Replays one step per probe and ticks a fake clock 2s per probe."""

    def __init__(self, steps: List[Step]):
        self.steps = list(steps)
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.requests = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests += 1
        return self.steps.pop(0)(request)

    def clock(self) -> datetime:
        current = self.now
        self.now += timedelta(seconds=2)
        return current

    def monitor(self, status: StatusStore, **kwargs) -> StreamMonitor:
        return StreamMonitor(
            status,
            PROBE_URL,
            transport=httpx.MockTransport(self.handler),
            clock=self.clock,
            **kwargs,
        )


@pytest.mark.asyncio
async def test_transition_sequence_and_uptime():
    engine = ScriptedEngine([_error, _live(1), _live(2), _empty, _live(3)])
    status = StatusStore()
    monitor = engine.monitor(status)

    states, uptimes = [], []
    for _ in range(5):
        snap = await monitor.check_once()
        states.append(snap.is_live)
        uptimes.append(snap.uptime_seconds)
    await monitor.stop()

    assert states == [False, True, True, False, True]
    assert uptimes == [0, 0, 2, 0, 0]


@pytest.mark.asyncio
async def test_uptime_grows_while_live_and_start_is_recorded():
    engine = ScriptedEngine([_live(1), _live(2), _live(3), _live(4)])
    status = StatusStore()
    monitor = engine.monitor(status)

    first = await monitor.check_once()
    started = first.stream_started_at
    assert started is not None

    previous = 0
    for _ in range(3):
        snap = await monitor.check_once()
        assert snap.uptime_seconds >= previous
        assert snap.stream_started_at == started
        previous = snap.uptime_seconds
    assert previous == 6
    await monitor.stop()


@pytest.mark.asyncio
@pytest.mark.parametrize("step", [_error, _timeout, _empty, _status(404), _status(503)])
async def test_failures_take_stream_offline_and_clear_start(step):
    engine = ScriptedEngine([_live(1), _live(2), step])
    status = StatusStore()
    monitor = engine.monitor(status)

    await monitor.check_once()
    await monitor.check_once()
    snap = await monitor.check_once()
    await monitor.stop()

    assert snap.is_live is False
    assert snap.uptime_seconds == 0
    assert snap.stream_started_at is None


@pytest.mark.asyncio
async def test_last_check_updated_every_tick():
    engine = ScriptedEngine([_error, _error, _live()])
    status = StatusStore()
    monitor = engine.monitor(status)

    checks = []
    for _ in range(3):
        checks.append((await monitor.check_once()).last_check)
    await monitor.stop()

    assert checks[0] < checks[1] < checks[2]


@pytest.mark.asyncio
async def test_transitions_logged_once(caplog):
    engine = ScriptedEngine([_live(1), _live(2), _error, _error, _error])
    monitor = engine.monitor(StatusStore())

    with caplog.at_level("INFO", logger="streambox.monitor"):
        for _ in range(5):
            await monitor.check_once()
    await monitor.stop()

    messages = [r.getMessage() for r in caplog.records if r.levelname != "DEBUG"]
    assert sum("LIVE | stream started" in m for m in messages) == 1
    assert sum(m.startswith("OFFLINE") for m in messages) == 1


@pytest.mark.asyncio
async def test_frozen_sequence_is_advisory(caplog):
    engine = ScriptedEngine([_live(7), _live(7), _live(7), _live(8)])
    status = StatusStore()
    monitor = engine.monitor(status)

    with caplog.at_level("WARNING", logger="streambox.monitor"):
        for _ in range(3):
            snap = await monitor.check_once()
            assert snap.is_live
    assert sum("FROZEN" in r.getMessage() for r in caplog.records) == 1

    snap = await monitor.check_once()
    await monitor.stop()
    assert snap.media_sequence == "8"


def test_classify_response():
    assert classify_response(httpx.Response(200, text="#EXTM3U")).live
    assert classify_response(httpx.Response(200, content=b"")) == ProbeResult(
        False, "empty response"
    )
    assert classify_response(httpx.Response(404)).reason == "HTTP 404"


def test_extract_sequence():
    assert extract_sequence(PLAYLIST.format(seq=42)) == "42"
    assert extract_sequence("#EXTM3U\n") is None


@pytest.mark.asyncio
async def test_background_loop_ticks_and_stops():
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(200, text=PLAYLIST.format(seq=calls))

    status = StatusStore()
    monitor = StreamMonitor(
        status, PROBE_URL, interval=0.01, transport=httpx.MockTransport(handler)
    )
    await monitor.start()
    assert monitor.running
    await asyncio.sleep(0.1)
    await monitor.stop()

    assert not monitor.running
    assert calls >= 2
    assert status.snapshot().is_live

    seen = calls
    await asyncio.sleep(0.05)
    assert calls == seen


@pytest.mark.asyncio
async def test_stop_before_first_tick_is_prompt():
    engine = ScriptedEngine([])
    monitor = engine.monitor(StatusStore(), interval=60)
    await monitor.start()
    await asyncio.wait_for(monitor.stop(), timeout=1)
    assert engine.requests == 0


def test_invalid_interval_rejected():
    with pytest.raises(ValueError):
        StreamMonitor(StatusStore(), PROBE_URL, interval=0)


class SlowEngine:
    """Engine whose playlist takes `delay` seconds to answer."""

    def __init__(self, delay: float):
        self.delay = delay
        self.started = 0
        self.finished = 0

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.started += 1
        await asyncio.sleep(self.delay)
        self.finished += 1
        return httpx.Response(200, text=PLAYLIST.format(seq=self.started))


@pytest.mark.asyncio
async def test_stop_mid_probe_finishes_tick_and_starts_no_more():
    engine = SlowEngine(delay=0.2)
    status = StatusStore()
    monitor = StreamMonitor(
        status, PROBE_URL, interval=0.05, transport=httpx.MockTransport(engine.handler)
    )
    await monitor.start()
    await asyncio.sleep(0.1)
    assert engine.started == 1 and engine.finished == 0

    await monitor.stop(timeout=2)

    assert not monitor.running
    assert engine.started == 1
    assert engine.finished == 1
    assert status.snapshot().last_check is not None
    assert status.snapshot().is_live

    await asyncio.sleep(0.2)
    assert engine.started == 1


@pytest.mark.asyncio
async def test_stop_deadline_cancels_stuck_probe():
    engine = SlowEngine(delay=5)
    status = StatusStore()
    monitor = StreamMonitor(
        status, PROBE_URL, interval=0.01, transport=httpx.MockTransport(engine.handler)
    )
    await monitor.start()
    await asyncio.sleep(0.05)
    assert engine.started == 1

    await asyncio.wait_for(monitor.stop(timeout=0.1), timeout=1)

    assert not monitor.running
    assert monitor._client is None
    assert engine.finished == 0
    assert status.snapshot().last_check is None
