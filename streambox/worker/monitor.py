"""
Stream liveness monitor.

- Polls the media engine playlist on a fixed interval.
- Transport error, non-200 or empty body -> OFFLINE; 200 with a body -> LIVE.
- Writes is_live / uptime / last_check into the shared StatusStore.
- The next tick is the retry: no backoff, no out-of-band retries.
"""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import httpx

from streambox.services.stream_status import StatusStore, StreamStatus

logger = logging.getLogger("streambox.monitor")

_SEQUENCE_RE = re.compile(r"#EXT-X-MEDIA-SEQUENCE:(\d+)")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _http_client_factory(**kwargs: Any) -> httpx.AsyncClient:
    timeout = kwargs.pop("timeout", 5.0)
    return httpx.AsyncClient(timeout=timeout, **kwargs)


def extract_sequence(playlist: str) -> Optional[str]:
    """Return the HLS media sequence number of a playlist, if present.

    Advisory only: the live/offline verdict never depends on it.
    """
    match = _SEQUENCE_RE.search(playlist)
    return match.group(1) if match else None


@dataclass(frozen=True)
class ProbeResult:
    live: bool
    reason: str
    body: str = ""


def classify_response(response: httpx.Response) -> ProbeResult:
    if response.status_code != 200:
        return ProbeResult(False, f"HTTP {response.status_code}")
    if not response.content:
        return ProbeResult(False, "empty response")
    return ProbeResult(True, "ok", response.text)


class StreamMonitor:
    def __init__(
        self,
        status: StatusStore,
        probe_url: str,
        interval: float = 2.0,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if interval <= 0 or timeout <= 0:
            raise ValueError("interval and timeout must be positive")
        self._status = status
        self._probe_url = probe_url
        self._interval = interval
        self._timeout = timeout
        self._transport = transport
        self._clock = clock
        self._client: Optional[httpx.AsyncClient] = None
        self._task: Optional[asyncio.Task[None]] = None
        self._stopping = asyncio.Event()

        self._live = False
        self._started_at: Optional[datetime] = None
        self._last_sequence: Optional[str] = None
        self._frozen = False

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            kwargs: dict[str, Any] = {"timeout": self._timeout}
            if self._transport is not None:
                kwargs["transport"] = self._transport
            self._client = _http_client_factory(**kwargs)
        return self._client

    async def probe(self) -> ProbeResult:
        """One bounded GET against the probe URL. Never raises for HTTP failures."""
        try:
            response = await self._get_client().get(self._probe_url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            return ProbeResult(False, f"connection error: {exc!r}")
        return classify_response(response)

    def apply(self, result: ProbeResult, now: Optional[datetime] = None) -> StreamStatus:
        """Advance the OFFLINE/LIVE state machine with one probe observation."""
        now = now or self._clock()
        if result.live:
            if not self._live:
                logger.info("LIVE | stream started")
                self._started_at = now
            self._live = True
            self._track_sequence(extract_sequence(result.body))
        else:
            if self._live:
                logger.warning("OFFLINE | %s", result.reason)
            self._live = False
            self._started_at = None
            self._last_sequence = None
            self._frozen = False

        uptime = 0
        if self._live and self._started_at is not None:
            uptime = max(0, int((now - self._started_at).total_seconds()))

        self._status.update_liveness(
            is_live=self._live,
            uptime_seconds=uptime,
            last_check=now,
            stream_started_at=self._started_at,
            media_sequence=self._last_sequence,
        )
        logger.debug(
            "tick: %s (%s) uptime=%ds seq=%s",
            "LIVE" if self._live else "OFFLINE",
            result.reason,
            uptime,
            self._last_sequence,
        )
        return self._status.snapshot()

    def _track_sequence(self, seq: Optional[str]) -> None:
        if seq is None:
            return
        if seq == self._last_sequence:
            if not self._frozen:
                logger.warning("FROZEN | media sequence stuck at %s", seq)
                self._frozen = True
        else:
            if self._frozen:
                logger.info("LIVE | media sequence advancing again (%s)", seq)
            self._frozen = False
            self._last_sequence = seq

    async def check_once(self) -> StreamStatus:
        result = await self.probe()
        return self.apply(result)

    async def start(self) -> None:
        if self.running:
            return
        self._stopping = asyncio.Event()
        self._task = asyncio.create_task(self._run_loop(), name="stream-monitor")
        logger.info(
            "Starting stream monitor: %s (every %.1fs, timeout %.1fs)",
            self._probe_url,
            self._interval,
            self._timeout,
        )

    async def stop(self, timeout: Optional[float] = None) -> None:
        """Finish the in-flight tick, never start another, then release the client."""
        self._stopping.set()
        task, self._task = self._task, None
        if task is not None:
            deadline = timeout if timeout is not None else self._timeout + 1.0
            try:
                await asyncio.wait_for(asyncio.shield(task), timeout=deadline)
            except asyncio.TimeoutError:
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        logger.info("Stream monitor stopped")

    async def _run_loop(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self._interval
        while not self._stopping.is_set():
            delay = next_tick - loop.time()
            if delay > 0:
                try:
                    await asyncio.wait_for(self._stopping.wait(), timeout=delay)
                    return
                except asyncio.TimeoutError:
                    pass
            # wait_for(timeout=0) never runs the wait, so re-check before probing
            if self._stopping.is_set():
                return
            try:
                await self.check_once()
            except Exception as exc:
                logger.warning("monitor tick error: %s", exc)
            # a probe that overran the interval swallows the missed ticks
            next_tick = max(next_tick + self._interval, loop.time())
