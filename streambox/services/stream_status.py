"""
Shared stream status record.

- Liveness fields are written only by the stream monitor.
- viewer_count is written only by the presence tracker.
- Readers get a full copy; the two writers are independent, so a snapshot
  is consistent per field, not jointly atomic across them.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class StreamStatus:
    is_live: bool = False
    uptime_seconds: int = 0
    viewer_count: int = 0
    last_check: Optional[datetime] = None
    stream_started_at: Optional[datetime] = None
    media_sequence: Optional[str] = None


@dataclass(frozen=True)
class StreamInfo:
    title: str = "Live Stream"
    description: str = "The stream has not started yet..."
    announcement: str = ""


class StatusStore:
    """Lock-guarded owner of StreamStatus and StreamInfo."""

    def __init__(self, info: Optional[StreamInfo] = None) -> None:
        self._lock = threading.Lock()
        self._status = StreamStatus()
        self._info = info or StreamInfo()

    def snapshot(self) -> StreamStatus:
        with self._lock:
            return self._status

    def update_liveness(
        self,
        *,
        is_live: bool,
        uptime_seconds: int,
        last_check: datetime,
        stream_started_at: Optional[datetime],
        media_sequence: Optional[str] = None,
    ) -> None:
        with self._lock:
            self._status = replace(
                self._status,
                is_live=is_live,
                uptime_seconds=uptime_seconds,
                last_check=last_check,
                stream_started_at=stream_started_at,
                media_sequence=media_sequence,
            )

    def set_viewer_count(self, count: int) -> None:
        with self._lock:
            self._status = replace(self._status, viewer_count=count)

    def get_info(self) -> StreamInfo:
        with self._lock:
            return self._info

    def update_info(self, title: str, description: str, announcement: str) -> None:
        with self._lock:
            self._info = StreamInfo(
                title=title, description=description, announcement=announcement
            )
