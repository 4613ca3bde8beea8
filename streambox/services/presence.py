"""
Viewer presence from best-effort pings.

Each ping prunes sessions older than the TTL before mutating, so the count
always matches "viewers seen within TTL" at the instant of the call.
"""
from __future__ import annotations

import logging
import secrets
import threading
import time
from typing import Callable, Dict, Optional, Tuple

from streambox.services.stream_status import StatusStore

logger = logging.getLogger("streambox.presence")

DEFAULT_VIEWER_TTL_SEC = 35.0


def new_viewer_id() -> str:
    """Unguessable viewer id; degrades to a timestamp id if the OS RNG fails."""
    try:
        return secrets.token_hex(16)
    except (OSError, NotImplementedError) as exc:
        logger.warning("secure random source unavailable, using fallback id: %s", exc)
        return f"fallback-{time.time_ns()}"


class PresenceTracker:
    def __init__(
        self,
        status: Optional[StatusStore] = None,
        ttl: float = DEFAULT_VIEWER_TTL_SEC,
        clock: Callable[[], float] = time.monotonic,
        id_factory: Callable[[], str] = new_viewer_id,
    ) -> None:
        self._lock = threading.Lock()
        self._sessions: Dict[str, float] = {}
        self._status = status
        self._ttl = ttl
        self._clock = clock
        self._id_factory = id_factory

    def _prune_locked(self, now: float) -> None:
        expired = [vid for vid, seen in self._sessions.items() if now - seen > self._ttl]
        for vid in expired:
            del self._sessions[vid]

    def ping(
        self, viewer_id: Optional[str] = None, offline: bool = False
    ) -> Tuple[str, int]:
        """Refresh (or end) a viewer session. Returns (viewer id used, live count)."""
        with self._lock:
            now = self._clock()
            self._prune_locked(now)
            vid = viewer_id or ""
            if offline:
                if vid:
                    self._sessions.pop(vid, None)
            else:
                if not vid:
                    vid = self._id_factory()
                self._sessions[vid] = now
            count = len(self._sessions)

        if self._status is not None:
            self._status.set_viewer_count(count)
        return vid, count

    def count(self) -> int:
        with self._lock:
            self._prune_locked(self._clock())
            return len(self._sessions)
