"""
In-memory chat hub for SSE fanout.

- Each SSE client gets a bounded queue; publish() appends to a fixed-size
  history and forwards to every queue without blocking.
- A full queue means a slow client: the message is dropped for that client
  only. Delivery is lossy by design of the drop-on-full policy; per-client
  order is preserved and nothing is delivered twice.
- close() pushes an end-of-stream marker (None) so streams can finish on
  shutdown.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Set

from streambox.api.schemas import ChatMessage

logger = logging.getLogger("streambox.chat")


@dataclass
class Subscription:
    """A registered client queue plus the history it should replay first."""
    queue: "asyncio.Queue[Optional[ChatMessage]]"
    history: List[ChatMessage]


class ChatHub:
    """Bounded-history broadcast: publish(msg) reaches every subscribed client."""

    def __init__(self, history_size: int = 50, queue_maxsize: int = 10):
        if history_size <= 0 or queue_maxsize <= 0:
            raise ValueError("history_size and queue_maxsize must be positive")
        self._lock = threading.Lock()
        self._history: Deque[ChatMessage] = deque(maxlen=history_size)
        self._queues: Set["asyncio.Queue[Optional[ChatMessage]]"] = set()
        self._queue_maxsize = queue_maxsize
        self._dropped = 0
        self._closed = False

    def publish(self, message: ChatMessage) -> None:
        """Record message in history and offer it to every subscriber."""
        with self._lock:
            self._history.append(message)
            for q in self._queues:
                try:
                    q.put_nowait(message)
                except asyncio.QueueFull:
                    self._dropped += 1
        logger.debug("chat from %s fanned out", message.user)

    def subscribe(self) -> Subscription:
        """Register a fresh queue; the history snapshot is taken atomically with it."""
        q: "asyncio.Queue[Optional[ChatMessage]]" = asyncio.Queue(
            maxsize=self._queue_maxsize
        )
        with self._lock:
            history = list(self._history)
            if self._closed:
                # late connection during shutdown: replay history, then end
                q.put_nowait(None)
            else:
                self._queues.add(q)
        return Subscription(queue=q, history=history)

    def unsubscribe(self, queue: "asyncio.Queue[Optional[ChatMessage]]") -> None:
        """Deregister queue. Unknown or already removed queues are ignored."""
        with self._lock:
            self._queues.discard(queue)

    def close(self) -> None:
        """Signal end-of-stream to every subscriber and drop all registrations."""
        with self._lock:
            self._closed = True
            queues, self._queues = self._queues, set()
        for q in queues:
            while True:
                try:
                    q.put_nowait(None)
                    break
                except asyncio.QueueFull:
                    # Make room; the client is going away anyway.
                    q.get_nowait()
        if queues:
            logger.info("chat hub closed %d stream(s)", len(queues))

    def history(self) -> List[ChatMessage]:
        with self._lock:
            return list(self._history)

    @property
    def history_size(self) -> int:
        return self._history.maxlen or 0

    @property
    def dropped(self) -> int:
        return self._dropped

    @property
    def subscriber_count(self) -> int:
        return len(self._queues)
