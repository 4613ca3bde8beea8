"""
Stream Box API: chat, viewers, stream info (in-memory).

- POST /chat/send     — publish a chat message to every connected client
- GET  /chat/stream   — SSE stream: chat history, then live messages
- POST /viewer/ping   — keep a viewer session alive; returns the live count
- GET  /info          — title/description/announcement plus liveness
- POST /update        — edit title/description/announcement
- GET  /stats         — liveness, viewers, chat fanout counters
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from streambox.api.schemas import (
    DEFAULT_CHAT_COLOR,
    ChatMessage,
    ChatMessageIn,
    InfoOut,
    InfoUpdateIn,
    StatsOut,
    StatusOut,
    ViewerPingIn,
    ViewerPingOut,
)
from streambox.core.config import Settings
from streambox.services import (
    ChatHub,
    PresenceTracker,
    StatusStore,
    get_hub,
    get_presence,
    get_settings,
    get_status,
)

router = APIRouter()
logger = logging.getLogger("streambox.api")


def _sse_frame(message: ChatMessage) -> str:
    return f"data: {message.model_dump_json()}\n\n"


async def chat_event_stream(
    hub: ChatHub, heartbeat_sec: float = 15.0
) -> AsyncGenerator[str, None]:
    """
    Subscribe to the hub and yield SSE events until the client goes away.

    History is replayed first, then live messages in publish order. Messages
    published while this client's queue is full are skipped for this client.
    A comment heartbeat is sent after heartbeat_sec of silence. The
    subscription is released when the generator is closed or cancelled
    (client disconnect) or when the hub signals shutdown.
    """
    sub = hub.subscribe()
    try:
        for message in sub.history:
            yield _sse_frame(message)
        while True:
            try:
                message = await asyncio.wait_for(sub.queue.get(), timeout=heartbeat_sec)
            except asyncio.TimeoutError:
                yield ": heartbeat\n\n"
                continue
            if message is None:
                break
            yield _sse_frame(message)
    finally:
        hub.unsubscribe(sub.queue)


@router.get("/chat/stream", summary="Live chat via Server-Sent Events")
async def chat_stream(
    hub: ChatHub = Depends(get_hub),
    settings: Settings = Depends(get_settings),
):
    """
    Chat history followed by live messages.
    Connect with EventSource or: curl -N http://localhost:8080/api/chat/stream
    """
    return StreamingResponse(
        chat_event_stream(hub, settings.SSE_HEARTBEAT_SEC),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
            "Connection": "keep-alive",
        },
    )


@router.post("/chat/send", response_model=StatusOut)
async def chat_send(payload: ChatMessageIn, hub: ChatHub = Depends(get_hub)):
    """Publish one chat message. Length checks happen in ChatMessageIn."""
    message = ChatMessage(
        user=payload.user,
        text=payload.text,
        color=payload.color or DEFAULT_CHAT_COLOR,
        time=datetime.now().strftime("%H:%M"),
    )
    hub.publish(message)
    return StatusOut(status="ok")


@router.post("/viewer/ping", response_model=ViewerPingOut)
async def viewer_ping(
    request: Request, presence: PresenceTracker = Depends(get_presence)
):
    """Heartbeat from a player. A missing or unreadable body counts as a first ping."""
    raw = await request.body()
    try:
        payload = ViewerPingIn.model_validate_json(raw) if raw else ViewerPingIn()
    except ValidationError:
        payload = ViewerPingIn()
    viewer_id, count = presence.ping(payload.viewer_id, payload.offline)
    return ViewerPingOut(viewer_id=viewer_id, viewer_count=count)


@router.get("/info", response_model=InfoOut)
async def info(status: StatusStore = Depends(get_status)):
    current = status.snapshot()
    details = status.get_info()
    return InfoOut(
        title=details.title,
        description=details.description,
        announcement=details.announcement,
        is_live=current.is_live,
        uptime=current.uptime_seconds,
        viewer_count=current.viewer_count,
    )


@router.post("/update", response_model=StatusOut)
async def update_info(payload: InfoUpdateIn, status: StatusStore = Depends(get_status)):
    status.update_info(payload.title, payload.description, payload.announcement)
    logger.info("Admin update: title=%r", payload.title)
    return StatusOut(status="success")


@router.get("/stats", response_model=StatsOut)
async def stats(
    status: StatusStore = Depends(get_status), hub: ChatHub = Depends(get_hub)
):
    """Liveness and viewers from the status record; last_check is seconds ago."""
    current = status.snapshot()
    last_check = None
    if current.last_check is not None:
        last_check = (datetime.now(timezone.utc) - current.last_check).total_seconds()
    return StatsOut(
        is_live=current.is_live,
        uptime=current.uptime_seconds,
        viewer_count=current.viewer_count,
        last_check=last_check,
        stream_started_at=current.stream_started_at,
        media_sequence=current.media_sequence,
        chat_subscribers=hub.subscriber_count,
        chat_dropped=hub.dropped,
    )
