"""
Per-app runtime components (hub, presence, status, monitor).

Set at app lifespan start on app.state; read by API routes through the
FastAPI dependencies below. No module-level instances.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from fastapi import FastAPI, Request

from streambox.core.config import Settings
from streambox.services.chat_hub import ChatHub
from streambox.services.presence import PresenceTracker
from streambox.services.stream_status import StatusStore

if TYPE_CHECKING:
    from streambox.worker.monitor import StreamMonitor


@dataclass
class Components:
    settings: Settings
    status: StatusStore
    hub: ChatHub
    presence: PresenceTracker
    monitor: StreamMonitor
    started_at: float


def set_components(app: FastAPI, components: Components) -> None:
    app.state.components = components


def get_components(request: Request) -> Components:
    components: Optional[Components] = getattr(request.app.state, "components", None)
    if components is None:
        raise RuntimeError("App state not initialized")
    return components


def get_hub(request: Request) -> ChatHub:
    return get_components(request).hub


def get_presence(request: Request) -> PresenceTracker:
    return get_components(request).presence


def get_status(request: Request) -> StatusStore:
    return get_components(request).status


def get_settings(request: Request) -> Settings:
    return get_components(request).settings
