from streambox.services.chat_hub import ChatHub, Subscription
from streambox.services.presence import PresenceTracker, new_viewer_id
from streambox.services.stream_status import StatusStore, StreamInfo, StreamStatus
from streambox.services.app_state import (
    Components,
    get_components,
    get_hub,
    get_presence,
    get_settings,
    get_status,
    set_components,
)

__all__ = [
    "ChatHub",
    "Components",
    "PresenceTracker",
    "StatusStore",
    "StreamInfo",
    "StreamStatus",
    "Subscription",
    "get_components",
    "get_hub",
    "get_presence",
    "get_settings",
    "get_status",
    "new_viewer_id",
    "set_components",
]
