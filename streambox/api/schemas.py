"""API request/response schemas."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CHAT_COLOR = "#fb7185"


class ChatMessageIn(BaseModel):
    """Chat payload as posted by a client. Lengths are counted in characters."""
    user: str = Field(min_length=1, max_length=32)
    text: str = Field(min_length=1, max_length=280)
    color: Optional[str] = None


class ChatMessage(BaseModel):
    """Published chat message; immutable once it reaches the hub."""
    model_config = ConfigDict(frozen=True)

    user: str
    text: str
    color: str = DEFAULT_CHAT_COLOR
    time: str


class ViewerPingIn(BaseModel):
    viewer_id: Optional[str] = None
    offline: bool = False


class ViewerPingOut(BaseModel):
    viewer_id: str
    viewer_count: int


class InfoUpdateIn(BaseModel):
    title: str = ""
    description: str = ""
    announcement: str = ""


class InfoOut(BaseModel):
    """Editable stream info merged with the current liveness fields."""
    title: str
    description: str
    announcement: str
    is_live: bool
    uptime: int
    viewer_count: int


class StatsOut(BaseModel):
    is_live: bool = False
    uptime: int = 0
    viewer_count: int = 0
    last_check: Optional[float] = None
    stream_started_at: Optional[datetime] = None
    media_sequence: Optional[str] = None
    # Chat fan-out observability
    chat_subscribers: int = 0
    chat_dropped: int = 0


class StatusOut(BaseModel):
    status: str


class HealthOut(BaseModel):
    status: str
    version: str
    uptime: int
