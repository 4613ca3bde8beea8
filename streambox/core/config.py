from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── API ───────────────────────────────────────────────────
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8080
    API_PREFIX: str = "/api"
    VERSION: str = "2.0.0"
    LOG_LEVEL: str = "INFO"
    SHUTDOWN_TIMEOUT_SEC: float = Field(default=10.0, gt=0)

    # ── Media engine probe ────────────────────────────────────
    ENGINE_URL: str = "http://engine:3333"
    PROBE_PATH: str = "/app/stream/llhls.m3u8"
    CHECK_INTERVAL: float = Field(default=2.0, gt=0)
    PROBE_TIMEOUT_SEC: float = Field(default=5.0, gt=0)

    # ── Chat ──────────────────────────────────────────────────
    CHAT_HISTORY_SIZE: int = Field(default=50, gt=0)
    CHAT_QUEUE_SIZE: int = Field(default=10, gt=0)
    SSE_HEARTBEAT_SEC: float = Field(default=15.0, gt=0)

    # ── Viewers ───────────────────────────────────────────────
    VIEWER_TTL_SEC: float = Field(default=35.0, gt=0)

    @property
    def probe_url(self) -> str:
        """Playlist URL whose availability signals a live stream."""
        return self.ENGINE_URL.rstrip("/") + "/" + self.PROBE_PATH.lstrip("/")


settings = Settings()
