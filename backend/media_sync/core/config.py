from pydantic_settings import BaseSettings
from typing import List, Optional, NamedTuple


class SyncPolicy(NamedTuple):
    autoupdate: bool
    interval: int  # seconds between scheduled queue updates
    lookback_days: Optional[int]  # None means "since epoch" on first sync


class Settings(BaseSettings):
    PROJECT_NAME: str = "Media Manager Sync"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:////db/media_manager.db"

    # Redis / Celery
    REDIS_URL: str = "redis://localhost:6379/0"
    TIMEZONE: str = "UTC"

    # Media Manager API
    MM_API_KEY: Optional[str] = None
    MM_API_SECRET: Optional[str] = None
    MM_BASE_URI: str = "staging"  # "live", "staging" or a full URL
    MM_REQUEST_TIMEOUT: float = 60.0

    # Shows queue
    SHOWS_AUTOUPDATE: bool = False
    SHOWS_AUTOUPDATE_INTERVAL: int = 60 * 60 * 24
    SHOWS_DEFAULT_LOOKBACK_DAYS: Optional[int] = None
    SHOW_IDS: str = ""  # Comma separated Show GUIDs, empty syncs every Show

    # Video Content queue
    VIDEO_CONTENT_AUTOUPDATE: bool = False
    VIDEO_CONTENT_AUTOUPDATE_INTERVAL: int = 60 * 60
    VIDEO_CONTENT_DEFAULT_LOOKBACK_DAYS: Optional[int] = 7

    # Queue builder
    SYNC_BATCH_SIZE: int = 50
    SYNC_TIME_LIMIT: int = 0  # seconds, 0 = no limit
    RECONCILE_LOCK_TIMEOUT: int = 300

    class Config:
        env_file = ".env"

    @property
    def show_id_list(self) -> List[str]:
        return [s.strip() for s in self.SHOW_IDS.split(",") if s.strip()]

    def policy(self, content_type: str) -> SyncPolicy:
        """Autoupdate and first-sync settings for a content type."""
        if content_type == "shows":
            return SyncPolicy(
                self.SHOWS_AUTOUPDATE,
                self.SHOWS_AUTOUPDATE_INTERVAL,
                self.SHOWS_DEFAULT_LOOKBACK_DAYS,
            )
        if content_type == "video_content":
            return SyncPolicy(
                self.VIDEO_CONTENT_AUTOUPDATE,
                self.VIDEO_CONTENT_AUTOUPDATE_INTERVAL,
                self.VIDEO_CONTENT_DEFAULT_LOOKBACK_DAYS,
            )
        raise ValueError(f"Unknown content type: {content_type}")

settings = Settings()
