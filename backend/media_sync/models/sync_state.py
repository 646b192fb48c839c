from sqlalchemy import Column, Integer, String, DateTime, Enum as SQLEnum
from media_sync.db.base_class import Base
import enum

class ContentType(str, enum.Enum):
    SHOWS = "shows"
    VIDEO_CONTENT = "video_content"

class SyncStatus(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

class SyncState(Base):
    __tablename__ = "sync_states"

    id = Column(Integer, primary_key=True, index=True)
    content_type = Column(String, unique=True, nullable=False)
    status = Column(SQLEnum(SyncStatus), nullable=False, default=SyncStatus.IDLE)
    last_sync = Column(DateTime, nullable=True)  # Start of the last queue update
    completed_at = Column(DateTime, nullable=True)
    items_queued = Column(Integer, nullable=False, default=0)
    items_skipped = Column(Integer, nullable=False, default=0)
    items_failed = Column(Integer, nullable=False, default=0)
    error_message = Column(String, nullable=True)
    task_id = Column(String, nullable=True)  # Celery task ID
