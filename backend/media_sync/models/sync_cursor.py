from sqlalchemy import Column, String, DateTime
from media_sync.db.base_class import Base


class SyncCursor(Base):
    """
    Last successful queue update per content type.

    @description Holds the *start* time of the last fully completed pass.
    """
    __tablename__ = "sync_cursors"

    content_type = Column(String, primary_key=True)
    last_update = Column(DateTime, nullable=False)
