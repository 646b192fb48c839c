from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from media_sync.models.sync_cursor import SyncCursor


class TimeCursorStore:
    """
    Persists the "synced up to" time per content type.

    Only the queue builder writes the cursor, and only after a full pass.
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, content_type: str, default: Optional[datetime] = None) -> Optional[datetime]:
        cursor = self.db.get(SyncCursor, content_type)
        if cursor is None:
            return default
        return cursor.last_update

    def set(self, content_type: str, time: datetime) -> None:
        cursor = self.db.get(SyncCursor, content_type)
        if cursor is None:
            cursor = SyncCursor(content_type=content_type, last_update=time)
            self.db.add(cursor)
        else:
            cursor.last_update = time
        self.db.commit()

    def clear(self, content_type: str) -> None:
        cursor = self.db.get(SyncCursor, content_type)
        if cursor is not None:
            self.db.delete(cursor)
            self.db.commit()
