# Import Base class
from media_sync.db.base_class import Base

# Import all models here so that Base has them registered
# This is needed for Base.metadata.create_all()
from media_sync.models.content import Genre, Show, VideoContent
from media_sync.models.sync_cursor import SyncCursor
from media_sync.models.sync_state import SyncState
