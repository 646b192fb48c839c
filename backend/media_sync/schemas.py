from pydantic import BaseModel
from typing import Optional
from datetime import datetime

class SyncStatusResponse(BaseModel):
    id: Optional[int] = None
    content_type: str
    status: str
    last_sync: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_update: Optional[datetime] = None  # Cursor: items changed after this are queued next
    items_queued: int = 0
    items_skipped: int = 0
    items_failed: int = 0
    error_message: Optional[str] = None
    task_id: Optional[str] = None

class SyncTriggerRequest(BaseModel):
    since: Optional[datetime] = None

class SyncTriggerResponse(BaseModel):
    message: str
    task_id: str

class ReconcileResponse(BaseModel):
    external_id: str
    record_id: Optional[int] = None
    status: str

class ConnectionResponse(BaseModel):
    base_uri: str
    configured: bool
    status: str
