import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError
from sqlalchemy.orm import Session

from media_sync.api import deps
from media_sync.core.exceptions import MalformedParentTree, PersistenceError, RemoteApiError
from media_sync.core.redis import clear_update_queue_lock, release_lock
from media_sync.db.session import get_db
from media_sync.models.sync_state import ContentType, SyncState, SyncStatus
from media_sync.schemas import ReconcileResponse, SyncStatusResponse, SyncTriggerRequest, SyncTriggerResponse
from media_sync.services.cursor_store import TimeCursorStore
from media_sync.services.media_manager import MediaManagerClient
from media_sync.tasks.sync import fetch_queue_item, get_sync_state, handle_queue_item, update_queue_task

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/status", response_model=List[SyncStatusResponse])
def get_sync_status(db: Session = Depends(get_db)):
    cursors = TimeCursorStore(db)
    states = {s.content_type: s for s in db.query(SyncState).all()}
    response = []
    for content_type in ContentType:
        state = states.get(content_type.value)
        if state is None:
            response.append(SyncStatusResponse(
                content_type=content_type.value,
                status=SyncStatus.IDLE.value,
                last_update=cursors.get(content_type.value),
            ))
            continue
        response.append(SyncStatusResponse(
            id=state.id,
            content_type=state.content_type,
            status=state.status.value,
            last_sync=state.last_sync,
            completed_at=state.completed_at,
            last_update=cursors.get(content_type.value),
            items_queued=state.items_queued or 0,
            items_skipped=state.items_skipped or 0,
            items_failed=state.items_failed or 0,
            error_message=state.error_message,
            task_id=state.task_id,
        ))
    return response


@router.post("/{content_type}", response_model=SyncTriggerResponse)
def trigger_sync(content_type: ContentType, request: Optional[SyncTriggerRequest] = None, db: Session = Depends(get_db)):
    since = request.since.isoformat() if request and request.since else None
    task = update_queue_task.delay(content_type.value, since)
    # Save task_id to sync_state
    sync_state = get_sync_state(db, content_type.value)
    sync_state.task_id = task.id
    db.commit()
    return SyncTriggerResponse(message=f"{content_type.value} queue update started", task_id=task.id)


@router.post("/{content_type}/reset")
def reset_sync(content_type: ContentType, db: Session = Depends(get_db)):
    """Forget the last update time so the next queue update uses the default lookback"""
    TimeCursorStore(db).clear(content_type.value)
    logger.info(f"{content_type.value} last update time was reset")
    return {"message": f"{content_type.value} last update time reset"}


@router.post("/{content_type}/stop")
def stop_sync(content_type: ContentType, db: Session = Depends(get_db)):
    """Stop a running queue update task"""
    from media_sync.core.celery_app import celery_app

    sync_state = db.query(SyncState).filter(SyncState.content_type == content_type.value).first()
    if not sync_state or not sync_state.task_id:
        return {"message": "No running task found"}

    celery_app.control.revoke(sync_state.task_id, terminate=True)
    clear_update_queue_lock(content_type.value)

    sync_state.status = SyncStatus.IDLE
    sync_state.task_id = None
    db.commit()
    return {"message": f"{content_type.value} queue update stopped"}


def _reconcile_now(db: Session, client: MediaManagerClient, lock_factory, content_type: ContentType, guid: str) -> ReconcileResponse:
    try:
        item = fetch_queue_item(db, client, content_type.value, guid)
    except RemoteApiError as e:
        raise HTTPException(status_code=502, detail=e.detail or str(e))
    except (ValidationError, MalformedParentTree) as e:
        logger.error(f"Invalid Media Manager data for {guid}: {e}")
        raise HTTPException(status_code=502, detail=f"Invalid Media Manager data for {guid}")
    if item is None:
        raise HTTPException(status_code=404, detail=f"{guid} not found in Media Manager")

    lock = lock_factory(guid)
    if not lock.acquire():
        raise HTTPException(status_code=409, detail=f"{guid} is being updated by a worker")
    try:
        result = handle_queue_item(db, item, force=True)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    finally:
        release_lock(lock)

    if result is None:
        raise HTTPException(status_code=409, detail=f"Unable to update {guid}, its parent Show has not been synced")
    return ReconcileResponse(external_id=guid, record_id=result.record_id, status=result.status)


@router.post("/shows/{guid}", response_model=ReconcileResponse)
def reconcile_show(
    guid: str,
    db: Session = Depends(get_db),
    client: MediaManagerClient = Depends(deps.get_client),
    lock_factory=Depends(deps.get_reconcile_lock),
):
    """Fetch one Show and update it now, even if it has not changed"""
    return _reconcile_now(db, client, lock_factory, ContentType.SHOWS, guid)


@router.post("/video-content/{guid}", response_model=ReconcileResponse)
def reconcile_video_content(
    guid: str,
    db: Session = Depends(get_db),
    client: MediaManagerClient = Depends(deps.get_client),
    lock_factory=Depends(deps.get_reconcile_lock),
):
    """Fetch one Asset and update its Video Content now, even if it has not changed"""
    return _reconcile_now(db, client, lock_factory, ContentType.VIDEO_CONTENT, guid)
