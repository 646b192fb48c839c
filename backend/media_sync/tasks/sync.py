"""
Celery tasks for Media Manager synchronization.

@description Two kinds of work run on the workers:
- Queue updates (`update_queue_task`) find remote changes for a content type
  and send one work item per change to that type's queue.
- Queue consumers (`process_show_task`, `process_video_content_task`)
  reconcile one work item each against the local content.
Beat runs `check_schedules_task` every minute to start due queue updates.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from media_sync.core.celery_app import celery_app
from media_sync.core.config import SyncPolicy, settings
from media_sync.core.exceptions import MissingRequiredParent, PersistenceError
from media_sync.core.redis import reconcile_lock, release_lock, update_queue_lock
from media_sync.db.session import SessionLocal
from media_sync.models.content import Show
from media_sync.models.sync_state import ContentType, SyncState, SyncStatus
from media_sync.services.content_store import ContentStore
from media_sync.services.cursor_store import TimeCursorStore
from media_sync.services.dispatch import CeleryDispatchQueue, DispatchQueue, QueueItem
from media_sync.services.genres import GenreCache
from media_sync.services.media_manager import MediaManagerClient, client_from_settings
from media_sync.services.orchestrator import QueueBuilder, ShowSync, SyncReport, VideoContentSync
from media_sync.services.parent_tree import parse_parent_tree
from media_sync.services.reconciler import AssetReconciler, ReconcileResult, ShowReconciler
from media_sync.services.records import RemoteAsset, RemoteShow, parse_record
from media_sync.utils.dates import to_storage_datetime, utcnow

logger = logging.getLogger(__name__)


def get_sync_state(db: Session, content_type: str) -> SyncState:
    sync_state = db.query(SyncState).filter(SyncState.content_type == content_type).first()
    if not sync_state:
        sync_state = SyncState(content_type=content_type, status=SyncStatus.IDLE)
        db.add(sync_state)
        db.commit()
        db.refresh(sync_state)
    return sync_state


def build_queue_builder(content_type: str, db: Session, client: MediaManagerClient, queue: DispatchQueue) -> QueueBuilder:
    policy = settings.policy(content_type)
    kwargs = dict(lookback_days=policy.lookback_days, batch_size=settings.SYNC_BATCH_SIZE)
    store = ContentStore(db)
    cursors = TimeCursorStore(db)
    if content_type == ContentType.SHOWS:
        return ShowSync(client, store, cursors, queue, show_ids=settings.show_id_list, **kwargs)
    return VideoContentSync(client, store, cursors, queue, **kwargs)


def run_update_queue(db: Session, builder: QueueBuilder, since: Optional[datetime] = None,
                     time_limit: Optional[float] = None, task_id: Optional[str] = None) -> SyncReport:
    """Run one queue update pass and record it in the content type's SyncState."""
    sync_state = get_sync_state(db, builder.content_type)
    sync_state.status = SyncStatus.RUNNING
    sync_state.last_sync = utcnow()
    sync_state.completed_at = None
    sync_state.error_message = None
    sync_state.task_id = task_id
    db.commit()

    try:
        report = builder.run_incremental_sync(since, time_limit)
    except Exception as e:
        logger.exception(f"Error updating {builder.content_type} queue")
        db.rollback()
        sync_state.status = SyncStatus.FAILED
        sync_state.error_message = str(e)
        sync_state.completed_at = utcnow()
        db.commit()
        raise

    sync_state.status = SyncStatus.SUCCESS if report.completed else SyncStatus.TIMED_OUT
    sync_state.items_queued = report.queued
    sync_state.items_skipped = report.skipped
    sync_state.items_failed = report.failed
    if not report.completed:
        sync_state.error_message = f"Time limit of {time_limit} seconds reached, the cursor was not moved"
    sync_state.completed_at = utcnow()
    db.commit()
    return report


def handle_queue_item(db: Session, item: QueueItem, force: bool = False) -> Optional[ReconcileResult]:
    """
    Reconcile one work item.

    Items that can never succeed are logged and dropped (None is returned);
    a PersistenceError is raised for the task to retry.
    """
    store = ContentStore(db)

    if item.content_type == ContentType.SHOWS:
        if not isinstance(item.record, RemoteShow):
            logger.error(f"Unexpected {item.record.type} item {item.record.id} in the Shows queue")
            return None
        return ShowReconciler(store, GenreCache(store)).reconcile(item.record, force=force)

    if not isinstance(item.record, RemoteAsset):
        logger.error(f"Unexpected {item.record.type} item {item.record.id} in the Video Content queue")
        return None

    show = None
    if item.parent_id is not None:
        show = db.get(Show, item.parent_id)
        if show is None:
            logger.warning(f"Parent Show {item.parent_id} of Asset {item.record.id} no longer exists")
    try:
        return AssetReconciler(store).reconcile(item.record, show, force=force)
    except MissingRequiredParent as e:
        logger.error(str(e))
        return None


def fetch_queue_item(db: Session, client: MediaManagerClient, content_type: str, guid: str) -> Optional[QueueItem]:
    """
    Work item for one remote record fetched directly from the API.

    Returns None when Media Manager has no such record.
    @raises ValidationError, MalformedParentTree, RemoteApiError
    """
    if content_type == ContentType.SHOWS:
        raw = client.get_show(guid)
        if raw is None:
            return None
        return QueueItem(content_type, parse_record(raw))

    raw = client.get_asset(guid)
    if raw is None:
        return None
    asset = parse_record(raw)
    parent_id = None
    show_guid = parse_parent_tree(getattr(asset.attributes, "parent_tree", None)).get("show")
    if show_guid:
        show = ContentStore(db).find_one(Show, show_guid)
        parent_id = show.id if show else None
    return QueueItem(content_type, asset, parent_id)


def is_due(policy: SyncPolicy, last_sync: Optional[datetime], now: datetime) -> bool:
    if not policy.autoupdate:
        return False
    return last_sync is None or (now - last_sync).total_seconds() >= policy.interval


def _parse_since(since: Optional[str]) -> Optional[datetime]:
    if not since:
        return None
    return to_storage_datetime(datetime.fromisoformat(since))


@celery_app.task(bind=True)
def update_queue_task(self, content_type: str, since: Optional[str] = None):
    content_type = ContentType(content_type).value
    lock = update_queue_lock(content_type)
    if not lock.acquire(blocking=False):
        logger.warning(f"A {content_type} queue update is already running, skipping")
        return f"{content_type} queue update already running"

    db = SessionLocal()
    client = client_from_settings(settings)
    try:
        if not client.is_configured():
            logger.error("Media Manager API key and secret are not configured")
            return "Media Manager API not configured"

        queue = CeleryDispatchQueue({
            ContentType.SHOWS.value: process_show_task,
            ContentType.VIDEO_CONTENT.value: process_video_content_task,
        })
        builder = build_queue_builder(content_type, db, client, queue)
        report = run_update_queue(
            db, builder,
            since=_parse_since(since),
            time_limit=settings.SYNC_TIME_LIMIT,
            task_id=self.request.id,
        )
        return str(report)
    finally:
        client.close()
        db.close()
        release_lock(lock)


def _process(task, payload: Dict[str, Any], force: bool) -> str:
    try:
        item = QueueItem.from_payload(payload)
    except ValidationError as e:
        logger.error(f"Dropping invalid work item: {e}")
        return "dropped"

    lock = reconcile_lock(item.record.id)
    if not lock.acquire():
        logger.info(f"{item.record.id} is being reconciled by another worker, retrying later")
        raise task.retry(countdown=5)

    db = SessionLocal()
    try:
        result = handle_queue_item(db, item, force=force)
    finally:
        db.close()
        release_lock(lock)
    return result.status if result else "dropped"


@celery_app.task(bind=True, autoretry_for=(PersistenceError,), retry_backoff=True, max_retries=3)
def process_show_task(self, payload: Dict[str, Any], force: bool = False):
    return _process(self, payload, force)


@celery_app.task(bind=True, autoretry_for=(PersistenceError,), retry_backoff=True, max_retries=3)
def process_video_content_task(self, payload: Dict[str, Any], force: bool = False):
    return _process(self, payload, force)


@celery_app.task
def check_schedules_task():
    """Start queue updates for content types with autoupdate enabled and due"""
    db = SessionLocal()
    try:
        now = utcnow()
        for content_type in ContentType:
            policy = settings.policy(content_type.value)
            sync_state = db.query(SyncState).filter(SyncState.content_type == content_type.value).first()
            last_sync = sync_state.last_sync if sync_state else None
            if is_due(policy, last_sync, now):
                logger.info(f"Scheduled {content_type.value} queue update is due")
                update_queue_task.delay(content_type.value)
    finally:
        db.close()
