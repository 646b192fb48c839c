import logging
import redis
from redis.exceptions import LockError
from media_sync.core.config import settings

logger = logging.getLogger(__name__)

# Global redis connection pool
redis_conn = redis.from_url(settings.REDIS_URL, decode_responses=True)

def reconcile_lock(external_id: str, blocking_timeout: float = 10):
    """Lock serializing reconciliation of one remote item across workers."""
    return redis_conn.lock(
        f"media_sync:reconcile:{external_id}",
        timeout=settings.RECONCILE_LOCK_TIMEOUT,
        blocking_timeout=blocking_timeout,
    )

def update_queue_lock_name(content_type: str) -> str:
    return f"media_sync:update_queue:{content_type}"

def update_queue_lock(content_type: str):
    """Lock preventing two queue builders for the same content type."""
    return redis_conn.lock(
        update_queue_lock_name(content_type),
        timeout=60 * 60 * 6,
        blocking_timeout=0,
    )

def clear_update_queue_lock(content_type: str):
    """Drop the queue builder lock left behind by a terminated task."""
    redis_conn.delete(update_queue_lock_name(content_type))

def release_lock(lock):
    """Release a lock that may have expired while it was held."""
    try:
        lock.release()
    except LockError as e:
        logger.warning(f"Lock {lock.name} was lost before it was released: {e}")
