from typing import Generator

from media_sync.core.config import settings
from media_sync.core.redis import reconcile_lock
from media_sync.services.media_manager import MediaManagerClient, client_from_settings


def get_client() -> Generator[MediaManagerClient, None, None]:
    client = client_from_settings(settings)
    try:
        yield client
    finally:
        client.close()


def get_reconcile_lock():
    """Factory for the per-item lock shared with the queue workers."""
    return reconcile_lock
