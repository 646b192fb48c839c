from celery import Celery
from media_sync.core.config import settings

celery_app = Celery("worker", broker=settings.REDIS_URL, backend=settings.REDIS_URL)

celery_app.conf.update(
    task_track_started=True,
    # A reconciliation is only acknowledged once it has finished.
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)

# Work items for each content type go to their own queue
celery_app.conf.task_routes = {
    'media_sync.tasks.sync.process_show_task': {'queue': 'media_manager.queue.shows'},
    'media_sync.tasks.sync.process_video_content_task': {'queue': 'media_manager.queue.video_content'},
}

# Configure Celery Beat schedule
celery_app.conf.beat_schedule = {
    'check-sync-schedules-every-minute': {
        'task': 'media_sync.tasks.sync.check_schedules_task',
        'schedule': 60.0,
    },
}
celery_app.conf.timezone = settings.TIMEZONE

# Import tasks to register them
from media_sync.tasks import sync  # noqa
