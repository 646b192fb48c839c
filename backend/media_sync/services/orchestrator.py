"""
Queue builders for incremental Media Manager syncs.

A queue builder finds remote items changed since the content type's cursor
and hands them to the dispatch queue; the actual create/update happens in
the queue consumers. The cursor only moves after a pass has fully
completed, and it moves to the time the pass *started*, so that a long pass
may queue some items twice but never misses an update.

Concurrent passes for the same content type must be prevented by the
caller.
"""
import enum
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from pydantic import ValidationError

from media_sync.core.exceptions import MalformedParentTree, QueueError
from media_sync.models.content import Show
from media_sync.models.sync_state import ContentType
from media_sync.services.content_store import ContentStore
from media_sync.services.cursor_store import TimeCursorStore
from media_sync.services.dispatch import DispatchQueue, QueueItem
from media_sync.services.media_manager import MediaManagerClient
from media_sync.services.parent_tree import parse_parent_tree
from media_sync.services.records import RemoteRecord, parse_record
from media_sync.utils.dates import utcnow

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1)

# The API documentation sets no hard limit on filter values per request but
# suggests 50 as a guideline maximum for other endpoints.
DEFAULT_BATCH_SIZE = 50


class SyncOutcome(str, enum.Enum):
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"


@dataclass
class SyncReport:
    """Statistics from a queue update pass."""

    content_type: str
    since: datetime
    pass_start: datetime
    outcome: SyncOutcome = SyncOutcome.COMPLETED
    batches: int = 0
    queued: int = 0
    skipped: int = 0  # dropped for data integrity problems
    failed: int = 0  # could not be queued

    @property
    def completed(self) -> bool:
        return self.outcome == SyncOutcome.COMPLETED

    def __str__(self) -> str:
        return (
            f"{self.content_type} {self.outcome.value}: {self.batches} batches, "
            f"{self.queued} queued, {self.skipped} skipped, {self.failed} failed"
        )


def chunked(items: List[Any], size: int) -> Iterator[List[Any]]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


class QueueBuilder:
    """
    Shared incremental sync pass.

    Subclasses define the batches of a pass (`batches`) and how one batch is
    fetched and queued (`process_batch`).
    """

    content_type: str

    def __init__(
        self,
        client: MediaManagerClient,
        store: ContentStore,
        cursors: TimeCursorStore,
        queue: DispatchQueue,
        lookback_days: Optional[int] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        clock: Callable[[], datetime] = utcnow,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.store = store
        self.cursors = cursors
        self.queue = queue
        self.lookback_days = lookback_days
        self.batch_size = batch_size
        self.clock = clock
        self.timer = timer

    def default_since(self) -> datetime:
        """Cutoff for a content type that has never been synced."""
        if self.lookback_days is None:
            return EPOCH
        return self.clock() - timedelta(days=self.lookback_days)

    def run_incremental_sync(self, since: Optional[datetime] = None, time_limit: Optional[float] = None) -> SyncReport:
        """
        Queue every remote item updated after `since`.

        @param since Cutoff, defaults to the stored cursor
        @param time_limit Seconds the pass may take, None or 0 for no limit.
            An expired pass stops before its next batch and leaves the cursor
            alone, so items it already queued will be queued again next time.
        """
        pass_start = self.clock()
        started = self.timer()
        if since is None:
            since = self.cursors.get(self.content_type, self.default_since())

        report = SyncReport(self.content_type, since, pass_start)
        logger.info(f"Updating {self.content_type} queue with items changed since {since}")

        for batch in self.batches():
            if time_limit and self.timer() - started > time_limit:
                logger.critical(
                    f"Unable to complete {self.content_type} queue processing within {time_limit} seconds. "
                    f"The last update time was not changed. Consider increasing the time limit or "
                    f"running this process without one."
                )
                report.outcome = SyncOutcome.TIMED_OUT
                return report
            report.batches += 1
            self.process_batch(batch, since, report)

        self.cursors.set(self.content_type, pass_start)
        logger.info(str(report))
        return report

    def batches(self) -> Iterable[Any]:
        raise NotImplementedError

    def process_batch(self, batch: Any, since: datetime, report: SyncReport) -> None:
        raise NotImplementedError

    def _parse(self, raw: Dict[str, Any], report: SyncReport) -> Optional[RemoteRecord]:
        try:
            return parse_record(raw)
        except ValidationError as e:
            logger.error(f"Invalid {self.content_type} item {raw.get('id')} from Media Manager: {e}")
            report.skipped += 1
            return None

    def _enqueue(self, item: QueueItem, report: SyncReport) -> None:
        try:
            self.queue.enqueue(item)
        except QueueError as e:
            logger.error(f"{e} (parent {item.parent_id})")
            report.failed += 1
        else:
            report.queued += 1


class ShowSync(QueueBuilder):
    """
    Queues changed Shows.

    The Shows listing cannot be sorted by update time, so it is fully
    traversed in a single batch. When specific Show IDs are configured, each
    is fetched individually in batches instead.
    """

    content_type = ContentType.SHOWS.value

    def __init__(self, *args, show_ids: Optional[List[str]] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.show_ids = show_ids or []

    def batches(self) -> Iterable[Any]:
        if self.show_ids:
            return chunked(self.show_ids, self.batch_size)
        return [None]

    def process_batch(self, batch: Optional[List[str]], since: datetime, report: SyncReport) -> None:
        if batch is None:
            items = self.client.list_shows()
        else:
            items = self._get_shows(batch)

        for raw in items:
            show = self._parse(raw, report)
            if show is None:
                continue
            if show.latest_updated_at() > since:
                self._enqueue(QueueItem(self.content_type, show), report)

    def _get_shows(self, guids: List[str]) -> Iterator[Dict[str, Any]]:
        for guid in guids:
            raw = self.client.get_show(guid)
            if raw is None:
                logger.warning(f"Configured Show {guid} was not found in Media Manager")
                continue
            yield raw


class VideoContentSync(QueueBuilder):
    """
    Queues changed Assets of every local Show.

    Assets are requested for batches of Shows, newest first, so a batch stops
    at the first Asset that is not newer than the cutoff.
    """

    content_type = ContentType.VIDEO_CONTENT.value

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.shows: Dict[str, Show] = {}

    def load_shows(self) -> Dict[str, Show]:
        """Local Shows keyed by Media Manager ID."""
        shows: Dict[str, Show] = {}
        for show in self.store.find_many(Show):
            if show.external_id:
                shows.setdefault(show.external_id, show)
        return shows

    def batches(self) -> Iterable[Any]:
        self.shows = self.load_shows()
        return chunked(list(self.shows), self.batch_size)

    def process_batch(self, batch: List[str], since: datetime, report: SyncReport) -> None:
        assets = self.client.list_assets({
            "show-id": batch,
            # Sorting by update time lets the batch stop as early as possible.
            "sort": "-updated_at",
        })

        for raw in assets:
            asset = self._parse(raw, report)
            if asset is None:
                continue
            if asset.latest_updated_at() <= since:
                break
            show = self._find_parent_show(asset, report)
            if show is not None:
                self._enqueue(QueueItem(self.content_type, asset, show.id), report)

    def _find_parent_show(self, asset: RemoteRecord, report: SyncReport) -> Optional[Show]:
        try:
            parent_tree = parse_parent_tree(getattr(asset.attributes, "parent_tree", None))
        except MalformedParentTree as e:
            logger.error(f"Unable to parse parent tree for Asset {asset.id}: {e}")
            report.skipped += 1
            return None

        show_id = parent_tree.get("show")
        if show_id is None:
            # Every Asset outside of a Franchise has a Show in its parent
            # tree, so this is a parsing or API problem.
            logger.error(f"No parent Show found for Asset ID {asset.id}")
            report.skipped += 1
            return None

        show = self.shows.get(show_id)
        if show is None:
            logger.error(f"Unexpected parent Show {show_id} for Asset {asset.id}")
            report.skipped += 1
        return show
