"""
Work items handed from the queue builder to the reconciliation workers.

Delivery is at-least-once; consumers rely on the reconcilers' staleness
check to make redelivered items harmless.
"""
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Protocol

from kombu.exceptions import KombuError

from media_sync.core.exceptions import QueueError
from media_sync.services.records import RemoteRecord, dump_record, parse_record


@dataclass(frozen=True)
class QueueItem:
    content_type: str
    record: RemoteRecord
    parent_id: Optional[int] = None  # Local ID of the parent record

    def to_payload(self) -> Dict[str, Any]:
        return {
            "content_type": self.content_type,
            "record": dump_record(self.record),
            "parent_id": self.parent_id,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "QueueItem":
        return cls(
            content_type=payload["content_type"],
            record=parse_record(payload["record"]),
            parent_id=payload.get("parent_id"),
        )


class DispatchQueue(Protocol):
    def enqueue(self, item: QueueItem) -> None:
        ...


class CeleryDispatchQueue:
    """
    Sends work items to Celery tasks, one task per content type.

    @param tasks Celery task (anything with `apply_async`) keyed by content type
    """

    def __init__(self, tasks: Mapping[str, Any]):
        self.tasks = tasks

    def enqueue(self, item: QueueItem) -> None:
        task = self.tasks[item.content_type]
        try:
            task.apply_async(args=[item.to_payload()])
        except (KombuError, OSError) as e:
            raise QueueError(f"Unable to queue {item.content_type} item {item.record.id}: {e}") from e
