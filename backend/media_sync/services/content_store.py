"""
Local content storage used by the sync engine.

Wraps a SQLAlchemy session with the handful of operations the reconcilers
and queue builders need: lookups by remote GUID or arbitrary properties,
creating unsaved records and saving them.
"""
import logging
from typing import List, Optional, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from media_sync.core.exceptions import PersistenceError
from media_sync.models.content import Show

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


class ContentStore:
    def __init__(self, db: Session):
        self.db = db

    def find_many(self, model: Type[ModelT], **properties) -> List[ModelT]:
        """Records of a bundle matching all properties, oldest first."""
        query = self.db.query(model)
        for name, value in properties.items():
            query = query.filter(getattr(model, name) == value)
        return query.order_by(model.id).all()

    def find_one(self, model: Type[ModelT], external_id: str) -> Optional[ModelT]:
        """
        Record of a bundle for a Media Manager GUID.

        Only one record should exist per GUID. If there are more, the error
        is logged and the oldest record is used.
        """
        return self.find_one_by(model, external_id=external_id)

    def find_one_by(self, model: Type[ModelT], **properties) -> Optional[ModelT]:
        """
        Single record matching all properties, e.g. a Show by `tms_id` or
        `slug`. Duplicates are logged and the oldest record is used.
        """
        records = self.find_many(model, **properties)
        if not records:
            return None
        record = records[0]
        if len(records) > 1:
            lookup = ", ".join(f"{name} {value}" for name, value in properties.items())
            logger.error(
                f"Multiple {model.bundle} records found for {lookup}. "
                f"Record IDs found: {', '.join(str(r.id) for r in records)}. Using record {record.id}."
            )
        return record

    def find_show_by_tms_id(self, tms_id: str) -> Optional[Show]:
        return self.find_one_by(Show, tms_id=tms_id)

    def find_show_by_slug(self, slug: str) -> Optional[Show]:
        return self.find_one_by(Show, slug=slug)

    def create(self, model: Type[ModelT]) -> ModelT:
        """New, unsaved record. It is persisted by `save`."""
        return model()

    def stage(self, record) -> None:
        """
        Write a record to the current transaction without committing it.

        The record is committed (or rolled back) with the next `save`.
        """
        try:
            self.db.add(record)
            self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(
                f"Unable to stage {record.bundle} record {getattr(record, 'external_id', None)}: {e}"
            ) from e

    def save(self, record) -> None:
        try:
            self.db.add(record)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(
                f"Unable to save {record.bundle} record {getattr(record, 'external_id', None)}: {e}"
            ) from e
