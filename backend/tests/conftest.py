"""
Fixtures shared by the sync engine tests.

Tests run against an in-memory SQLite database and never touch Redis, the
Celery broker or the Media Manager API.
"""
import os

# Settings are read when media_sync is first imported.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("MM_API_KEY", "test-key")
os.environ.setdefault("MM_API_SECRET", "test-secret")

from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from media_sync.db.base import Base
from media_sync.services.content_store import ContentStore
from media_sync.services.cursor_store import TimeCursorStore


@pytest.fixture
def db():
    """Session on a fresh in-memory database for each test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def store(db):
    return ContentStore(db)


@pytest.fixture
def cursors(db):
    return TimeCursorStore(db)


class FakeMediaManagerClient:
    """
    In-memory stand-in for MediaManagerClient.

    `asset_batches` holds one list of raw Assets per expected `list_assets`
    call, in call order.
    """

    base_uri = "https://media-staging.services.pbs.org/api/v1/"

    def __init__(self, shows: Optional[List[Dict[str, Any]]] = None,
                 asset_batches: Optional[List[List[Dict[str, Any]]]] = None,
                 assets: Optional[List[Dict[str, Any]]] = None):
        self.shows = shows or []
        self.asset_batches = list(asset_batches or [])
        self.assets = assets or []
        self.asset_requests: List[Dict[str, Any]] = []
        self.consumed: List[str] = []

    def is_configured(self) -> bool:
        return True

    def close(self):
        pass

    def list_shows(self, params=None) -> Iterator[Dict[str, Any]]:
        for show in self.shows:
            self.consumed.append(show["id"])
            yield show

    def list_assets(self, params=None) -> Iterator[Dict[str, Any]]:
        self.asset_requests.append(params)
        batch = self.asset_batches.pop(0) if self.asset_batches else []
        for asset in batch:
            self.consumed.append(asset["id"])
            yield asset

    def get_show(self, guid: str) -> Optional[Dict[str, Any]]:
        return next((s for s in self.shows if s["id"] == guid), None)

    def get_asset(self, guid: str) -> Optional[Dict[str, Any]]:
        candidates = self.assets + [a for batch in self.asset_batches for a in batch]
        return next((a for a in candidates if a["id"] == guid), None)

    def test_connection(self) -> str:
        return "OK"


class RecordingQueue:
    """Dispatch queue that keeps every enqueued item."""

    def __init__(self, fail_for=()):
        self.items = []
        self.fail_for = set(fail_for)

    def enqueue(self, item):
        from media_sync.core.exceptions import QueueError

        if item.record.id in self.fail_for:
            raise QueueError(f"Unable to queue {item.content_type} item {item.record.id}")
        self.items.append(item)

    @property
    def ids(self) -> List[str]:
        return [item.record.id for item in self.items]


class FakeLock:
    def __init__(self, available: bool = True):
        self.available = available
        self.name = "fake-lock"
        self.acquired = False
        self.released = False

    def acquire(self, blocking=None):
        self.acquired = self.available
        return self.available

    def release(self):
        self.released = True


def iso(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def make_show(guid: str = "show-1", updated_at: datetime = datetime(2024, 1, 1), **attributes) -> Dict[str, Any]:
    data = {
        "title": "Nature",
        "slug": "nature",
        "description_short": "Short",
        "description_long": "Long",
        "updated_at": iso(updated_at),
        "images": [],
        "tms_id": "SH001",
        "episodes_count": 10,
        "audience": [{"scope": "national", "station": None}],
        "genre": {"id": "genre-1", "title": "Science & Nature", "slug": "science-and-nature"},
        "premiered_on": "1982-10-10",
        "franchise": None,
    }
    data.update(attributes)
    return {"id": guid, "type": "show", "attributes": data}


def make_parent_tree(show_guid: str = "show-1", ordinal: int = 3, season_ordinal: int = 2) -> Dict[str, Any]:
    return {
        "id": "episode-1",
        "type": "episode",
        "attributes": {
            "ordinal": ordinal,
            "season": {
                "id": "season-1",
                "type": "season",
                "attributes": {
                    "ordinal": season_ordinal,
                    "show": {
                        "id": show_guid,
                        "type": "show",
                        "attributes": {"franchise": {"id": "franchise-1", "type": "franchise", "attributes": {}}},
                    },
                },
            },
        },
    }


def make_asset(guid: str = "asset-1", show_guid: str = "show-1", updated_at: datetime = datetime(2024, 1, 1),
               public=(None, None), members=(None, None), **attributes) -> Dict[str, Any]:
    def window(pair):
        start, end = pair
        return {"start": iso(start) if start else None, "end": iso(end) if end else None}

    data = {
        "title": "Episode",
        "slug": "episode",
        "description_short": "Short",
        "description_long": "Long",
        "updated_at": iso(updated_at),
        "images": [],
        "object_type": "full_length",
        "duration": 3300,
        "player_code": "<iframe class='partnerPlayer' src='//player.pbs.org/partnerplayer/qvbejbvsH7nskeELmqmduQ==/'></iframe>",
        "content_rating": "TV-PG",
        "encored_on": "",
        "premiered_on": "2024-01-01",
        "availabilities": {
            "public": window(public),
            "all_members": window(members),
            "station_members": window((None, None)),
        },
        "episode": {"id": "episode-1", "type": "episode"},
        "parent_tree": make_parent_tree(show_guid),
    }
    data.update(attributes)
    return {"id": guid, "type": "asset", "attributes": data}
