from datetime import date, datetime, timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from media_sync.core.exceptions import PersistenceError
from media_sync.models.content import Genre, Show, VideoContent
from media_sync.services.genres import GenreCache
from media_sync.services.reconciler import ShowReconciler
from media_sync.services.records import parse_record

from conftest import make_show

NOW = datetime(2024, 6, 1, 12, 0, 0)


@pytest.fixture
def reconciler(store):
    return ShowReconciler(store, GenreCache(store), clock=lambda: NOW)


def show(**kwargs):
    return parse_record(make_show(**kwargs))


def add_video(db, show_record, external_id, **fields):
    video = VideoContent(external_id=external_id, show_id=show_record.id, title=external_id, **fields)
    db.add(video)
    db.commit()
    return video


def test_new_show_is_created_unpublished(reconciler, db):
    remote = show(images=[
        {"profile": "show-mezzanine16x9", "image": "https://image.pbs.org/contentchannels/mezz.jpg"},
        {"profile": "show-poster2x3", "image": "https://image.pbs.org/contentchannels/poster.jpg"},
    ])
    result = reconciler.reconcile(remote)

    assert result.status == "created"
    record = db.get(Show, result.record_id)
    assert record.external_id == "show-1"
    assert record.title == "Nature"
    assert record.tms_id == "SH001"
    assert record.episode_count == 10
    assert record.audience_scope == "national"
    assert record.premiere_date == date(1982, 10, 10)
    assert record.franchise_id is None
    assert record.mezzanine == "//image.pbs.org/contentchannels/mezz.jpg"
    assert record.mezzanine_original == "//image.pbs.org/contentchannels/mezz.jpg"
    assert record.poster == "//image.pbs.org/contentchannels/poster.jpg"
    assert record.genre.name == "Science & Nature"
    assert record.published is False
    assert db.query(Genre).count() == 1


def test_franchise_id_is_projected(reconciler, db):
    result = reconciler.reconcile(show(franchise={"id": "franchise-1", "type": "franchise"}))
    assert db.get(Show, result.record_id).franchise_id == "franchise-1"


def test_first_recognized_audience_scope_wins(reconciler, db):
    remote = show(audience=[{"scope": "station"}, {"scope": "local"}, {"scope": "national"}])
    result = reconciler.reconcile(remote)
    assert db.get(Show, result.record_id).audience_scope == "local"


def test_stale_show_is_skipped(reconciler, db):
    reconciler.reconcile(show(title="Original"))
    result = reconciler.reconcile(show(title="Changed"))
    assert result.status == "skipped"
    assert db.get(Show, result.record_id).title == "Original"


def test_existing_show_with_published_video_is_published(reconciler, db):
    record = db.get(Show, reconciler.reconcile(show()).record_id)
    older = add_video(db, record, "asset-1", video_type="episode", published=True,
                      premiere_date=date(2024, 1, 1), image="//image.pbs.org/old.jpg")
    newer = add_video(db, record, "asset-2", video_type="episode", published=True,
                      premiere_date=date(2024, 3, 1), image="//image.pbs.org/new.jpg")
    add_video(db, record, "asset-3", video_type="clip", published=True,
              premiere_date=date(2024, 5, 1), image="//image.pbs.org/clip.jpg")

    result = reconciler.reconcile(show(updated_at=datetime(2024, 2, 1)))

    record = db.get(Show, result.record_id)
    assert result.status == "updated"
    assert record.published is True
    assert record.latest_episode_id == newer.id != older.id
    assert record.mezzanine == "//image.pbs.org/new.jpg"


def test_mezzanine_falls_back_to_any_video_image(reconciler, db):
    record = db.get(Show, reconciler.reconcile(show()).record_id)
    add_video(db, record, "asset-1", video_type="episode", published=True, premiere_date=date(2024, 3, 1))
    add_video(db, record, "asset-2", video_type="preview", published=True,
              premiere_date=date(2024, 1, 1), image="//image.pbs.org/preview.jpg")

    result = reconciler.reconcile(show(updated_at=datetime(2024, 2, 1)))
    assert db.get(Show, result.record_id).mezzanine == "//image.pbs.org/preview.jpg"


def test_scheduled_video_publishes_existing_show(reconciler, db):
    record = db.get(Show, reconciler.reconcile(show()).record_id)
    add_video(db, record, "asset-1", published=False, publish_on=NOW + timedelta(days=3))
    result = reconciler.reconcile(show(updated_at=datetime(2024, 2, 1)))
    assert db.get(Show, result.record_id).published is True


def test_existing_show_without_video_is_unpublished(reconciler, db):
    record = db.get(Show, reconciler.reconcile(show()).record_id)
    add_video(db, record, "asset-1", published=False, publish_on=NOW - timedelta(days=3))
    result = reconciler.reconcile(show(updated_at=datetime(2024, 2, 1)))
    record = db.get(Show, result.record_id)
    assert record.published is False
    assert record.latest_episode_id is None


def test_kids_show_is_never_published(reconciler, db):
    remote = show(audience=[{"scope": "kids"}])
    record = db.get(Show, reconciler.reconcile(remote).record_id)
    add_video(db, record, "asset-1", published=True)
    result = reconciler.reconcile(show(audience=[{"scope": "kids"}], updated_at=datetime(2024, 2, 1)))
    assert db.get(Show, result.record_id).published is False


def test_failed_save_is_retried_as_update(reconciler, store, db, monkeypatch):
    original = reconciler.reconcile(show())
    changed = show(
        updated_at=datetime(2024, 2, 1),
        title="New title",
        genre={"id": "genre-2", "title": "Drama", "slug": "drama"},
    )

    monkeypatch.setattr(db, "commit", MagicMock(side_effect=OperationalError("UPDATE", {}, Exception("disk full"))))
    with pytest.raises(PersistenceError):
        reconciler.reconcile(changed)
    monkeypatch.undo()

    # Nothing from the failed update, including the new genre, was kept.
    record = db.get(Show, original.record_id)
    assert record.last_updated == datetime(2024, 1, 1)
    assert record.title == "Nature"
    assert db.query(Genre).filter(Genre.external_id == "genre-2").count() == 0

    result = ShowReconciler(store, GenreCache(store), clock=lambda: NOW).reconcile(changed)
    assert result.status == "updated"
    record = db.get(Show, original.record_id)
    assert record.title == "New title"
    assert record.genre.name == "Drama"
