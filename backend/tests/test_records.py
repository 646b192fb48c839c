from datetime import datetime

import pytest
from pydantic import ValidationError

from media_sync.services.dispatch import QueueItem
from media_sync.services.records import RemoteAsset, RemoteShow, parse_images, parse_record, RemoteImage

from conftest import make_asset, make_show


def test_parse_show_and_asset_variants():
    assert isinstance(parse_record(make_show()), RemoteShow)
    assert isinstance(parse_record(make_asset()), RemoteAsset)


def test_unknown_type_is_rejected():
    with pytest.raises(ValidationError):
        parse_record({"id": "x", "type": "station", "attributes": {"updated_at": "2024-01-01T00:00:00Z"}})


def test_missing_updated_at_is_rejected():
    data = make_show()
    del data["attributes"]["updated_at"]
    with pytest.raises(ValidationError):
        parse_record(data)


def test_updated_at_is_normalized_to_naive_utc_seconds():
    data = make_show()
    data["attributes"]["updated_at"] = "2024-03-10T09:30:15.123456-05:00"
    assert parse_record(data).updated_at == datetime(2024, 3, 10, 14, 30, 15)


def test_latest_update_includes_images():
    data = make_show(updated_at=datetime(2024, 1, 1))
    data["attributes"]["images"] = [
        {"profile": "show-poster2x3", "image": "https://image.pbs.org/poster.jpg", "updated_at": "2024-02-01T00:00:00Z"},
        {"profile": "show-mezzanine16x9", "image": "https://image.pbs.org/mezz.jpg", "updated_at": None},
    ]
    assert parse_record(data).latest_updated_at() == datetime(2024, 2, 1)


def test_empty_dates_are_none():
    asset = parse_record(make_asset())
    assert asset.attributes.encored_on is None
    assert asset.attributes.availabilities.public.start is None


def test_parse_images_forces_scheme_relative_urls():
    images = [
        RemoteImage(profile="a", url="http://image.pbs.org/a.jpg?crop=1"),
        RemoteImage(profile="b", url="not a url"),
    ]
    assert parse_images(images) == {"a": "//image.pbs.org/a.jpg"}


def test_queue_item_payload_keeps_unused_attributes():
    data = make_asset(links={"self": "https://example.org"})
    item = QueueItem("video_content", parse_record(data), parent_id=4)
    restored = QueueItem.from_payload(item.to_payload())
    assert restored.to_payload() == item.to_payload()
    assert restored.parent_id == 4
    assert restored.record.attributes.links == {"self": "https://example.org"}
