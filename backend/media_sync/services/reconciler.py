"""
Create or update local records from Media Manager items.

Both reconcilers follow the same policy:

1. Find the local record by GUID or start a new unsaved one.
2. Skip the item (unless forced) when the stored `last_updated` is not older
   than the item's latest update, which makes redelivered queue items
   harmless.
3. Project the remote attributes onto the record. Optional fields are
   declared as (column, function) pairs; a function returning None clears
   the column.
4. Derive the publish state and save.
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple
from urllib.parse import urlparse

from sqlalchemy import or_

from media_sync.core.exceptions import MissingRequiredParent
from media_sync.models.content import Show, VideoContent
from media_sync.services.availability import earliest_start, is_available, latest_end
from media_sync.services.content_store import ContentStore
from media_sync.services.genres import GenreCache
from media_sync.services.records import RemoteAsset, RemoteShow
from media_sync.utils.dates import utcnow

logger = logging.getLogger(__name__)

Projection = Tuple[str, Callable[[Any], Optional[Any]]]

# Recognized Show audience scopes, in no particular order.
AUDIENCE_SCOPES = ("national", "local", "kids")
KIDS_SCOPE = "kids"

ASSET_IMAGE_PROFILES = (
    "asset-mezzanine-16x9",
    "asset-kids-mezzanine-16x9",
    "asset-kids-mezzanine1-16x9",
)
SHOW_MEZZANINE_PROFILES = ("show-mezzanine16x9", "show-kids-16x9")
SHOW_POSTER_PROFILES = ("show-poster2x3",)

IFRAME_SRC = re.compile(r"<iframe\b[^>]*?\bsrc\s*=\s*['\"]([^'\"]+)['\"]", re.IGNORECASE)


@dataclass
class ReconcileResult:
    record_id: Optional[int]
    status: str  # "created", "updated" or "skipped"

    @property
    def changed(self) -> bool:
        return self.status != "skipped"


def apply_projections(record, projections: Sequence[Projection], source) -> None:
    for field, project in projections:
        setattr(record, field, project(source))


def first_image(images: Mapping[str, str], profiles: Sequence[str]) -> Optional[str]:
    """URL of the first profile present in `images`."""
    for profile in profiles:
        if profile in images:
            return images[profile]
    return None


def extract_embed_code_video_id(code: str) -> Optional[str]:
    """
    Video ID from an iframe embed code.

    E.g. "<iframe src='//player.pbs.org/partnerplayer/qvbejbvsH7nskeELmqmduQ=='>"
    gives "qvbejbvsH7nskeELmqmduQ==".
    """
    match = IFRAME_SRC.search(code)
    if not match:
        return None
    path = urlparse(match.group(1)).path.rstrip("/")
    video_id = path.rsplit("/", 1)[-1]
    return video_id or None


def show_is_publishable(show: Show) -> bool:
    """
    Whether a Show should be *considered* for publishing.

    Everything related to a "kids" audience Show stays unpublished: that
    content supports PBS's own kids website and is never available for
    embedding, whatever the rest of the API data says.
    """
    return show.audience_scope != KIDS_SCOPE


def _parent_attributes(asset: RemoteAsset) -> Mapping[str, Any]:
    tree = asset.attributes.parent_tree or {}
    return tree.get("attributes") or {}


def _video_type(asset: RemoteAsset) -> Optional[str]:
    attributes = asset.attributes
    # Full length videos are either an "episode" or a "special".
    if attributes.object_type == "full_length" and attributes.episode:
        return attributes.episode.get("type") or attributes.object_type
    return attributes.object_type


def _ordinal(asset: RemoteAsset) -> Optional[int]:
    return _parent_attributes(asset).get("ordinal") or None


def _season_ordinal(asset: RemoteAsset) -> Optional[int]:
    season = _parent_attributes(asset).get("season") or {}
    return (season.get("attributes") or {}).get("ordinal") or None


def _player_code(asset: RemoteAsset) -> Optional[str]:
    if not asset.attributes.player_code:
        return None
    video_id = extract_embed_code_video_id(asset.attributes.player_code)
    if video_id is None:
        logger.error(f"Unable to extract Video ID from asset {asset.id}")
    return video_id


ASSET_PROJECTIONS: Sequence[Projection] = (
    ("object_type", lambda a: a.attributes.object_type),
    ("video_type", _video_type),
    ("ordinal", _ordinal),
    ("season_ordinal", _season_ordinal),
    ("player_code", _player_code),
    ("rating", lambda a: a.attributes.content_rating or None),
    ("encore_date", lambda a: a.attributes.encored_on),
    ("premiere_date", lambda a: a.attributes.premiered_on),
    ("image", lambda a: first_image(a.image_urls(), ASSET_IMAGE_PROFILES)),
    ("all_mem_avail_start", lambda a: a.attributes.availabilities.all_members.start),
    ("all_mem_avail_end", lambda a: a.attributes.availabilities.all_members.end),
    ("pub_avail_start", lambda a: a.attributes.availabilities.public.start),
    ("pub_avail_end", lambda a: a.attributes.availabilities.public.end),
    ("station_mem_avail_start", lambda a: a.attributes.availabilities.station_members.start),
    ("station_mem_avail_end", lambda a: a.attributes.availabilities.station_members.end),
)


def _audience_scope(show: RemoteShow) -> Optional[str]:
    # Only the first recognized scope is kept. It is mainly used to catch
    # "kids" Shows.
    for audience in show.attributes.audience:
        if audience.get("scope") in AUDIENCE_SCOPES:
            return audience["scope"]
    return None


def _franchise_id(show: RemoteShow) -> Optional[str]:
    return (show.attributes.franchise or {}).get("id")


SHOW_PROJECTIONS: Sequence[Projection] = (
    ("tms_id", lambda s: s.attributes.tms_id or None),
    ("episode_count", lambda s: s.attributes.episodes_count),
    ("audience_scope", _audience_scope),
    ("premiere_date", lambda s: s.attributes.premiered_on),
    ("franchise_id", _franchise_id),
    ("mezzanine", lambda s: first_image(s.image_urls(), SHOW_MEZZANINE_PROFILES)),
    ("mezzanine_original", lambda s: first_image(s.image_urls(), SHOW_MEZZANINE_PROFILES)),
    ("poster", lambda s: first_image(s.image_urls(), SHOW_POSTER_PROFILES)),
)


def _is_stale(record, updated_at: datetime, force: bool) -> bool:
    return not force and record.last_updated is not None and record.last_updated >= updated_at


class AssetReconciler:
    """Adds or updates Video Content records from Media Manager Assets."""

    def __init__(self, store: ContentStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    def reconcile(self, remote: RemoteAsset, show: Optional[Show] = None, force: bool = False) -> ReconcileResult:
        """
        Add or update the Video Content record for an Asset.

        @param remote Validated Asset from the API
        @param show The Asset's parent Show. May only be omitted when a
            record for the Asset already exists.
        @param force Ignore the stored `last_updated` value
        @raises MissingRequiredParent, PersistenceError
        """
        record = self.store.find_one(VideoContent, remote.id)
        is_new = record is None
        if is_new:
            record = self.store.create(VideoContent)

        if show is None:
            if record.show is None:
                raise MissingRequiredParent(
                    f"Show must be provided when the Video Content record for Asset {remote.id} does not already exist."
                )
            show = record.show

        updated_at = remote.latest_updated_at()
        if _is_stale(record, updated_at, force):
            logger.debug(f"Asset {remote.id} has not changed since {record.last_updated}, skipping")
            return ReconcileResult(record.id, "skipped")

        attributes = remote.attributes

        # Required fields
        record.title = attributes.title
        record.external_id = remote.id
        record.slug = attributes.slug
        record.show = show
        record.description_long = attributes.description_long
        record.description_short = attributes.description_short
        record.last_updated = updated_at
        record.duration = attributes.duration

        apply_projections(record, ASSET_PROJECTIONS, remote)

        # Inherited from the parent Show
        record.genre = show.genre
        if is_new:
            record.editorial_genres = list(show.editorial_genres)
        else:
            # Only add Show genres that are missing, editors may have added others.
            present = {genre.id for genre in record.editorial_genres}
            for genre in show.editorial_genres:
                if genre.id not in present:
                    record.editorial_genres.append(genre)

        self._update_status(record, show)
        self.store.save(record)
        return ReconcileResult(record.id, "created" if is_new else "updated")

    def _update_status(self, record: VideoContent, show: Show) -> None:
        # Video Content of a Show that cannot be published is never published.
        if not show_is_publishable(show):
            record.published = False
            record.publish_on = None
            record.unpublish_on = None
            return

        now = self.clock()
        windows = record.availability_windows()
        start = earliest_start(windows)
        end = latest_end(windows)
        record.publish_on = start if start is not None and start > now else None
        record.unpublish_on = end if end is not None and end > now else None
        record.published = is_available(windows, now)

        if not show.published and (record.published or record.publish_on is not None):
            logger.info(f"Publishing Show {show.external_id} for available Asset {record.external_id}")
            show.published = True
            self.store.stage(show)


class ShowReconciler:
    """Adds or updates Show records from Media Manager Shows."""

    def __init__(self, store: ContentStore, genres: GenreCache, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.genres = genres
        self.clock = clock

    def reconcile(self, remote: RemoteShow, force: bool = False) -> ReconcileResult:
        record = self.store.find_one(Show, remote.id)
        is_new = record is None
        if is_new:
            record = self.store.create(Show)

        updated_at = remote.latest_updated_at()
        if _is_stale(record, updated_at, force):
            logger.debug(f"Show {remote.id} has not changed since {record.last_updated}, skipping")
            return ReconcileResult(record.id, "skipped")

        attributes = remote.attributes
        record.title = attributes.title
        record.external_id = remote.id
        record.slug = attributes.slug
        record.description_long = attributes.description_long
        record.description_short = attributes.description_short
        record.last_updated = updated_at

        apply_projections(record, SHOW_PROJECTIONS, remote)

        genre = attributes.genre
        if genre and genre.get("id"):
            record.genre = self.genres.get_or_add(genre["id"], genre.get("title") or genre["id"], genre.get("slug"))
        else:
            record.genre = None

        if not is_new:
            latest_episode = self.latest_video(record, episodes_only=True)
            record.latest_episode_id = latest_episode.id if latest_episode else None
            # Feature the latest episode (or any video) image on the Show.
            featured = self.latest_video(record, episodes_only=True, with_image=True) \
                or self.latest_video(record, with_image=True)
            if featured is not None:
                record.mezzanine = featured.image

        if record.audience_scope == KIDS_SCOPE:
            record.published = False
        else:
            # Shows with nothing available, now or scheduled, stay unpublished.
            record.published = not is_new and self.has_video_content(record, include_scheduled=True)

        self.store.save(record)
        return ReconcileResult(record.id, "created" if is_new else "updated")

    def latest_video(self, show: Show, episodes_only: bool = False, with_image: bool = False) -> Optional[VideoContent]:
        query = self.store.db.query(VideoContent).filter(
            VideoContent.show_id == show.id,
            VideoContent.published.is_(True),
        )
        if episodes_only:
            query = query.filter(VideoContent.video_type == "episode")
        if with_image:
            query = query.filter(VideoContent.image.isnot(None))
        return query.order_by(
            VideoContent.premiere_date.desc().nulls_last(),
            VideoContent.id.desc(),
        ).first()

    def has_video_content(self, show: Show, include_scheduled: bool = False) -> bool:
        """Whether any published (or, optionally, scheduled) Video Content belongs to the Show."""
        query = self.store.db.query(VideoContent.id).filter(VideoContent.show_id == show.id)
        if include_scheduled:
            query = query.filter(or_(
                VideoContent.published.is_(True),
                VideoContent.publish_on > self.clock(),
            ))
        else:
            query = query.filter(VideoContent.published.is_(True))
        return query.first() is not None
