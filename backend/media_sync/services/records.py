"""
Typed views of Media Manager API items.

Raw API objects are validated once, when they enter the sync engine, into
one of the variants below (discriminated by `type`). Attributes the engine
does not use are kept so that a record can be serialized onto the dispatch
queue and validated again by the consumer without losing data.
"""
from datetime import date, datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from urllib.parse import urlparse

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter

from media_sync.utils.dates import empty_to_none, to_storage_datetime

ApiDateTime = Annotated[datetime, AfterValidator(to_storage_datetime)]
OptionalApiDateTime = Annotated[Optional[ApiDateTime], BeforeValidator(empty_to_none)]
OptionalApiDate = Annotated[Optional[date], BeforeValidator(empty_to_none)]


class RemoteImage(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    profile: str
    url: str = Field(alias="image")
    updated_at: OptionalApiDateTime = None


class Availability(BaseModel):
    model_config = ConfigDict(extra="allow")

    start: OptionalApiDateTime = None
    end: OptionalApiDateTime = None


class Availabilities(BaseModel):
    model_config = ConfigDict(extra="allow")

    public: Availability = Availability()
    all_members: Availability = Availability()
    station_members: Availability = Availability()


class RemoteAttributes(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: Optional[str] = None
    slug: Optional[str] = None
    description_short: Optional[str] = None
    description_long: Optional[str] = None
    updated_at: ApiDateTime
    images: List[RemoteImage] = []


class ShowAttributes(RemoteAttributes):
    tms_id: Optional[str] = None
    episodes_count: Optional[int] = None
    audience: List[Dict[str, Any]] = []
    genre: Optional[Dict[str, Any]] = None
    premiered_on: OptionalApiDate = None
    franchise: Optional[Dict[str, Any]] = None


class AssetAttributes(RemoteAttributes):
    object_type: Optional[str] = None
    duration: Optional[int] = None
    player_code: Optional[str] = None
    content_rating: Optional[str] = None
    encored_on: OptionalApiDate = None
    premiered_on: OptionalApiDate = None
    availabilities: Availabilities = Availabilities()
    episode: Optional[Dict[str, Any]] = None
    parent_tree: Optional[Dict[str, Any]] = None


class _RemoteRecordBase(BaseModel):
    id: str

    @property
    def updated_at(self) -> datetime:
        return self.attributes.updated_at

    @property
    def images(self) -> List[RemoteImage]:
        return self.attributes.images

    def latest_updated_at(self) -> datetime:
        """
        Latest `updated_at` of the item or any of its images.

        Image updates do not bubble up to the item's own `updated_at`
        (unlike e.g. availability or geo changes) so they are scanned here.
        """
        latest = self.attributes.updated_at
        for image in self.attributes.images:
            if image.updated_at is not None and image.updated_at > latest:
                latest = image.updated_at
        return latest

    def image_urls(self) -> Dict[str, str]:
        return parse_images(self.attributes.images)


class RemoteShow(_RemoteRecordBase):
    type: Literal["show"]
    attributes: ShowAttributes


class RemoteSeason(_RemoteRecordBase):
    type: Literal["season"]
    attributes: RemoteAttributes


class RemoteEpisode(_RemoteRecordBase):
    type: Literal["episode"]
    attributes: RemoteAttributes


class RemoteAsset(_RemoteRecordBase):
    type: Literal["asset"]
    attributes: AssetAttributes


RemoteRecord = Annotated[
    Union[RemoteShow, RemoteSeason, RemoteEpisode, RemoteAsset],
    Field(discriminator="type"),
]

_record_adapter = TypeAdapter(RemoteRecord)


def parse_record(data: Dict[str, Any]) -> RemoteRecord:
    """Validate a raw API item (raises pydantic.ValidationError)."""
    return _record_adapter.validate_python(data)


def dump_record(record: RemoteRecord) -> Dict[str, Any]:
    """JSON-safe dict that `parse_record` accepts again."""
    return record.model_dump(mode="json", by_alias=True)


def parse_images(images: List[RemoteImage]) -> Dict[str, str]:
    """
    Key image URLs by profile and force a scheme-relative URL.

    Some Media Manager images use an "http" scheme, which would be mixed
    content on an "https" site. Images without a host or path are dropped.
    """
    parsed = {}
    for image in images:
        parts = urlparse(image.url)
        if not parts.netloc or not parts.path:
            continue
        parsed[image.profile] = f"//{parts.netloc}{parts.path}"
    return parsed
