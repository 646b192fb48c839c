"""
Local content records synced from Media Manager.

Each record stores the remote GUID in `external_id`, which is the join key
used by the sync engine, and the remote item's latest update time in
`last_updated`, which drives the staleness guard.
"""
from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, Text, ForeignKey, Table
from sqlalchemy.orm import relationship
from media_sync.db.base_class import Base
from media_sync.services.availability import AvailabilityWindow


show_editorial_genres = Table(
    "show_editorial_genres",
    Base.metadata,
    Column("show_id", Integer, ForeignKey("shows.id", ondelete="CASCADE"), primary_key=True),
    Column("genre_id", Integer, ForeignKey("genres.id", ondelete="CASCADE"), primary_key=True),
)

video_content_editorial_genres = Table(
    "video_content_editorial_genres",
    Base.metadata,
    Column("video_content_id", Integer, ForeignKey("video_content.id", ondelete="CASCADE"), primary_key=True),
    Column("genre_id", Integer, ForeignKey("genres.id", ondelete="CASCADE"), primary_key=True),
)


class Genre(Base):
    __tablename__ = "genres"

    bundle = "genre"

    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(String, index=True)  # Media Manager genre ID, NULL for editorial-only terms
    name = Column(String, nullable=False)
    slug = Column(String, nullable=True)


class Show(Base):
    __tablename__ = "shows"

    bundle = "show"

    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(String, index=True)  # Media Manager GUID
    title = Column(String)
    slug = Column(String, index=True, nullable=True)
    tms_id = Column(String, index=True, nullable=True)
    description_long = Column(Text, nullable=True)
    description_short = Column(Text, nullable=True)
    episode_count = Column(Integer, nullable=True)
    audience_scope = Column(String, nullable=True)
    premiere_date = Column(Date, nullable=True)
    franchise_id = Column(String, nullable=True)
    mezzanine = Column(String, nullable=True)
    mezzanine_original = Column(String, nullable=True)
    poster = Column(String, nullable=True)
    latest_episode_id = Column(Integer, nullable=True)  # VideoContent.id
    last_updated = Column(DateTime, nullable=True)
    published = Column(Boolean, default=False, nullable=False)

    genre_id = Column(Integer, ForeignKey("genres.id", ondelete="SET NULL"), nullable=True)
    genre = relationship("Genre")
    editorial_genres = relationship("Genre", secondary=show_editorial_genres)


class VideoContent(Base):
    """
    A Media Manager Asset.

    @description Availability windows are stored as start/end column pairs.
    Station member dates are synced but not used when evaluating
    availability.
    """
    __tablename__ = "video_content"

    bundle = "video_content"

    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(String, index=True)  # Media Manager GUID
    title = Column(String)
    slug = Column(String, nullable=True)
    show_id = Column(Integer, ForeignKey("shows.id", ondelete="CASCADE"), nullable=True, index=True)
    description_long = Column(Text, nullable=True)
    description_short = Column(Text, nullable=True)
    last_updated = Column(DateTime, nullable=True)
    duration = Column(Integer, nullable=True)  # seconds

    object_type = Column(String, nullable=True)  # full_length, preview, clip
    video_type = Column(String, nullable=True)  # episode, special, preview, clip
    ordinal = Column(Integer, nullable=True)
    season_ordinal = Column(Integer, nullable=True)
    player_code = Column(String, nullable=True)
    rating = Column(String, nullable=True)
    encore_date = Column(Date, nullable=True)
    premiere_date = Column(Date, nullable=True)
    image = Column(String, nullable=True)

    pub_avail_start = Column(DateTime, nullable=True)
    pub_avail_end = Column(DateTime, nullable=True)
    all_mem_avail_start = Column(DateTime, nullable=True)
    all_mem_avail_end = Column(DateTime, nullable=True)
    station_mem_avail_start = Column(DateTime, nullable=True)
    station_mem_avail_end = Column(DateTime, nullable=True)

    published = Column(Boolean, default=False, nullable=False)
    publish_on = Column(DateTime, nullable=True)
    unpublish_on = Column(DateTime, nullable=True)

    show = relationship("Show")
    genre_id = Column(Integer, ForeignKey("genres.id", ondelete="SET NULL"), nullable=True)
    genre = relationship("Genre")
    editorial_genres = relationship("Genre", secondary=video_content_editorial_genres)

    def availability_windows(self):
        """Named availability windows in evaluation priority order."""
        return [
            AvailabilityWindow("public", self.pub_avail_start, self.pub_avail_end),
            AvailabilityWindow("passport", self.all_mem_avail_start, self.all_mem_avail_end),
        ]
