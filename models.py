from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DM_CONTEXT_ID = "DM"
DM_CONTEXT_NAME = "Direct Message"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Record(BaseModel):
    """Base for persisted records: camelCase on disk, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class Genre(BaseModel):
    id: Optional[int] = None
    name: str


class ExternalMetadata(BaseModel):
    # Keys mirror the TMDB payload, so they stay snake_case on disk as well.
    tmdb_id: Optional[int] = None
    title: Optional[str] = None
    overview: Optional[str] = None
    release_date: Optional[str] = None
    vote_average: Optional[float] = None
    genres: list[Genre] = Field(default_factory=list)
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    original_language: Optional[str] = None
    media_type: str = "unknown"

    @property
    def release_year(self) -> Optional[int]:
        if self.release_date and len(self.release_date) >= 4 and self.release_date[:4].isdigit():
            return int(self.release_date[:4])
        return None


class SaveMetadata(_Record):
    saved_at: datetime = Field(default_factory=utcnow)
    tmdb_status: str = "success"  # success | failed
    tmdb_error: Optional[str] = None
    force_saved: bool = False


class MediaRecord(_Record):
    id: Optional[str] = None
    name: str
    aliases: list[str] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=list)
    watch_links: dict[str, str] = Field(default_factory=dict)
    screenshot_links: list[str] = Field(default_factory=list)
    custom_poster_url: Optional[str] = None
    external_metadata: Optional[ExternalMetadata] = Field(default=None, alias="tmdbDetails")
    save_metadata: Optional[SaveMetadata] = None
    added_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        # Older files hold numeric ids; everything downstream compares strings.
        if v is None:
            return v
        return str(v)

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name must not be empty")
        return v

    @property
    def rating(self) -> Optional[float]:
        return self.external_metadata.vote_average if self.external_metadata else None

    @property
    def release_year(self) -> Optional[int]:
        return self.external_metadata.release_year if self.external_metadata else None


class RequestStatus(str, Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"
    REJECTED = "rejected"


class RequestRecord(_Record):
    id: str
    movie_name: str
    requested_by: str
    requested_at: datetime = Field(default_factory=utcnow)
    guild_id: str = DM_CONTEXT_ID
    guild_name: str = DM_CONTEXT_NAME
    status: RequestStatus = RequestStatus.PENDING
    source: str = "request"  # request | lookup
    fulfilled_at: Optional[datetime] = None
    fulfilled_with: Optional[str] = None
    updated_at: Optional[datetime] = None

    @field_validator("id", "requested_by", mode="before")
    @classmethod
    def coerce_str(cls, v):
        return str(v)

    @field_validator("requested_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return v if v.tzinfo else v.replace(tzinfo=timezone.utc)

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING


class GuildSettings(_Record):
    movie_channel_id: Optional[str] = None


class UnshortenedLink(_Record):
    name: str
    link: str
    added_at: datetime = Field(default_factory=utcnow)


class MovieUpdate(BaseModel):
    """Partial update for a MediaRecord. ``None`` means leave the field alone."""

    languages: Optional[str] = None
    add_languages: Optional[str] = None
    remove_languages: Optional[str] = None
    poster_url: Optional[str] = None
    watch_links: Optional[str] = None
    add_screenshot_links: Optional[str] = None
    remove_screenshot_links: Optional[str] = None
    new_name: Optional[str] = None
    add_aliases: Optional[str] = None
    remove_aliases: Optional[str] = None
