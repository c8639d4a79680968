"""Data models for feeds and pledges."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class SourceType(str, Enum):
    CHANNEL = "channel"
    GROUP = "group"
    USER = "user"


class Quality(str, Enum):
    LOW = "low"
    HIGH = "high"


@dataclass
class FeedConfig:
    """Per-feed build settings."""

    url: str
    quality: Quality = Quality.HIGH
    page_size: int = 50
    id: str | None = None
    user_id: str | None = None

    def __post_init__(self):
        self.quality = Quality(self.quality)
        if self.page_size <= 0:
            raise ValueError(f"page_size must be positive, got {self.page_size}")


@dataclass
class Item:
    """Single episode (video) of a feed."""

    id: str
    title: str
    description: str
    duration: int  # seconds
    size: int  # approximate bytes
    pub_date: datetime | None
    thumbnail: str
    video_url: str


@dataclass
class Feed:
    """Podcast-shaped representation of a video source."""

    id: str = ""
    item_id: str = ""
    provider: str = "vimeo"
    source_type: SourceType = SourceType.CHANNEL
    title: str = ""
    item_url: str = ""
    description: str = ""
    cover_art: str = ""
    author: str = ""
    pub_date: datetime | None = None
    updated_at: datetime | None = None
    quality: Quality = Quality.HIGH
    page_size: int = 50
    user_id: str = ""
    created_at: int = 0  # epoch seconds, range key of the user index
    expires_at: datetime | None = None  # TTL
    episodes: list[Item] = field(default_factory=list)


@dataclass
class Pledge:
    """Time-bounded entitlement for elevated feed quality."""

    id: int
    user_id: str
    expires_at: datetime | None
    tier: int  # amount in cents

    def is_active(self, now: datetime) -> bool:
        """Naive datetimes are read as UTC."""
        if self.expires_at is None:
            return True
        return _as_utc(self.expires_at) > _as_utc(now)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
