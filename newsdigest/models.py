"""
Core data models for the digest pipeline.

Using Pydantic for validation and serialization.
"""

from datetime import datetime
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

from newsdigest.scheduler import parse_time_24h


class SourceType(str, Enum):
    """Kind of content origin."""

    RSS = "RSS"
    URL = "URL"
    KEYWORD = "KEYWORD"


class DigestFrequency(str, Enum):
    """How often a user's digest fires."""

    DAILY = "DAILY"
    TWICE_DAILY = "TWICE_DAILY"
    WEEKLY = "WEEKLY"
    WEEKDAY_ONLY = "WEEKDAY_ONLY"


class DigestLength(str, Enum):
    """Digest size, mapped to an item-count cap."""

    BRIEF = "BRIEF"
    STANDARD = "STANDARD"
    COMPREHENSIVE = "COMPREHENSIVE"

    @property
    def item_cap(self) -> int:
        return DIGEST_LENGTH_CAPS[self]


DIGEST_LENGTH_CAPS: dict[DigestLength, int] = {
    DigestLength.BRIEF: 5,
    DigestLength.STANDARD: 10,
    DigestLength.COMPREHENSIVE: 20,
}


class SummaryDepth(str, Enum):
    """Target verbosity of per-item summaries."""

    HEADLINES = "HEADLINES"
    SHORT = "SHORT"
    DETAILED = "DETAILED"


class DigestStatus(str, Enum):
    """Lifecycle of a generated digest. SENT and FAILED are terminal."""

    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class EngagementAction(str, Enum):
    """Reader interactions recorded against digest items."""

    READ = "READ"
    BOOKMARK = "BOOKMARK"
    CLICK = "CLICK"
    SHARE = "SHARE"


class FetchedItem(BaseModel):
    """A candidate content item pulled from a source."""

    source_id: str | None = Field(default=None, description="Catalog source id, None for custom sources")
    source_label: str = Field(..., description="Display name of the origin")
    title: str = Field(..., min_length=1, description="Item title")
    url: str = Field(..., min_length=1, description="Item link")
    content: str = Field(default="", description="Snippet or body text")
    published_at: datetime = Field(..., description="Publication timestamp")
    topic: str | None = Field(default=None, description="Coarse category inferred from the title")


class RankedItem(FetchedItem):
    """A fetched item carrying its relevance score."""

    model_config = ConfigDict(frozen=True)

    score: float = Field(..., description="Blended keyword and freshness score")


class DigestItem(BaseModel):
    """A persisted entry of a digest."""

    id: str
    source_id: str | None = None
    source_label: str
    title: str
    url: str
    summary: str
    published_at: datetime
    relevance_score: float
    topic: str | None = None
    read_at: datetime | None = None
    is_bookmarked: bool = False


class Digest(BaseModel):
    """One generated bundle of ranked items for a user."""

    id: str
    user_id: str
    generated_at: datetime
    sent_at: datetime | None = None
    status: DigestStatus = DigestStatus.PENDING
    items: list[DigestItem] = Field(default_factory=list)


class DigestConfiguration(BaseModel):
    """Per-user delivery and digest-shape preferences."""

    frequency: DigestFrequency = DigestFrequency.DAILY
    delivery_time: str = Field(default="08:00", description="Local HH:MM")
    timezone: str = Field(default="UTC", description="IANA timezone name")
    weekly_day: int | None = Field(default=None, ge=0, le=6, description="Sunday=0, WEEKLY only")
    digest_length: DigestLength = DigestLength.STANDARD
    summary_depth: SummaryDepth = SummaryDepth.SHORT
    language: str = "en"
    is_paused: bool = False
    resume_date: datetime | None = None

    @field_validator("delivery_time")
    @classmethod
    def normalize_delivery_time(cls, value: str) -> str:
        hour, minute = parse_time_24h(value)
        return f"{hour:02d}:{minute:02d}"

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value


class UserAccount(BaseModel):
    """A digest subscriber."""

    id: str
    name: str | None = None
    email: str | None = None
    created_at: datetime


class CatalogSource(BaseModel):
    """A shared, curated feed users can opt into."""

    id: str
    name: str
    url: str
    category: str = "Uncategorized"
    type: SourceType = SourceType.RSS


class CustomSource(BaseModel):
    """A user-defined feed, page or keyword watch."""

    id: str
    user_id: str
    name: str
    type: SourceType
    value: str = Field(..., description="Feed URL, page URL or keyword")
    is_enabled: bool = True


class TopicCount(BaseModel):
    topic: str
    count: int


class SourceCount(BaseModel):
    source: str
    count: int


class DigestAnalytics(BaseModel):
    """Reading statistics for one user."""

    read_count: int = 0
    bookmark_count: int = 0
    top_topics: list[TopicCount] = Field(default_factory=list)
    most_read_sources: list[SourceCount] = Field(default_factory=list)
    streak_days: int = 0
