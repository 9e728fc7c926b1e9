"""Core data models for the cultural graph.

Uses Pydantic v2 for validation, ULID for sortable unique IDs.
"""

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from ulid import ULID

from .constants import GRAPH_FORMAT_VERSION


def generate_id() -> str:
    """Generate a ULID (sortable, unique even within the same millisecond)."""
    return str(ULID())


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


def clamp01(value: float) -> float:
    """Clamp a value into [0, 1]."""
    return max(0.0, min(1.0, value))


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


VibeCategory = Literal[
    "meme",       # internet culture
    "event",      # specific happening
    "trend",      # something gaining popularity
    "topic",      # discussion subject
    "sentiment",  # mood or feeling
    "aesthetic",  # visual/style vibe
    "movement",   # social/cultural movement
    "custom",     # for experimentation
]

VIBE_CATEGORIES: tuple[str, ...] = (
    "meme", "event", "trend", "topic", "sentiment", "aesthetic", "movement", "custom",
)

Sentiment = Literal["positive", "negative", "neutral", "mixed"]

EdgeType = Literal[
    "related",     # generally related
    "influences",  # one influences another
    "evolves_to",  # temporal evolution
    "conflicts",   # opposing vibes
    "amplifies",   # one amplifies another
]


class Geography(BaseModel):
    """Regional annotation used by personalization."""

    primary: str = "Global"  # "Global" means globally scoped
    relevance: dict[str, float] = Field(default_factory=dict)  # region -> 0-1
    detected_from: list[str] = Field(default_factory=list)

    @field_validator("relevance")
    @classmethod
    def _clamp_relevance(cls, value: dict[str, float]) -> dict[str, float]:
        return {region: clamp01(score) for region, score in value.items()}


class Vibe(BaseModel):
    """A cultural signal: trend, meme, topic, sentiment..."""

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=generate_id)
    name: str
    description: str = ""
    category: VibeCategory = "trend"
    keywords: list[str] = Field(default_factory=list)
    sources: list[str] = Field(default_factory=list)  # URLs or opaque ids

    strength: float = 0.5  # prevalence at last observation
    current_relevance: float = 0.5  # cache of decay(vibe, now)
    sentiment: Sentiment = "neutral"
    half_life: float | None = None  # days; None = category default
    decay_rate: float | None = None

    timestamp: datetime = Field(default_factory=utc_now)  # last mutation
    first_seen: datetime = Field(default_factory=utc_now)
    last_seen: datetime = Field(default_factory=utc_now)

    embedding: list[float] | None = None

    # Weak references (ids only)
    related_vibes: list[str] = Field(default_factory=list)
    influences: list[str] = Field(default_factory=list)

    demographics: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)
    domains: list[str] = Field(default_factory=list)
    geography: Geography | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("strength", "current_relevance")
    @classmethod
    def _clamp_unit(cls, value: float) -> float:
        return clamp01(value)

    @field_validator("timestamp", "first_seen", "last_seen")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return as_utc(value)

    def copy_deep(self) -> "Vibe":
        """Independent copy; no nested container is shared."""
        return self.model_copy(deep=True)

    def embedding_text(self) -> str:
        """Text used to generate this vibe's embedding."""
        return f"{self.name}: {self.description}. Keywords: {', '.join(self.keywords)}"

    def to_summary(self) -> dict:
        """Return a compact summary of this vibe."""
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "strength": round(self.strength, 3),
            "current_relevance": round(self.current_relevance, 3),
            "last_seen": self.last_seen.isoformat(),
        }


class GraphEdge(BaseModel):
    """Directed, typed relation between two vibes.

    Identity is the (from_id, to_id, type) triple.
    """

    from_id: str
    to_id: str
    type: EdgeType = "related"
    strength: float = Field(default=0.5, ge=0.0, le=1.0)

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.from_id, self.to_id, self.type)

    def touches(self, vibe_id: str) -> bool:
        return self.from_id == vibe_id or self.to_id == vibe_id


class GraphMetadata(BaseModel):
    last_updated: datetime = Field(default_factory=utc_now)
    vibe_count: int = 0
    version: str = GRAPH_FORMAT_VERSION


class CulturalGraph(BaseModel):
    """Snapshot of the full graph at read time."""

    vibes: dict[str, Vibe] = Field(default_factory=dict)  # id -> Vibe
    edges: list[GraphEdge] = Field(default_factory=list)
    metadata: GraphMetadata = Field(default_factory=GraphMetadata)


class ScenarioContext(BaseModel):
    location: str | None = None
    time_of_day: str | None = None
    people_types: list[str] = Field(default_factory=list)
    formality: Literal["casual", "business-casual", "formal"] | None = None
    duration: str | None = None


class ScenarioPreferences(BaseModel):
    conversation_style: str | None = None
    topics: list[str] = Field(default_factory=list)
    avoid: list[str] = Field(default_factory=list)


class Scenario(BaseModel):
    """A query context describing a situation, e.g. "dinner with tech friends"."""

    description: str
    context: ScenarioContext | None = None
    preferences: ScenarioPreferences | None = None


class VibeMatch(BaseModel):
    """A ranked result: vibe, score and a human-readable explanation."""

    vibe: Vibe
    relevance_score: float
    reasoning: str = ""


class UserProfile(BaseModel):
    """Requester preferences used by personalized matching."""

    id: str = Field(default_factory=generate_id)
    region: str | None = None
    interests: list[str] = Field(default_factory=list)
    avoid_topics: list[str] = Field(default_factory=list)
    conversation_style: Literal["casual", "professional", "academic", "friendly"] = "casual"


class Engagement(BaseModel):
    views: int | None = None
    likes: int | None = None
    shares: int | None = None
    comments: int | None = None


class RawContent(BaseModel):
    """Content fetched by a collector, before extraction."""

    id: str = Field(default_factory=generate_id)
    source: str  # "news", "reddit", ...
    url: str | None = None
    title: str | None = None
    body: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)
    author: str | None = None
    engagement: Engagement | None = None
    raw: dict[str, Any] = Field(default_factory=dict)


class Advice(BaseModel):
    """Structured recommendations produced by an advice generator."""

    scenario: Scenario
    matched_vibes: list[VibeMatch] = Field(default_factory=list)
    recommendations: dict[str, list[Any]] = Field(
        default_factory=lambda: {"topics": [], "behavior": [], "style": []}
    )
    reasoning: str = ""
    confidence: float = 0.5
    timestamp: datetime = Field(default_factory=utc_now)
