"""Region detection heuristics and default regional relevance.

Used when annotating extracted vibes with a Geography so personalized
matching can filter and weight by the requester's region.
"""

from collections import Counter
from collections.abc import Iterable
from typing import Literal

from .models import Geography, Vibe

Region = Literal[
    "Global",
    "US-West",
    "US-East",
    "US-Central",
    "US-South",
    "EU-UK",
    "EU-Central",
    "EU-North",
    "Asia-Pacific",
    "Latin-America",
    "Africa",
    "Middle-East",
]

GLOBAL = "Global"

_URL_HINTS: list[tuple[str, tuple[str, ...]]] = [
    ("US-West", (
        "techcrunch.com",
        "reddit.com/r/sanfrancisco",
        "reddit.com/r/bayarea",
        "reddit.com/r/losangeles",
        "reddit.com/r/seattle",
    )),
    ("US-East", ("reddit.com/r/nyc", "reddit.com/r/boston", "reddit.com/r/washingtondc")),
    ("EU-UK", (".uk", "bbc.", "guardian.")),
    ("EU-Central", (".de", ".fr", "euronews.")),
]

_CONTENT_HINTS: list[tuple[str, tuple[str, ...]]] = [
    ("US-West", (
        "san francisco", "silicon valley", "sf bay", "los angeles",
        "seattle", "portland", "california",
    )),
    ("US-East", ("new york", "nyc", "boston", "washington dc", "philadelphia")),
    ("EU-UK", ("london", "uk", "united kingdom", "britain", "british")),
    ("EU-Central", ("paris", "berlin", "europe", "european", "brussels")),
]

# (region, neighbour, minimum relevance for the neighbour)
_PROXIMITY: list[tuple[str, str, float]] = [
    ("US-West", "US-East", 0.4),
    ("US-West", "US-Central", 0.3),
    ("US-East", "US-West", 0.4),
    ("US-East", "US-Central", 0.3),
    ("EU-UK", "EU-Central", 0.6),
]


def detect_region_from_url(url: str) -> str:
    """Guess a region from a source URL. Unknown URLs are Global."""
    url_lower = url.lower()
    for region, hints in _URL_HINTS:
        if any(hint in url_lower for hint in hints):
            return region
    return GLOBAL


def detect_region_from_content(text: str) -> list[str]:
    """Regions whose place names appear in the text."""
    text_lower = text.lower()
    return [
        region for region, hints in _CONTENT_HINTS
        if any(hint in text_lower for hint in hints)
    ]


def calculate_regional_relevance(primary: str, detected: Iterable[str]) -> dict[str, float]:
    """Default region -> relevance map.

    Global 0.5, primary 0.9, other detected regions 0.7, plus proximity
    minimums for neighbouring regions.
    """
    detected = list(detected)
    relevance: dict[str, float] = {GLOBAL: 0.5, primary: 0.9}

    for region in detected:
        if region not in (primary, GLOBAL):
            relevance[region] = 0.7

    involved = {primary, *detected}
    for region, neighbour, minimum in _PROXIMITY:
        if region in involved:
            relevance[neighbour] = max(relevance.get(neighbour, 0.0), minimum)

    return relevance


def get_primary_region(vibe: Vibe) -> str:
    """The non-Global region with the highest relevance, else Global."""
    if vibe.geography is None or not vibe.geography.relevance:
        return GLOBAL

    best_region, best_score = GLOBAL, 0.0
    for region, score in vibe.geography.relevance.items():
        if region != GLOBAL and score > best_score:
            best_region, best_score = region, score
    return best_region


def suggest_region_from_content(items: Iterable[dict]) -> tuple[str, list[str]]:
    """Primary and detected regions across several {url, text} items.

    The primary region is the one detected most often; detected regions
    keep the order they were first seen in.
    """
    hits: Counter[str] = Counter()
    for item in items:
        if item.get("url"):
            hits[detect_region_from_url(item["url"])] += 1
        if item.get("text"):
            hits.update(detect_region_from_content(item["text"]))

    del hits[GLOBAL]
    if not hits:
        return GLOBAL, [GLOBAL]
    # most_common keeps first-detected order among ties
    return hits.most_common(1)[0][0], list(hits)


def build_geography(items: Iterable[dict]) -> Geography:
    """Geography annotation for a vibe extracted from the given items."""
    items = list(items)
    primary, detected = suggest_region_from_content(items)
    return Geography(
        primary=primary,
        relevance=calculate_regional_relevance(primary, detected),
        detected_from=[item["url"] for item in items if item.get("url")],
    )
