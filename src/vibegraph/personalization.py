"""Personalization helpers: interest matching, topic avoidance, regional relevance."""

from .constants import (
    INTEREST_BOOST_FACTOR,
    REGIONAL_RELEVANCE_THRESHOLD,
    UNRELATED_REGION_RELEVANCE,
)
from .models import UserProfile, Vibe
from .regions import GLOBAL


def _vibe_text(vibe: Vibe) -> str:
    return f"{vibe.name} {vibe.description} {' '.join(vibe.keywords)}".lower()


def calculate_interest_match(vibe: Vibe, interests: list[str]) -> float:
    """Fraction of the user's interests found in the vibe's text (0-1)."""
    if not interests:
        return 0.0

    text = _vibe_text(vibe)
    matched = sum(1 for interest in interests if interest.lower() in text)
    return matched / len(interests)


def is_topic_avoided(vibe: Vibe, avoid_topics: list[str]) -> bool:
    """True if any avoided term appears in the vibe's name, description,
    keywords or domains (case-insensitive)."""
    if not avoid_topics:
        return False

    text = _vibe_text(vibe)
    domains = [d.lower() for d in vibe.domains]

    for topic in avoid_topics:
        topic = topic.lower()
        if topic in text or any(topic in domain for domain in domains):
            return True
    return False


def get_regional_relevance(vibe: Vibe, region: str) -> float:
    """How relevant a vibe is to ``region``.

    1.0 without geography data, for Global vibes, and for primary-region
    matches; explicit per-region scores win otherwise; 0.3 for unrelated regions.
    """
    geography = vibe.geography
    if geography is None or geography.primary == GLOBAL:
        return 1.0
    if region in geography.relevance:
        return geography.relevance[region]
    if geography.primary == region:
        return 1.0
    return UNRELATED_REGION_RELEVANCE


def meets_regional_threshold(
    vibe: Vibe, region: str, threshold: float = REGIONAL_RELEVANCE_THRESHOLD
) -> bool:
    return get_regional_relevance(vibe, region) >= threshold


def calculate_personalization_score(vibe: Vibe, profile: UserProfile) -> float:
    """Combined multiplier (0 to ~2.25): 0 if avoided, else regional x interest."""
    if is_topic_avoided(vibe, profile.avoid_topics):
        return 0.0

    score = 1.0
    if profile.region:
        score *= 0.5 + get_regional_relevance(vibe, profile.region)
    if profile.interests:
        score *= 1.0 + calculate_interest_match(vibe, profile.interests) * INTEREST_BOOST_FACTOR
    return score
