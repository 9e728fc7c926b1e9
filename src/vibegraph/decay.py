"""Temporal relevance: exponential decay, occurrence merging and halo propagation.

Provides:
- calculate_decay(): half-life decay of a vibe's strength
- apply_decay() / filter_decayed() / sort_by_relevance(): bulk helpers
- merge_occurrence() / boost_vibe(): reinforcement when a vibe reappears
- suggest_half_life(): category-based half-life with adjustments
- apply_halo_effect() / apply_multiple_halo_effects(): boost propagation
  to semantically similar vibes
- temporal_stats(): age/recency/relevance summary

All functions are pure: inputs are never mutated, new Vibe copies are returned.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, asdict
from datetime import datetime, timezone

from .constants import (
    DEFAULT_BOOST_AMOUNT,
    DEFAULT_HALF_LIVES,
    DEFAULT_PRUNE_THRESHOLD,
    DEFAULT_SIMILAR_VIBES_LIMIT,
    DEFAULT_SIMILAR_VIBES_MIN,
    FALLBACK_HALF_LIFE_DAYS,
    HALO_MAX_BOOST,
    HALO_SIMILARITY_THRESHOLD,
    HIGHLY_RELEVANT_THRESHOLD,
    LOW_RELEVANCE_THRESHOLD,
    MERGE_BASE_BOOST,
    MERGE_BOOST_PER_DAY,
    MERGE_MAX_BOOST,
    MIN_SUGGESTED_HALF_LIFE_DAYS,
    MIXED_SENTIMENT_MULTIPLIER,
    MODERATELY_RELEVANT_THRESHOLD,
    NO_DECAY_WINDOW_DAYS,
    RAPID_DECAY_FACTOR,
    SECONDS_PER_DAY,
    SOURCE_MULTIPLIER_CAP,
    SOURCE_MULTIPLIER_STEP,
    STRENGTH_MULTIPLIER_BASE,
    STRENGTH_MULTIPLIER_RANGE,
)
from .models import Vibe, clamp01
from .vectors import cosine_similarity

logger = logging.getLogger(__name__)


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


def days_between(earlier: datetime, later: datetime) -> float:
    """Fractional days from ``earlier`` to ``later`` (negative if reversed)."""
    return (later - earlier).total_seconds() / SECONDS_PER_DAY


def _union(first: Iterable[str], second: Iterable[str]) -> list[str]:
    """Deduplicated union, first-seen order."""
    return list(dict.fromkeys([*first, *second]))


def resolve_half_life(vibe: Vibe) -> float:
    """Half-life in days: explicit value (if > 0), category default, else 14."""
    if vibe.half_life is not None and vibe.half_life > 0:
        return vibe.half_life
    return DEFAULT_HALF_LIVES.get(vibe.category, FALLBACK_HALF_LIFE_DAYS)


def calculate_decay(vibe: Vibe, now: datetime | None = None) -> float:
    """Current relevance of a vibe using exponential (half-life) decay.

    Formula: relevance = strength * 0.5 ^ (days_since_last_seen / half_life)

    Args:
        vibe: The vibe to evaluate
        now: Reference time (default: now)

    Returns:
        Relevance between 0.0 and 1.0

    Examples:
        >>> calculate_decay(meme_seen_3_days_ago)  # strength 1.0, half-life 3
        0.5
        >>> calculate_decay(meme_seen_6_days_ago)
        0.25
    """
    strength = clamp01(vibe.strength)
    days_since = days_between(vibe.last_seen, _now(now))

    # Seen within the last hour (or in the future): no decay
    if days_since < NO_DECAY_WINDOW_DAYS:
        return strength

    if vibe.half_life is not None and vibe.half_life <= 0:
        logger.warning(f"Invalid half_life ({vibe.half_life}) for vibe {vibe.id}, applying rapid decay")
        return strength * RAPID_DECAY_FACTOR

    half_life = resolve_half_life(vibe)
    return clamp01(strength * 0.5 ** (days_since / half_life))


def apply_decay(vibes: Iterable[Vibe], now: datetime | None = None) -> list[Vibe]:
    """Return copies of ``vibes`` with ``current_relevance`` recomputed."""
    reference = _now(now)
    return [
        vibe.model_copy(deep=True, update={"current_relevance": calculate_decay(vibe, reference)})
        for vibe in vibes
    ]


def filter_decayed(
    vibes: Iterable[Vibe],
    threshold: float = DEFAULT_PRUNE_THRESHOLD,
    now: datetime | None = None,
) -> list[Vibe]:
    """Keep vibes whose freshly computed relevance is >= threshold.

    The cached ``current_relevance`` field is ignored; it may be stale.
    """
    reference = _now(now)
    return [vibe for vibe in vibes if calculate_decay(vibe, reference) >= threshold]


def sort_by_relevance(vibes: Iterable[Vibe], now: datetime | None = None) -> list[Vibe]:
    """Decayed copies sorted by current relevance, highest first."""
    decayed = apply_decay(vibes, now)
    decayed.sort(key=lambda v: v.current_relevance, reverse=True)
    return decayed


def boost_vibe(
    vibe: Vibe,
    amount: float = DEFAULT_BOOST_AMOUNT,
    now: datetime | None = None,
) -> Vibe:
    """Reinforce a vibe that was observed again: bump strength, reset last_seen."""
    reference = _now(now)
    return vibe.model_copy(
        deep=True,
        update={
            "last_seen": reference,
            "timestamp": reference,
            "strength": clamp01(vibe.strength + amount),
            "current_relevance": clamp01(vibe.current_relevance + amount),
        },
    )


def merge_boost_amount(days_since_last_seen: float) -> float:
    """Longer absence gives a bigger boost, capped at 0.3."""
    return min(MERGE_MAX_BOOST, MERGE_BASE_BOOST + max(0.0, days_since_last_seen) * MERGE_BOOST_PER_DAY)


def merge_occurrence(existing: Vibe, new: Vibe, now: datetime | None = None) -> Vibe:
    """Merge a fresh observation of a vibe into the stored one.

    The boost depends on how long ``existing`` went unseen. Keyword, source
    and related-vibe lists are unioned. ``last_seen`` becomes ``now``.
    """
    reference = _now(now)
    boost = merge_boost_amount(days_between(existing.last_seen, reference))

    return existing.model_copy(
        deep=True,
        update={
            "last_seen": reference,
            "timestamp": reference,
            "strength": clamp01(existing.strength + boost),
            "current_relevance": clamp01(existing.current_relevance + boost),
            "keywords": _union(existing.keywords, new.keywords),
            "sources": _union(existing.sources, new.sources),
            "related_vibes": _union(existing.related_vibes, new.related_vibes),
        },
    )


def suggest_half_life(vibe: Vibe) -> float:
    """Suggest a half-life (days) from category, strength, sentiment and sources.

    - Stronger vibes last longer (0.7x to 1.3x)
    - Mixed sentiment fades faster (0.8x)
    - More sources give staying power (up to 1.5x)

    Never returns less than one day.
    """
    base = DEFAULT_HALF_LIVES.get(vibe.category, FALLBACK_HALF_LIFE_DAYS)
    strength_multiplier = STRENGTH_MULTIPLIER_BASE + clamp01(vibe.strength) * STRENGTH_MULTIPLIER_RANGE
    sentiment_multiplier = MIXED_SENTIMENT_MULTIPLIER if vibe.sentiment == "mixed" else 1.0
    source_multiplier = min(SOURCE_MULTIPLIER_CAP, 1.0 + len(vibe.sources) * SOURCE_MULTIPLIER_STEP)

    suggested = base * strength_multiplier * sentiment_multiplier * source_multiplier
    return max(MIN_SUGGESTED_HALF_LIFE_DAYS, suggested)


@dataclass(frozen=True)
class HaloConfig:
    """Tunable halo propagation parameters."""

    threshold: float = HALO_SIMILARITY_THRESHOLD
    max_boost: float = HALO_MAX_BOOST

    def boost_for(self, similarity: float) -> float:
        """Boost proportional to how far similarity sits above threshold."""
        if similarity < self.threshold:
            return 0.0
        if self.threshold >= 1.0:
            return self.max_boost
        return ((similarity - self.threshold) / (1.0 - self.threshold)) * self.max_boost


def apply_halo_effect(
    boosted: Vibe,
    vibes: Iterable[Vibe],
    config: HaloConfig | None = None,
    now: datetime | None = None,
) -> list[Vibe]:
    """Propagate a reappearing vibe's boost to semantically similar vibes.

    Halo-boosted vibes were not observed, so ``last_seen`` is left alone and
    they keep decaying. The boost is recorded in ``metadata["last_halo_boost"]``.

    Args:
        boosted: The vibe that just reappeared
        vibes: All vibes in the graph
        config: Threshold and max boost (default 0.6 / 0.15)
        now: Timestamp recorded in the provenance entry

    Returns:
        New list of vibes; unaffected vibes are returned as-is
    """
    vibes = list(vibes)
    if boosted.embedding is None:
        return vibes

    config = config or HaloConfig()
    reference = _now(now)
    result: list[Vibe] = []

    for vibe in vibes:
        if vibe.id == boosted.id or vibe.embedding is None:
            result.append(vibe)
            continue

        if len(vibe.embedding) != len(boosted.embedding):
            logger.debug(f"Halo skipped for {vibe.id}: dimension mismatch")
            result.append(vibe)
            continue

        similarity = cosine_similarity(boosted.embedding, vibe.embedding)
        halo = config.boost_for(similarity)
        if halo <= 0.0:
            result.append(vibe)
            continue

        metadata = dict(vibe.metadata)
        metadata["last_halo_boost"] = {
            "from": boosted.id,
            "similarity": similarity,
            "amount": halo,
            "timestamp": reference.isoformat(),
        }
        result.append(
            vibe.model_copy(
                deep=True,
                update={
                    "strength": clamp01(vibe.strength + halo),
                    "current_relevance": clamp01(vibe.current_relevance + halo),
                    "metadata": metadata,
                },
            )
        )
        logger.debug(f"Halo boost {halo:.3f} from {boosted.id} to {vibe.id} (sim={similarity:.2f})")

    return result


def apply_multiple_halo_effects(
    boosted_vibes: Iterable[Vibe],
    vibes: Iterable[Vibe],
    config: HaloConfig | None = None,
    now: datetime | None = None,
) -> list[Vibe]:
    """Apply halo effects one source at a time.

    Each application sees the state produced by the previous one, so boosts
    from several sources compound.
    """
    updated = list(vibes)
    for boosted in boosted_vibes:
        updated = apply_halo_effect(boosted, updated, config, now)
    return updated


def find_similar_vibes(
    target: Vibe,
    vibes: Iterable[Vibe],
    top_k: int = DEFAULT_SIMILAR_VIBES_LIMIT,
    min_similarity: float = DEFAULT_SIMILAR_VIBES_MIN,
) -> list[tuple[Vibe, float]]:
    """Nearest semantic neighbours of ``target``, excluding itself."""
    if target.embedding is None:
        return []

    scored = [
        (vibe, cosine_similarity(target.embedding, vibe.embedding))
        for vibe in vibes
        if vibe.id != target.id and vibe.embedding is not None
    ]
    scored = [(vibe, sim) for vibe, sim in scored if sim >= min_similarity]
    scored.sort(key=lambda pair: pair[1], reverse=True)
    return scored[:top_k]


@dataclass
class TemporalStats:
    """Age, recency and relevance summary for a set of vibes."""

    total_vibes: int = 0
    average_age_days: float = 0.0
    average_days_since_last_seen: float = 0.0
    average_relevance: float = 0.0
    highly_relevant: int = 0
    moderately_relevant: int = 0
    low_relevance: int = 0
    decayed: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def temporal_stats(vibes: Iterable[Vibe], now: datetime | None = None) -> TemporalStats:
    """Summarise ages and relevance buckets.

    Buckets: highly relevant (> 0.7), moderate (0.3, 0.7], low (0.05, 0.3],
    decayed (<= 0.05).
    """
    vibes = list(vibes)
    if not vibes:
        return TemporalStats()

    reference = _now(now)
    stats = TemporalStats(total_vibes=len(vibes))
    relevances = [calculate_decay(v, reference) for v in vibes]

    stats.average_age_days = sum(days_between(v.first_seen, reference) for v in vibes) / len(vibes)
    stats.average_days_since_last_seen = sum(days_between(v.last_seen, reference) for v in vibes) / len(vibes)
    stats.average_relevance = sum(relevances) / len(relevances)

    for relevance in relevances:
        if relevance > HIGHLY_RELEVANT_THRESHOLD:
            stats.highly_relevant += 1
        elif relevance > MODERATELY_RELEVANT_THRESHOLD:
            stats.moderately_relevant += 1
        elif relevance > LOW_RELEVANCE_THRESHOLD:
            stats.low_relevance += 1
        else:
            stats.decayed += 1

    return stats
