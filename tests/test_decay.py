"""Tests for the relevance engine: decay, merging, boosting and halo propagation."""

import random
from datetime import timedelta

import pytest

from conftest import NOW, make_vibe, topic_vector, unit_vector
from vibegraph.decay import (
    HaloConfig,
    apply_decay,
    apply_halo_effect,
    apply_multiple_halo_effects,
    boost_vibe,
    calculate_decay,
    filter_decayed,
    find_similar_vibes,
    merge_boost_amount,
    merge_occurrence,
    resolve_half_life,
    sort_by_relevance,
    suggest_half_life,
    temporal_stats,
)
from vibegraph.models import VIBE_CATEGORIES, Vibe


# --- Decay Tests ---


class TestCalculateDecay:
    """Tests for calculate_decay()."""

    def test_meme_after_one_half_life(self):
        """Meme with strength 1.0 and half-life 3, seen 3 days ago, is at 0.5."""
        vibe = make_vibe("Skibidi", days_ago=3, category="meme", strength=1.0, half_life=3)
        assert calculate_decay(vibe, NOW) == pytest.approx(0.5)

    def test_naive_timestamps_read_as_utc(self):
        """A vibe loaded from JSON without an offset decays like its UTC twin."""
        vibe = Vibe.model_validate({
            "name": "Skibidi",
            "category": "meme",
            "strength": 1.0,
            "half_life": 3,
            "timestamp": "2026-02-26T12:00:00",
            "first_seen": "2026-02-26T12:00:00",
            "last_seen": "2026-02-26T12:00:00",
        })
        assert vibe.last_seen.tzinfo is not None
        assert calculate_decay(vibe, NOW) == pytest.approx(0.5)
        assert temporal_stats([vibe], NOW)["total_vibes"] == 1

    def test_two_half_lives_quarter(self):
        vibe = make_vibe("Skibidi", days_ago=6, category="meme", strength=1.0, half_life=3)
        assert calculate_decay(vibe, NOW) == pytest.approx(0.25)

    def test_no_time_elapsed(self):
        """Decay at last_seen equals the strength."""
        vibe = make_vibe("Fresh", strength=0.42)
        assert calculate_decay(vibe, vibe.last_seen) == pytest.approx(0.42)

    def test_seen_within_last_hour_no_decay(self):
        vibe = make_vibe("Fresh", days_ago=0.5 / 24, category="meme", strength=0.8)
        assert calculate_decay(vibe, NOW) == pytest.approx(0.8)

    def test_future_last_seen_no_decay(self):
        vibe = make_vibe("Clock skew", days_ago=-2, strength=0.7)
        assert calculate_decay(vibe, NOW) == pytest.approx(0.7)

    def test_category_default_half_life(self):
        """Aesthetic defaults to 60 days."""
        vibe = make_vibe("Quiet luxury", days_ago=60, category="aesthetic", strength=0.8)
        assert calculate_decay(vibe, NOW) == pytest.approx(0.4)

    def test_zero_half_life_rapid_decay(self):
        vibe = make_vibe("Broken", days_ago=1, strength=0.9, half_life=0)
        assert calculate_decay(vibe, NOW) == pytest.approx(0.009)

    def test_negative_half_life_rapid_decay(self):
        vibe = make_vibe("Broken", days_ago=1, strength=0.5, half_life=-4)
        assert calculate_decay(vibe, NOW) == pytest.approx(0.005)

    def test_result_in_unit_range(self):
        vibe = make_vibe("Anything", days_ago=1000, strength=1.0)
        assert 0.0 <= calculate_decay(vibe, NOW) <= 1.0

    @pytest.mark.parametrize("category", VIBE_CATEGORIES)
    def test_half_life_property_every_category(self, category):
        """At +H the value is half the strength, at +2H a quarter."""
        sample = make_vibe("sample", category=category)
        half_life = resolve_half_life(sample)

        at_h = make_vibe("x", days_ago=half_life, category=category, strength=0.8)
        at_2h = make_vibe("x", days_ago=2 * half_life, category=category, strength=0.8)

        assert calculate_decay(at_h, NOW) == pytest.approx(0.4)
        assert calculate_decay(at_2h, NOW) == pytest.approx(0.2)


class TestResolveHalfLife:
    def test_explicit_wins(self):
        assert resolve_half_life(make_vibe("x", category="meme", half_life=10)) == 10

    def test_category_default(self):
        assert resolve_half_life(make_vibe("x", category="movement")) == 90

    def test_non_positive_falls_back_to_category(self):
        assert resolve_half_life(make_vibe("x", category="event", half_life=0)) == 7


class TestBulkDecay:
    def test_apply_decay_does_not_mutate(self):
        vibe = make_vibe("Old", days_ago=14, strength=1.0, current_relevance=1.0)
        decayed = apply_decay([vibe], NOW)

        assert vibe.current_relevance == 1.0
        assert decayed[0].current_relevance == pytest.approx(0.5)
        assert decayed[0] is not vibe

    def test_filter_decayed_ignores_stale_cache(self):
        """Cached current_relevance is stale; fresh decay decides."""
        stale = make_vibe("Stale", days_ago=100, category="meme", strength=1.0, current_relevance=1.0)
        fresh = make_vibe("Fresh", strength=0.3, current_relevance=0.0)

        kept = filter_decayed([stale, fresh], threshold=0.05, now=NOW)
        assert [v.name for v in kept] == ["Fresh"]

    def test_sort_by_relevance(self):
        vibes = [
            make_vibe("Mid", days_ago=14, strength=1.0),
            make_vibe("Top", strength=0.9),
            make_vibe("Low", days_ago=28, strength=1.0),
        ]
        ordered = sort_by_relevance(vibes, NOW)
        assert [v.name for v in ordered] == ["Top", "Mid", "Low"]


# --- Merge and Boost Tests ---


class TestMergeOccurrence:
    def test_boost_grows_with_absence(self):
        assert merge_boost_amount(0) == pytest.approx(0.1)
        assert merge_boost_amount(5) == pytest.approx(0.2)
        assert merge_boost_amount(50) == pytest.approx(0.3)

    def test_merge_updates_last_seen_and_unions(self):
        existing = make_vibe(
            "AI Agents", days_ago=5, strength=0.5, current_relevance=0.4,
            keywords=["ai", "agents"], sources=["a"],
        )
        new = make_vibe("ai agents", keywords=["agents", "autonomy"], sources=["b", "a"])

        merged = merge_occurrence(existing, new, NOW)

        assert merged.last_seen == NOW
        assert merged.strength == pytest.approx(0.7)
        assert merged.current_relevance == pytest.approx(0.6)
        assert merged.keywords == ["ai", "agents", "autonomy"]
        assert merged.sources == ["a", "b"]
        assert merged.id == existing.id

    def test_merge_does_not_mutate_inputs(self):
        existing = make_vibe("X", days_ago=2, keywords=["a"])
        new = make_vibe("X", keywords=["b"])
        merge_occurrence(existing, new, NOW)
        assert existing.keywords == ["a"]
        assert existing.last_seen == NOW - timedelta(days=2)

    def test_merge_clamps(self):
        existing = make_vibe("X", days_ago=30, strength=0.95, current_relevance=0.99)
        merged = merge_occurrence(existing, make_vibe("X"), NOW)
        assert merged.strength == 1.0
        assert merged.current_relevance == 1.0


class TestBoostVibe:
    def test_boost_resets_last_seen(self):
        vibe = make_vibe("X", days_ago=3, strength=0.5, current_relevance=0.3)
        boosted = boost_vibe(vibe, 0.2, NOW)
        assert boosted.last_seen == NOW
        assert boosted.strength == pytest.approx(0.7)
        assert boosted.current_relevance == pytest.approx(0.5)

    def test_negative_boost_clamps_at_zero(self):
        boosted = boost_vibe(make_vibe("X", strength=0.1), -0.5, NOW)
        assert boosted.strength == 0.0


@pytest.mark.parametrize("seed", range(20))
def test_clamping_holds_for_random_inputs(seed):
    """strength and current_relevance stay in [0, 1] after boost, merge and halo."""
    rng = random.Random(seed)
    embedding = topic_vector("coffee")

    existing = make_vibe(
        "X",
        days_ago=rng.uniform(0, 60),
        strength=rng.random(),
        current_relevance=rng.random(),
        embedding=embedding,
    )
    neighbour = make_vibe(
        "Y", strength=rng.random(), current_relevance=rng.random(), embedding=embedding
    )

    results = [
        boost_vibe(existing, rng.uniform(-2.0, 2.0), NOW),
        merge_occurrence(existing, make_vibe("X"), NOW),
        *apply_halo_effect(
            existing, [existing, neighbour], HaloConfig(rng.random(), rng.uniform(0, 2)), NOW
        ),
    ]
    for vibe in results:
        assert 0.0 <= vibe.strength <= 1.0
        assert 0.0 <= vibe.current_relevance <= 1.0


# --- Half-life Suggestion Tests ---


class TestSuggestHalfLife:
    def test_neutral_defaults(self):
        """Strength 0.5, no sources, neutral: trend base 14 * 1.0."""
        vibe = make_vibe("X", category="trend", strength=0.5)
        assert suggest_half_life(vibe) == pytest.approx(14.0)

    def test_mixed_sentiment_shortens(self):
        vibe = make_vibe("X", category="trend", strength=0.5, sentiment="mixed")
        assert suggest_half_life(vibe) == pytest.approx(14.0 * 0.8)

    def test_sources_capped(self):
        vibe = make_vibe("X", category="trend", strength=0.5, sources=[str(i) for i in range(40)])
        assert suggest_half_life(vibe) == pytest.approx(14.0 * 1.5)

    def test_never_below_one_day(self):
        vibe = make_vibe("X", category="meme", strength=0.0, sentiment="mixed")
        assert suggest_half_life(vibe) >= 1.0


# --- Halo Tests ---


class TestHaloEffect:
    def test_identical_neighbour_gets_max_boost(self):
        source = make_vibe("Cold brew", embedding=topic_vector("coffee"))
        neighbour = make_vibe(
            "Espresso", days_ago=4, strength=0.5, current_relevance=0.5,
            embedding=topic_vector("coffee"),
        )

        result = apply_halo_effect(source, [source, neighbour], now=NOW)
        boosted = next(v for v in result if v.name == "Espresso")

        assert boosted.strength == pytest.approx(0.65)
        assert boosted.current_relevance == pytest.approx(0.65)
        assert boosted.metadata["last_halo_boost"]["from"] == source.id

    def test_halo_never_updates_last_seen(self):
        source = make_vibe("Cold brew", embedding=topic_vector("coffee"))
        neighbour = make_vibe("Espresso", days_ago=4, embedding=topic_vector("coffee"))

        result = apply_halo_effect(source, [source, neighbour], now=NOW)
        boosted = next(v for v in result if v.name == "Espresso")

        assert boosted.last_seen == neighbour.last_seen
        assert boosted.timestamp == neighbour.timestamp

    def test_dissimilar_vibe_untouched(self):
        source = make_vibe("Cold brew", embedding=topic_vector("coffee"))
        other = make_vibe("Esports", strength=0.5, embedding=topic_vector("gaming"))

        result = apply_halo_effect(source, [source, other], now=NOW)
        untouched = next(v for v in result if v.name == "Esports")
        assert untouched.strength == 0.5
        assert "last_halo_boost" not in untouched.metadata

    def test_boost_scales_above_threshold(self):
        """Similarity 0.8 with threshold 0.6: (0.2 / 0.4) * 0.15."""
        source = make_vibe("A", embedding=unit_vector(0))
        target_vector = [0.0] * 768
        target_vector[0] = 0.8
        target_vector[1] = 0.6
        target = make_vibe("B", strength=0.5, embedding=target_vector)

        result = apply_halo_effect(source, [target], now=NOW)
        assert result[0].strength == pytest.approx(0.5 + 0.075)

    def test_dimension_mismatch_skipped(self):
        source = make_vibe("A", embedding=unit_vector(0))
        small = make_vibe("B", strength=0.5, embedding=unit_vector(0, dims=1536))

        result = apply_halo_effect(source, [small], now=NOW)
        assert result[0].strength == 0.5

    def test_source_without_embedding_is_noop(self):
        source = make_vibe("A")
        other = make_vibe("B", strength=0.5, embedding=unit_vector(0))
        assert apply_halo_effect(source, [other], now=NOW)[0].strength == 0.5

    def test_inputs_not_mutated(self):
        source = make_vibe("A", embedding=unit_vector(0))
        neighbour = make_vibe("B", strength=0.5, embedding=unit_vector(0))
        apply_halo_effect(source, [neighbour], now=NOW)
        assert neighbour.strength == 0.5
        assert neighbour.metadata == {}

    def test_multiple_sources_compound(self):
        first = make_vibe("A", embedding=topic_vector("coffee"))
        second = make_vibe("B", embedding=topic_vector("coffee"))
        target = make_vibe("C", strength=0.5, embedding=topic_vector("coffee"))

        result = apply_multiple_halo_effects([first, second], [first, second, target], now=NOW)
        boosted = next(v for v in result if v.name == "C")
        assert boosted.strength == pytest.approx(0.8)

    def test_configurable_threshold(self):
        config = HaloConfig(threshold=0.9, max_boost=0.1)
        assert config.boost_for(0.85) == 0.0
        assert config.boost_for(1.0) == pytest.approx(0.1)


class TestFindSimilarVibes:
    def test_excludes_target_and_sorts(self):
        target = make_vibe("Target", embedding=topic_vector("coffee"))
        close = make_vibe("Close", embedding=topic_vector("coffee"))
        partial = make_vibe("Partial", embedding=topic_vector("coffee", "food"))
        far = make_vibe("Far", embedding=topic_vector("gaming"))

        similar = find_similar_vibes(target, [target, partial, close, far])
        assert [v.name for v, _ in similar] == ["Close", "Partial"]


# --- Temporal Stats Tests ---


class TestTemporalStats:
    def test_empty(self):
        assert temporal_stats([], NOW).total_vibes == 0

    def test_buckets(self):
        vibes = [
            make_vibe("High", strength=0.9),
            make_vibe("Moderate", strength=0.5),
            make_vibe("Low", strength=0.1),
            make_vibe("Gone", days_ago=100, category="meme", strength=1.0),
        ]
        stats = temporal_stats(vibes, NOW)

        assert stats.total_vibes == 4
        assert stats.highly_relevant == 1
        assert stats.moderately_relevant == 1
        assert stats.low_relevance == 1
        assert stats.decayed == 1
        assert stats.average_days_since_last_seen == pytest.approx(25.0)
