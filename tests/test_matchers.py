"""Tests for ranking strategies and the matcher registry."""

import pytest

from conftest import FakeEmbedder, make_vibe, topic_vector
from vibegraph.matchers import (
    BaseMatcher,
    MatcherRegistry,
    PersonalizedMatcher,
    SemanticMatcher,
    scenario_to_text,
)
from vibegraph.models import (
    CulturalGraph,
    Geography,
    Scenario,
    ScenarioContext,
    ScenarioPreferences,
    UserProfile,
    VibeMatch,
)


def graph_of(*vibes) -> CulturalGraph:
    return CulturalGraph(vibes={v.id: v for v in vibes})


class FixedMatcher(BaseMatcher):
    """Returns a predetermined ranking."""

    def __init__(self, name, results):
        self.name = name
        self.results = results

    def match(self, scenario, graph, profile=None):
        return [VibeMatch(vibe=v, relevance_score=s) for v, s in self.results]


# --- Scenario Text ---


def test_scenario_to_text_full():
    scenario = Scenario(
        description="Dinner with founders",
        context=ScenarioContext(
            location="San Francisco",
            time_of_day="evening",
            people_types=["founders", "investors"],
            formality="business-casual",
        ),
        preferences=ScenarioPreferences(topics=["ai"], conversation_style="witty"),
    )
    assert scenario_to_text(scenario) == (
        "Dinner with founders. Location: San Francisco. Time: evening. "
        "People: founders, investors. Formality: business-casual. "
        "Interested in: ai. Style: witty"
    )


def test_scenario_to_text_description_only():
    assert scenario_to_text(Scenario(description="Coffee chat")) == "Coffee chat"


def test_base_matcher_helpers():
    matcher = FixedMatcher("x", [])
    low, mid, high = (
        VibeMatch(vibe=make_vibe(name), relevance_score=score)
        for name, score in [("Low", 0.2), ("Mid", 0.5), ("High", 0.9)]
    )

    ranked = matcher.sort_by_relevance([low, high, mid])
    assert [m.vibe.name for m in ranked] == ["High", "Mid", "Low"]
    assert [m.vibe.name for m in matcher.top_n(ranked, 2)] == ["High", "Mid"]
    # inclusive at the boundary
    assert [m.vibe.name for m in matcher.filter_by_threshold(ranked, 0.5)] == ["High", "Mid"]


# --- Semantic Matcher ---


class TestSemanticMatcher:
    def test_returns_similar_only(self, embedder):
        coffee = make_vibe("Cold brew", embedding=topic_vector("coffee"))
        gaming = make_vibe("Speedruns", embedding=topic_vector("gaming"))

        matches = SemanticMatcher(embedder).match(Scenario(description="coffee chat"), graph_of(coffee, gaming))

        assert [m.vibe.name for m in matches] == ["Cold brew"]
        assert matches[0].relevance_score > 0.5
        assert "Semantic similarity" in matches[0].reasoning

    def test_sorted_descending(self, embedder):
        exact = make_vibe("Coffee", embedding=topic_vector("coffee", "food"))
        partial = make_vibe("Cafe", embedding=topic_vector("coffee", "food", "music"))

        matches = SemanticMatcher(embedder).match(
            Scenario(description="coffee and food"), graph_of(partial, exact)
        )
        assert [m.vibe.name for m in matches] == ["Coffee", "Cafe"]

    def test_limit_twenty(self, embedder):
        vibes = [make_vibe(f"Coffee {i}", embedding=topic_vector("coffee")) for i in range(25)]
        matches = SemanticMatcher(embedder).match(Scenario(description="coffee"), graph_of(*vibes))
        assert len(matches) == 20

    def test_skips_vibes_without_embedding(self, embedder):
        matches = SemanticMatcher(embedder).match(
            Scenario(description="coffee"), graph_of(make_vibe("No vector"))
        )
        assert matches == []

    def test_mismatched_dimension_scores_zero(self, embedder):
        other = make_vibe("Other", embedding=[1.0] * 1536)
        assert SemanticMatcher(embedder).match(Scenario(description="coffee"), graph_of(other)) == []

    def test_embedding_failure_returns_empty(self, failing_embedder):
        vibe = make_vibe("Cold brew", embedding=topic_vector("coffee"))
        matches = SemanticMatcher(failing_embedder).match(Scenario(description="coffee"), graph_of(vibe))
        assert matches == []


# --- Personalized Matcher ---


class TestPersonalizedMatcher:
    def test_avoided_topic_never_returned(self, embedder):
        """A politics vibe is excluded even with a perfect semantic score."""
        politics = make_vibe("Election night", keywords=["politics"], embedding=topic_vector("politics"))
        coffee = make_vibe("Cold brew", embedding=topic_vector("coffee"))

        matches = PersonalizedMatcher(embedder).match(
            Scenario(description="politics and coffee"),
            graph_of(politics, coffee),
            UserProfile(avoid_topics=["politics"]),
        )
        assert [m.vibe.name for m in matches] == ["Cold brew"]

    def test_region_below_threshold_filtered(self, embedder):
        local = make_vibe(
            "Bay Area brunch",
            embedding=topic_vector("food"),
            geography=Geography(primary="US-West", relevance={"US-West": 0.9, "EU-UK": 0.1}),
        )
        matches = PersonalizedMatcher(embedder).match(
            Scenario(description="food"), graph_of(local), UserProfile(region="EU-UK")
        )
        assert matches == []

    def test_global_vibe_kept_for_any_region(self, embedder):
        everywhere = make_vibe(
            "Street food",
            embedding=topic_vector("food"),
            geography=Geography(primary="Global"),
        )
        matches = PersonalizedMatcher(embedder).match(
            Scenario(description="food"), graph_of(everywhere), UserProfile(region="Asia-Pacific")
        )
        assert [m.vibe.name for m in matches] == ["Street food"]

    def test_regional_multiplier(self, embedder):
        remote = make_vibe(
            "Bay Area brunch",
            embedding=topic_vector("food"),
            geography=Geography(primary="US-West", relevance={"US-West": 0.9}),
        )
        plain = SemanticMatcher(embedder).match(Scenario(description="food"), graph_of(remote))
        matches = PersonalizedMatcher(embedder).match(
            Scenario(description="food"), graph_of(remote), UserProfile(region="Asia-Pacific")
        )
        assert matches[0].relevance_score == pytest.approx(plain[0].relevance_score * 0.3)
        assert "Regional: 30%" in matches[0].reasoning

    def test_interest_boost_reorders(self, embedder):
        plain = make_vibe("Cafe culture", embedding=topic_vector("coffee", "food"))
        liked = make_vibe("Cafe crawl", keywords=["music"], embedding=topic_vector("coffee", "music"))

        matches = PersonalizedMatcher(embedder).match(
            Scenario(description="coffee"), graph_of(plain, liked), UserProfile(interests=["music"])
        )
        assert [m.vibe.name for m in matches] == ["Cafe crawl", "Cafe culture"]
        assert "Interest boost: 100%" in matches[0].reasoning
        assert matches[0].relevance_score <= 1.0

    def test_boost_applies_before_limit(self, embedder):
        """A vibe ranked past the limit on raw similarity can be boosted into first place."""
        crowd = [make_vibe(f"Cold brew {i}", embedding=topic_vector("coffee")) for i in range(24)]
        liked = make_vibe("Cafe gig", keywords=["music"], embedding=topic_vector("coffee", "music"))

        matches = PersonalizedMatcher(embedder).match(
            Scenario(description="coffee"), graph_of(*crowd, liked), UserProfile(interests=["music"])
        )
        assert len(matches) == 20
        assert matches[0].vibe.name == "Cafe gig"
        assert matches[0].relevance_score == pytest.approx(1.0)

    def test_without_profile_behaves_semantically(self, embedder):
        vibe = make_vibe("Cold brew", embedding=topic_vector("coffee"))
        scenario = Scenario(description="coffee")

        personalized = PersonalizedMatcher(embedder).match(scenario, graph_of(vibe))
        semantic = SemanticMatcher(embedder).match(scenario, graph_of(vibe))
        assert [m.vibe.id for m in personalized] == [m.vibe.id for m in semantic]

    def test_embedding_failure_returns_empty(self, failing_embedder):
        vibe = make_vibe("Cold brew", embedding=topic_vector("coffee"))
        matches = PersonalizedMatcher(failing_embedder).match(
            Scenario(description="coffee"), graph_of(vibe), UserProfile(region="US-West")
        )
        assert matches == []


# --- Registry ---


class TestMatcherRegistry:
    def setup_method(self):
        self.a = make_vibe("A")
        self.b = make_vibe("B")
        self.c = make_vibe("C")
        self.scenario = Scenario(description="anything")
        self.graph = graph_of(self.a, self.b, self.c)

    def test_default_is_first_registered(self):
        registry = MatcherRegistry()
        first = FixedMatcher("first", [])
        registry.register(first)
        registry.register(FixedMatcher("second", []))
        assert registry.get_default() is first

    def test_explicit_default(self):
        registry = MatcherRegistry()
        registry.register(FixedMatcher("first", []))
        second = FixedMatcher("second", [])
        registry.register(second, default=True)
        assert registry.get_default() is second

    def test_unknown_name_raises_key_error(self):
        registry = MatcherRegistry()
        with pytest.raises(KeyError):
            registry.match_with("missing", self.scenario, self.graph)
        with pytest.raises(KeyError):
            registry.set_default("missing")

    def test_empty_registry_raises_lookup_error(self):
        with pytest.raises(LookupError):
            MatcherRegistry().match_with_default(self.scenario, self.graph)

    def test_weighted_average(self):
        registry = MatcherRegistry()
        registry.register(FixedMatcher("x", [(self.a, 0.8), (self.b, 0.6)]))
        registry.register(FixedMatcher("y", [(self.a, 0.4)]))

        results = registry.match_with_multiple(
            ["x", "y"], self.scenario, self.graph, weights={"x": 1.0, "y": 0.5}
        )
        scores = {m.vibe.name: m.relevance_score for m in results}

        assert scores["A"] == pytest.approx((0.8 + 0.2) / 2)
        assert scores["B"] == pytest.approx(0.6)
        assert [m.vibe.name for m in results] == ["B", "A"]

    def test_ensemble_deduplicates(self):
        """Overlapping ids from two strategies appear exactly once."""
        registry = MatcherRegistry()
        registry.register(FixedMatcher("x", [(self.a, 0.9), (self.b, 0.5)]))
        registry.register(FixedMatcher("y", [(self.b, 0.95), (self.c, 0.7)]))

        results = registry.match_with_ensemble(["x", "y"], self.scenario, self.graph)
        ids = [m.vibe.id for m in results]

        assert len(ids) == len(set(ids)) == 3
        # first occurrence of B (0.5 from x) wins
        assert [m.vibe.name for m in results] == ["A", "C", "B"]

    def test_ensemble_top_n_per_matcher(self):
        registry = MatcherRegistry()
        registry.register(FixedMatcher("x", [(self.a, 0.9), (self.b, 0.5)]))
        registry.register(FixedMatcher("y", [(self.c, 0.7), (self.a, 0.6)]))

        results = registry.match_with_ensemble(
            ["x", "y"], self.scenario, self.graph, top_n_per_matcher=1
        )
        assert [m.vibe.name for m in results] == ["A", "C"]
