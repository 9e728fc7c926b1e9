"""Ranking strategies: scenario in, ranked vibes out.

- SemanticMatcher: cosine similarity between the scenario embedding and each vibe
- PersonalizedMatcher: semantic matching with region/topic filters and interest boosts
- MatcherRegistry: named strategies, weighted-average and ensemble combination

Matchers never raise on upstream failure (embedding errors); they log and
return an empty list.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable

from .constants import (
    DEFAULT_ENSEMBLE_TOP_N,
    DEFAULT_MATCH_LIMIT,
    DEFAULT_STRATEGY_WEIGHT,
    INTEREST_BOOST_FACTOR,
    SEMANTIC_MATCH_THRESHOLD,
)
from .decay import apply_decay
from .embeddings import Embedder
from .models import CulturalGraph, Scenario, UserProfile, Vibe, VibeMatch
from .personalization import (
    calculate_interest_match,
    get_regional_relevance,
    is_topic_avoided,
    meets_regional_threshold,
)
from .vectors import cosine_similarity

logger = logging.getLogger(__name__)


def scenario_to_text(scenario: Scenario) -> str:
    """Flatten a scenario into one string for embedding."""
    parts = [scenario.description]

    context = scenario.context
    if context is not None:
        if context.location:
            parts.append(f"Location: {context.location}")
        if context.time_of_day:
            parts.append(f"Time: {context.time_of_day}")
        if context.people_types:
            parts.append(f"People: {', '.join(context.people_types)}")
        if context.formality:
            parts.append(f"Formality: {context.formality}")

    preferences = scenario.preferences
    if preferences is not None:
        if preferences.topics:
            parts.append(f"Interested in: {', '.join(preferences.topics)}")
        if preferences.conversation_style:
            parts.append(f"Style: {preferences.conversation_style}")

    return ". ".join(parts)


class Matcher(ABC):
    """A ranking strategy."""

    name: str = "matcher"
    description: str = ""

    @abstractmethod
    def match(
        self,
        scenario: Scenario,
        graph: CulturalGraph,
        profile: UserProfile | None = None,
    ) -> list[VibeMatch]:
        """Rank the graph's vibes for a scenario, best first."""


class BaseMatcher(Matcher):
    """Shared helpers for concrete matchers."""

    def sort_by_relevance(self, matches: Iterable[VibeMatch]) -> list[VibeMatch]:
        return sorted(matches, key=lambda m: m.relevance_score, reverse=True)

    def top_n(self, matches: list[VibeMatch], n: int) -> list[VibeMatch]:
        return matches[:n]

    def filter_by_threshold(self, matches: Iterable[VibeMatch], threshold: float) -> list[VibeMatch]:
        return [m for m in matches if m.relevance_score >= threshold]


class SemanticMatcher(BaseMatcher):
    """Embedding similarity between the scenario and every vibe."""

    name = "semantic"
    description = "Ranks vibes by embedding similarity to the scenario"

    def __init__(
        self,
        embedder: Embedder,
        threshold: float = SEMANTIC_MATCH_THRESHOLD,
        limit: int = DEFAULT_MATCH_LIMIT,
    ):
        self.embedder = embedder
        self.threshold = threshold
        self.limit = limit

    def score_vibes(self, scenario: Scenario, vibes: Iterable[Vibe]) -> list[VibeMatch]:
        """Every vibe above the threshold, best first, uncut. Raises if embedding fails."""
        query = self.embedder.embed(scenario_to_text(scenario))

        matches = []
        for vibe in vibes:
            if vibe.embedding is None:
                continue
            similarity = cosine_similarity(query, vibe.embedding)
            if similarity > self.threshold:
                matches.append(
                    VibeMatch(
                        vibe=vibe,
                        relevance_score=similarity,
                        reasoning=f"Semantic similarity: {similarity * 100:.0f}%",
                    )
                )

        return self.sort_by_relevance(matches)

    def rank_vibes(self, scenario: Scenario, vibes: Iterable[Vibe]) -> list[VibeMatch]:
        """Score ``vibes`` against the scenario and keep the top ``limit``."""
        return self.top_n(self.score_vibes(scenario, vibes), self.limit)

    def match(
        self,
        scenario: Scenario,
        graph: CulturalGraph,
        profile: UserProfile | None = None,
    ) -> list[VibeMatch]:
        try:
            return self.rank_vibes(scenario, graph.vibes.values())
        except Exception as e:
            logger.error(f"Semantic matching failed: {e}")
            return []


class PersonalizedMatcher(BaseMatcher):
    """Semantic matching shaped by a user profile.

    Avoided topics and regionally irrelevant vibes are removed before scoring;
    interest and regional relevance then scale the semantic score.
    """

    name = "personalized"
    description = "Semantic matching with region filtering, topic avoidance and interest boosts"

    def __init__(
        self,
        embedder: Embedder,
        threshold: float = SEMANTIC_MATCH_THRESHOLD,
        limit: int = DEFAULT_MATCH_LIMIT,
    ):
        self.semantic = SemanticMatcher(embedder, threshold=threshold, limit=limit)
        self.limit = limit

    def _candidates(self, vibes: list[Vibe], profile: UserProfile) -> list[Vibe]:
        # Global vibes always pass: their regional relevance is 1.0
        if profile.region:
            vibes = [v for v in vibes if meets_regional_threshold(v, profile.region)]
        if profile.avoid_topics:
            vibes = [v for v in vibes if not is_topic_avoided(v, profile.avoid_topics)]
        return vibes

    def _boost(self, match: VibeMatch, profile: UserProfile) -> VibeMatch:
        score = match.relevance_score
        reasoning = match.reasoning

        if profile.interests:
            interest = calculate_interest_match(match.vibe, profile.interests)
            if interest > 0:
                score = min(1.0, score * (1.0 + interest * INTEREST_BOOST_FACTOR))
                reasoning += f" (Interest boost: {interest * 100:.0f}%)"

        if profile.region:
            regional = get_regional_relevance(match.vibe, profile.region)
            score *= regional
            if regional < 1.0:
                reasoning += f" (Regional: {regional * 100:.0f}%)"

        return VibeMatch(vibe=match.vibe, relevance_score=score, reasoning=reasoning)

    def match(
        self,
        scenario: Scenario,
        graph: CulturalGraph,
        profile: UserProfile | None = None,
    ) -> list[VibeMatch]:
        vibes = apply_decay(graph.vibes.values())

        if profile is None:
            try:
                return self.semantic.rank_vibes(scenario, vibes)
            except Exception as e:
                logger.error(f"Personalized matching failed: {e}")
                return []

        candidates = self._candidates(vibes, profile)
        logger.debug(f"Personalized matching over {len(candidates)}/{len(vibes)} vibes")

        try:
            # boosts can reorder, so cut only after boosting
            matches = self.semantic.score_vibes(scenario, candidates)
        except Exception as e:
            logger.error(f"Personalized matching failed: {e}")
            return []

        boosted = [self._boost(m, profile) for m in matches]
        return self.top_n(self.sort_by_relevance(boosted), self.limit)


class MatcherRegistry:
    """Named ranking strategies.

    The default matcher is the one explicitly marked, else the first registered.
    """

    def __init__(self):
        self._matchers: dict[str, Matcher] = {}
        self._default: str | None = None

    def register(self, matcher: Matcher, default: bool = False) -> None:
        self._matchers[matcher.name] = matcher
        if default:
            self._default = matcher.name

    def set_default(self, name: str) -> None:
        if name not in self._matchers:
            raise KeyError(f"Matcher '{name}' not found")
        self._default = name

    def get(self, name: str) -> Matcher | None:
        return self._matchers.get(name)

    def get_default(self) -> Matcher | None:
        if self._default is not None:
            return self._matchers[self._default]
        return next(iter(self._matchers.values()), None)

    def all(self) -> list[Matcher]:
        return list(self._matchers.values())

    def _require(self, name: str) -> Matcher:
        matcher = self._matchers.get(name)
        if matcher is None:
            raise KeyError(f"Matcher '{name}' not found")
        return matcher

    def match_with_default(
        self, scenario: Scenario, graph: CulturalGraph, profile: UserProfile | None = None
    ) -> list[VibeMatch]:
        matcher = self.get_default()
        if matcher is None:
            raise LookupError("No matchers registered")
        return matcher.match(scenario, graph, profile)

    def match_with(
        self,
        name: str,
        scenario: Scenario,
        graph: CulturalGraph,
        profile: UserProfile | None = None,
    ) -> list[VibeMatch]:
        return self._require(name).match(scenario, graph, profile)

    def match_with_multiple(
        self,
        names: list[str],
        scenario: Scenario,
        graph: CulturalGraph,
        profile: UserProfile | None = None,
        weights: dict[str, float] | None = None,
    ) -> list[VibeMatch]:
        """Weighted average across strategies.

        Each vibe's score is the mean of ``weight * score`` over the
        strategies that actually returned it.
        """
        weights = weights or {}
        matchers = [self._require(name) for name in names]

        combined: dict[str, tuple[VibeMatch, list[float]]] = {}
        for matcher in matchers:
            weight = weights.get(matcher.name, DEFAULT_STRATEGY_WEIGHT)
            for match in matcher.match(scenario, graph, profile):
                entry = combined.get(match.vibe.id)
                if entry is None:
                    combined[match.vibe.id] = (match, [match.relevance_score * weight])
                else:
                    entry[1].append(match.relevance_score * weight)

        results = [
            VibeMatch(
                vibe=first.vibe,
                relevance_score=sum(scores) / len(scores),
                reasoning=f"{first.reasoning} (combined from {len(scores)} matcher(s))",
            )
            for first, scores in combined.values()
        ]
        results.sort(key=lambda m: m.relevance_score, reverse=True)
        return results

    def match_with_ensemble(
        self,
        names: list[str],
        scenario: Scenario,
        graph: CulturalGraph,
        profile: UserProfile | None = None,
        top_n_per_matcher: int = DEFAULT_ENSEMBLE_TOP_N,
    ) -> list[VibeMatch]:
        """Union of each strategy's top N, first occurrence per vibe wins."""
        matchers = [self._require(name) for name in names]

        seen: dict[str, VibeMatch] = {}
        for matcher in matchers:
            for match in matcher.match(scenario, graph, profile)[:top_n_per_matcher]:
                seen.setdefault(match.vibe.id, match)

        results = list(seen.values())
        results.sort(key=lambda m: m.relevance_score, reverse=True)
        return results
