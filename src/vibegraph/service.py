"""Orchestration: the update cycle, matching, advice and status.

ZeitgeistService is constructed once with its collaborators (store,
embedder, registries, advice generator, settings) and passed to whatever
needs it. There are no module-level instances.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import Counter
from datetime import datetime
from typing import Any

from .analyzers import AnalyzerRegistry, BaseAnalyzer
from .collectors import CollectorRegistry
from .config import Settings
from .constants import DEFAULT_SEARCH_LIMIT, STATUS_TOP_VIBES
from .decay import apply_decay, sort_by_relevance, temporal_stats
from .embeddings import Embedder
from .matchers import MatcherRegistry
from .models import Advice, RawContent, Scenario, UserProfile, Vibe, VibeMatch, utc_now
from .store import GraphStore
from .vectors import EmbeddingValidationError, validate_embedding

logger = logging.getLogger(__name__)


class AdviceGenerator(ABC):
    """Turns ranked matches into recommendations (usually an LLM call)."""

    @abstractmethod
    def generate(
        self,
        scenario: Scenario,
        matches: list[VibeMatch],
        profile: UserProfile | None = None,
    ) -> Advice:
        """Produce advice for a scenario. May raise on upstream failure."""


class ZeitgeistService:
    """Keeps the cultural graph current and answers queries against it."""

    def __init__(
        self,
        store: GraphStore,
        embedder: Embedder,
        collectors: CollectorRegistry | None = None,
        analyzers: AnalyzerRegistry | None = None,
        matchers: MatcherRegistry | None = None,
        advice_generator: AdviceGenerator | None = None,
        settings: Settings | None = None,
    ):
        self.store = store
        self.embedder = embedder
        self.collectors = collectors or CollectorRegistry()
        self.analyzers = analyzers or AnalyzerRegistry()
        self.matchers = matchers or MatcherRegistry()
        self.advice_generator = advice_generator
        self.settings = settings or Settings()

    # --- Update cycle ---

    def ensure_embeddings(self, vibes: list[Vibe]) -> list[Vibe]:
        """Copies of ``vibes`` with embeddings filled in where missing.

        Embedding failures are logged and leave the embedding empty. Vectors
        the store would reject (wrong dimension, NaN) are discarded, including
        ones a proposal arrived with; those are regenerated.
        """
        vibes = [v.copy_deep() for v in vibes]
        for vibe in vibes:
            if not self._valid_embedding(vibe, vibe.embedding):
                vibe.embedding = None

        pending = [v for v in vibes if v.embedding is None]
        if not pending:
            return vibes

        try:
            vectors = self.embedder.embed_many([v.embedding_text() for v in pending])
        except Exception as e:
            logger.warning(f"Embedding generation failed for {len(pending)} vibe(s): {e}")
            return vibes

        for vibe, vector in zip(pending, vectors):
            if self._valid_embedding(vibe, vector):
                vibe.embedding = vector
        return vibes

    def _valid_embedding(self, vibe: Vibe, vector: list[float] | None) -> bool:
        try:
            validate_embedding(vector, self.settings.embedding_dimensions)
        except EmbeddingValidationError as e:
            logger.warning(f"Discarding embedding for {vibe.name}: {e}")
            return False
        return True

    def update_graph(
        self,
        content: list[RawContent] | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Run one collect -> extract -> merge -> decay -> prune -> save cycle.

        Halo propagation finishes before anything is written, and no store
        lock is held while the embedder runs.

        Returns:
            Summary counts for the cycle
        """
        now = now or utc_now()
        if content is None:
            content = self.collectors.collect_all()
        if not content:
            logger.info("No content collected, graph unchanged")
            return {"vibes_added": 0}

        try:
            proposals = self.analyzers.analyze_with_primary(content)
        except Exception as e:
            logger.error(f"Vibe extraction failed: {e}")
            return {"vibes_added": 0}

        proposals = self.ensure_embeddings(proposals)

        existing = self.store.get_all()
        known_names = {v.name.lower() for v in existing}
        merged = BaseAnalyzer.merge_vibes(existing, proposals, self.settings.halo, now)

        threshold = self.settings.prune_threshold
        decayed = apply_decay(merged, now)
        survivors = [v for v in decayed if v.current_relevance >= threshold]
        pruned = [v for v in decayed if v.current_relevance < threshold]

        self.store.apply_update(survivors, [v.id for v in pruned])

        added = len({p.name.lower() for p in proposals} - known_names)
        summary = {
            "vibes_added": added,
            "vibes_updated": len(proposals) - added,
            "vibes_pruned": len(pruned),
            "total_vibes": self.store.count(),
        }
        logger.info(
            f"Graph updated: {summary['vibes_added']} added, {summary['vibes_updated']} updated, "
            f"{summary['vibes_pruned']} pruned ({summary['total_vibes']} total)"
        )
        return summary

    def prune_decayed(
        self,
        threshold: float | None = None,
        dry_run: bool = False,
        now: datetime | None = None,
    ) -> list[Vibe]:
        """Delete vibes whose decayed relevance falls below ``threshold``.

        Returns the pruned vibes (with fresh relevance), deleted unless dry_run.
        """
        threshold = self.settings.prune_threshold if threshold is None else threshold
        decayed = apply_decay(self.store.get_all(), now)
        pruned = [v for v in decayed if v.current_relevance < threshold]

        if not dry_run:
            for vibe in pruned:
                self.store.delete(vibe.id)
            logger.info(f"Pruned {len(pruned)} vibe(s) below relevance {threshold}")
        return pruned

    # --- Queries ---

    def match(
        self,
        scenario: Scenario,
        profile: UserProfile | None = None,
        strategy: str | None = None,
    ) -> list[VibeMatch]:
        """Rank vibes for a scenario.

        Without an explicit strategy, a profile selects the personalized
        matcher when one is registered; otherwise the default matcher runs.
        """
        graph = self.store.snapshot()
        if strategy is None and profile is not None and self.matchers.get("personalized"):
            strategy = "personalized"
        if strategy is not None:
            return self.matchers.match_with(strategy, scenario, graph, profile)
        return self.matchers.match_with_default(scenario, graph, profile)

    def get_advice(self, scenario: Scenario, profile: UserProfile | None = None) -> Advice:
        matches = self.match(scenario, profile)

        if self.advice_generator is None:
            return Advice(
                scenario=scenario,
                matched_vibes=matches,
                reasoning="No advice generator configured",
                confidence=0.0,
            )

        try:
            return self.advice_generator.generate(scenario, matches, profile)
        except Exception as e:
            logger.error(f"Advice generation failed: {e}")
            return Advice(
                scenario=scenario,
                matched_vibes=matches,
                reasoning=f"Advice generation failed: {e}",
                confidence=0.0,
            )

    def search(self, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> list[Vibe]:
        """Semantic search. Embedding failure yields no results."""
        try:
            embedding = self.embedder.embed(query)
            return self.store.find_by_embedding(embedding, top_k=limit)
        except Exception as e:
            logger.error(f"Search failed: {e}")
            return []

    def graph_status(self, now: datetime | None = None) -> dict[str, Any]:
        """Counts, category/domain histograms, temporal stats and top vibes."""
        graph = self.store.snapshot()
        vibes = list(graph.vibes.values())

        categories = Counter(v.category for v in vibes)
        domains = Counter(d for v in vibes for d in v.domains)
        top = sort_by_relevance(vibes, now)[:STATUS_TOP_VIBES]

        return {
            "total_vibes": len(vibes),
            "total_edges": len(graph.edges),
            "last_updated": graph.metadata.last_updated.isoformat(),
            "version": graph.metadata.version,
            "categories": dict(categories),
            "domains": dict(domains.most_common()),
            "temporal": temporal_stats(vibes, now).to_dict(),
            "top_vibes": [v.to_summary() for v in top],
        }
