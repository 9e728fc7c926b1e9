"""Analyzers: raw content in, proposed vibes out.

An Analyzer wraps an external extractor (usually an LLM call). This module
owns what happens around it: building well-formed vibes, merging proposals
into the existing graph, and choosing between analyzers.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from .decay import HaloConfig, apply_multiple_halo_effects, merge_occurrence, suggest_half_life
from .models import RawContent, Vibe, utc_now

logger = logging.getLogger(__name__)


def create_vibe(**fields: Any) -> Vibe:
    """Build a vibe with defaults filled in.

    ``first_seen``/``last_seen``/``timestamp`` default to now. When no
    half-life is given, one is suggested from category, strength,
    sentiment and source count.

    Examples:
        >>> create_vibe(name="Quiet luxury", category="aesthetic", strength=0.8)
    """
    now = fields.pop("now", None) or utc_now()
    fields.setdefault("timestamp", now)
    fields.setdefault("first_seen", now)
    fields.setdefault("last_seen", now)

    vibe = Vibe(**fields)
    if vibe.half_life is None:
        vibe.half_life = suggest_half_life(vibe)
    return vibe


class Analyzer(ABC):
    """Turns a batch of raw content into proposed vibes."""

    name: str = "analyzer"
    description: str = ""

    @abstractmethod
    def analyze(self, content: list[RawContent]) -> list[Vibe]:
        """Extract vibes from content. May raise on upstream failure."""


class BaseAnalyzer(Analyzer):
    """Analyzer with the standard merge step."""

    def update(
        self,
        existing: list[Vibe],
        content: list[RawContent],
        halo: HaloConfig | None = None,
        now: datetime | None = None,
    ) -> list[Vibe]:
        """Analyze content and merge the result into ``existing``."""
        return self.merge_vibes(existing, self.analyze(content), halo, now)

    @staticmethod
    def merge_vibes(
        existing: Iterable[Vibe],
        new: Iterable[Vibe],
        halo: HaloConfig | None = None,
        now: datetime | None = None,
    ) -> list[Vibe]:
        """Merge proposed vibes into the existing set.

        Vibes are matched by case-insensitive name. A reappearing vibe is
        reinforced via occurrence merge and then boosts its semantic
        neighbours (halo). Unknown names are added as-is.

        Returns:
            Complete merged list; inputs are not mutated
        """
        now = now or utc_now()
        merged: dict[str, Vibe] = {}
        for vibe in existing:
            merged[vibe.name.lower()] = vibe

        reappeared: list[Vibe] = []
        for proposal in new:
            key = proposal.name.lower()
            current = merged.get(key)
            if current is None:
                merged[key] = proposal.copy_deep()
                continue
            updated = merge_occurrence(current, proposal, now)
            if updated.embedding is None and proposal.embedding is not None:
                updated.embedding = list(proposal.embedding)
            merged[key] = updated
            reappeared.append(updated)

        vibes = list(merged.values())
        if reappeared:
            logger.debug(f"{len(reappeared)} vibe(s) reappeared, propagating halo")
            vibes = apply_multiple_halo_effects(reappeared, vibes, halo, now)
        return vibes


class AnalyzerRegistry:
    """Named analyzers with a primary and a fallback path."""

    def __init__(self):
        self._analyzers: dict[str, Analyzer] = {}
        self._primary: str | None = None

    def register(self, analyzer: Analyzer, primary: bool = False) -> None:
        self._analyzers[analyzer.name] = analyzer
        if primary or self._primary is None:
            self._primary = analyzer.name

    def set_primary(self, name: str) -> None:
        if name not in self._analyzers:
            raise KeyError(f"Analyzer '{name}' not found")
        self._primary = name

    def get(self, name: str) -> Analyzer | None:
        return self._analyzers.get(name)

    def get_primary(self) -> Analyzer | None:
        return self._analyzers.get(self._primary) if self._primary else None

    def all(self) -> list[Analyzer]:
        return list(self._analyzers.values())

    def analyze_with_primary(self, content: list[RawContent]) -> list[Vibe]:
        analyzer = self.get_primary()
        if analyzer is None:
            raise LookupError("No primary analyzer registered")
        return analyzer.analyze(content)

    def analyze_with_all(self, content: list[RawContent]) -> dict[str, list[Vibe]]:
        """Run every analyzer; a failing one contributes an empty list."""
        results: dict[str, list[Vibe]] = {}
        for name, analyzer in self._analyzers.items():
            try:
                results[name] = analyzer.analyze(content)
            except Exception as e:
                logger.error(f"Analyzer {name} failed: {e}")
                results[name] = []
        return results

    def analyze_with_fallback(
        self, content: list[RawContent], primary: str, fallback: str
    ) -> list[Vibe]:
        """Try ``primary``; on failure use ``fallback``."""
        first = self.get(primary)
        if first is None:
            raise KeyError(f"Analyzer '{primary}' not found")
        try:
            return first.analyze(content)
        except Exception as e:
            logger.warning(f"Analyzer {primary} failed ({e}), falling back to {fallback}")

        second = self.get(fallback)
        if second is None:
            raise KeyError(f"Analyzer '{fallback}' not found")
        return second.analyze(content)
