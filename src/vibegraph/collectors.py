"""Collectors fetch raw content from outside sources (news, forums, feeds).

Collectors are external boundaries: a failing or unavailable collector
contributes no content for the cycle.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from .models import RawContent

logger = logging.getLogger(__name__)


class Collector(ABC):
    name: str = "collector"
    description: str = ""

    @abstractmethod
    def collect(self, options: dict[str, Any] | None = None) -> list[RawContent]:
        """Fetch a batch of raw content."""

    def is_available(self) -> bool:
        return True


class CollectorRegistry:
    def __init__(self):
        self._collectors: dict[str, Collector] = {}

    def register(self, collector: Collector) -> None:
        self._collectors[collector.name] = collector

    def get(self, name: str) -> Collector | None:
        return self._collectors.get(name)

    def all(self) -> list[Collector]:
        return list(self._collectors.values())

    def available(self) -> list[Collector]:
        result = []
        for collector in self._collectors.values():
            try:
                if collector.is_available():
                    result.append(collector)
            except Exception as e:
                logger.warning(f"Availability check for {collector.name} failed: {e}")
        return result

    def collect_all(self, options: dict[str, Any] | None = None) -> list[RawContent]:
        """Content from every available collector, concatenated."""
        content: list[RawContent] = []
        for collector in self.available():
            try:
                batch = collector.collect(options)
            except Exception as e:
                logger.error(f"Collector {collector.name} failed: {e}")
                continue
            logger.info(f"Collected {len(batch)} item(s) from {collector.name}")
            content.extend(batch)
        return content
