"""Settings loader.

Reads settings from a YAML file (default: ~/.vibegraph/config.yaml), then
applies VIBEGRAPH_* environment overrides on top.

File format:
```
db_path: ~/.vibegraph/vibegraph.db
embedding_provider: auto      # auto | local | ollama
halo_threshold: 0.6
halo_max_boost: 0.15
embedding_dimensions: [768, 1536]
```
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .constants import (
    DEFAULT_EMBEDDING_DIMENSIONS,
    DEFAULT_LOCAL_EMBEDDING_MODEL,
    DEFAULT_OLLAMA_EMBEDDING_MODEL,
    DEFAULT_OLLAMA_URL,
    DEFAULT_PRUNE_THRESHOLD,
    HALO_MAX_BOOST,
    HALO_SIMILARITY_THRESHOLD,
    MAX_VIBES,
)
from .decay import HaloConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".vibegraph" / "config.yaml"
DEFAULT_DB_PATH = Path.home() / ".vibegraph" / "vibegraph.db"

ENV_OVERRIDES = {
    "VIBEGRAPH_DB_PATH": "db_path",
    "VIBEGRAPH_EMBEDDING_PROVIDER": "embedding_provider",
    "VIBEGRAPH_EMBEDDING_MODEL": "embedding_model",
    "VIBEGRAPH_OLLAMA_URL": "ollama_url",
    "VIBEGRAPH_OLLAMA_MODEL": "ollama_model",
    "VIBEGRAPH_LOG_LEVEL": "log_level",
}


@dataclass
class Settings:
    db_path: Path = DEFAULT_DB_PATH
    embedding_provider: str = "auto"
    embedding_model: str = DEFAULT_LOCAL_EMBEDDING_MODEL
    ollama_url: str = DEFAULT_OLLAMA_URL
    ollama_model: str = DEFAULT_OLLAMA_EMBEDDING_MODEL
    embedding_dimensions: frozenset[int] = field(default_factory=lambda: DEFAULT_EMBEDDING_DIMENSIONS)
    max_vibes: int = MAX_VIBES
    prune_threshold: float = DEFAULT_PRUNE_THRESHOLD
    halo_threshold: float = HALO_SIMILARITY_THRESHOLD
    halo_max_boost: float = HALO_MAX_BOOST
    default_matcher: str = "semantic"
    log_level: str = "INFO"

    @property
    def halo(self) -> HaloConfig:
        return HaloConfig(threshold=self.halo_threshold, max_boost=self.halo_max_boost)


def _coerce(name: str, value: Any) -> Any:
    """Convert raw YAML/env values to the field's type."""
    if name == "db_path":
        return Path(value).expanduser()
    if name == "embedding_dimensions":
        if isinstance(value, str):
            value = [v for v in value.replace(",", " ").split() if v]
        return frozenset(int(v) for v in value)
    if name == "max_vibes":
        return int(value)
    if name in ("prune_threshold", "halo_threshold", "halo_max_boost"):
        return float(value)
    return str(value)


def _apply(settings: Settings, values: dict[str, Any], origin: str) -> None:
    known = {f.name for f in fields(Settings)}
    for key, value in values.items():
        if key not in known:
            logger.warning(f"Ignoring unknown setting '{key}' from {origin}")
            continue
        try:
            setattr(settings, key, _coerce(key, value))
        except (TypeError, ValueError) as e:
            logger.warning(f"Ignoring invalid value for '{key}' from {origin}: {e}")


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from YAML and the environment.

    Missing or malformed files fall back to defaults.
    Returns merged settings (environment overrides file, file overrides defaults).
    """
    settings = Settings()
    config_path = Path(path).expanduser() if path else DEFAULT_CONFIG_PATH

    if config_path.exists():
        try:
            data = yaml.safe_load(config_path.read_text()) or {}
            if isinstance(data, dict):
                _apply(settings, data, str(config_path))
            else:
                logger.warning(f"Config {config_path} is not a mapping, using defaults")
        except (yaml.YAMLError, OSError) as e:
            logger.warning(f"Could not read config {config_path}: {e}")

    env_values = {
        attr: os.environ[var]
        for var, attr in ENV_OVERRIDES.items()
        if os.environ.get(var)
    }
    _apply(settings, env_values, "environment")

    return settings
