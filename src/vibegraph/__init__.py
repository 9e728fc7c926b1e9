"""vibegraph: a temporal cultural graph.

Public API:
- Vibe, GraphEdge, Scenario, UserProfile, VibeMatch: data models
- calculate_decay, merge_occurrence, apply_halo_effect: relevance engine
- MemoryGraphStore, SqliteGraphStore: graph stores
- SemanticMatcher, PersonalizedMatcher, MatcherRegistry: ranking
- ZeitgeistService: orchestration
"""

from .decay import apply_halo_effect, calculate_decay, merge_occurrence
from .matchers import MatcherRegistry, PersonalizedMatcher, SemanticMatcher
from .models import GraphEdge, Scenario, UserProfile, Vibe, VibeMatch
from .service import ZeitgeistService
from .sqlite_store import SqliteGraphStore
from .store import MemoryGraphStore

__version__ = "0.1.0"

__all__ = [
    "Vibe",
    "GraphEdge",
    "Scenario",
    "UserProfile",
    "VibeMatch",
    "calculate_decay",
    "merge_occurrence",
    "apply_halo_effect",
    "MemoryGraphStore",
    "SqliteGraphStore",
    "SemanticMatcher",
    "PersonalizedMatcher",
    "MatcherRegistry",
    "ZeitgeistService",
]
