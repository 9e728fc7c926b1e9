"""Tuned constants for decay, halo propagation, storage and ranking.

Kept in one place so modules import them rather than redefine them.
"""

import math

# --- Time ---
SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400
SECONDS_PER_WEEK = 604800
SECONDS_PER_MONTH = 2592000  # 30 days
SECONDS_PER_YEAR = 31536000  # 365 days
LN_2 = math.log(2)

# --- Decay ---
# Half-life in days per vibe category
DEFAULT_HALF_LIVES: dict[str, float] = {
    "meme": 3,
    "event": 7,
    "trend": 14,
    "topic": 21,
    "sentiment": 30,
    "aesthetic": 60,
    "movement": 90,
    "custom": 14,
}
FALLBACK_HALF_LIFE_DAYS = 14.0
NO_DECAY_WINDOW_DAYS = 1 / 24  # observed within the last hour
RAPID_DECAY_FACTOR = 0.01  # applied when a half-life is non-positive
DEFAULT_PRUNE_THRESHOLD = 0.05
MIN_SUGGESTED_HALF_LIFE_DAYS = 1.0

# --- Occurrence merge ---
MERGE_BASE_BOOST = 0.1
MERGE_BOOST_PER_DAY = 0.02
MERGE_MAX_BOOST = 0.3
DEFAULT_BOOST_AMOUNT = 0.2

# --- Half-life suggestion ---
STRENGTH_MULTIPLIER_BASE = 0.7
STRENGTH_MULTIPLIER_RANGE = 0.6
MIXED_SENTIMENT_MULTIPLIER = 0.8
SOURCE_MULTIPLIER_STEP = 0.05
SOURCE_MULTIPLIER_CAP = 1.5

# --- Halo propagation ---
HALO_SIMILARITY_THRESHOLD = 0.6
HALO_MAX_BOOST = 0.15

# --- Temporal stats buckets ---
HIGHLY_RELEVANT_THRESHOLD = 0.7
MODERATELY_RELEVANT_THRESHOLD = 0.3
LOW_RELEVANCE_THRESHOLD = 0.05

# --- Graph store ---
DEFAULT_EMBEDDING_DIMENSIONS = frozenset({768, 1536})
MAX_VIBES = 100_000
GRAPH_FORMAT_VERSION = "1.0"
DEFAULT_EMBEDDING_SEARCH_LIMIT = 10

# --- Ranking ---
SEMANTIC_MATCH_THRESHOLD = 0.5
DEFAULT_MATCH_LIMIT = 20
DEFAULT_ENSEMBLE_TOP_N = 10
DEFAULT_STRATEGY_WEIGHT = 1.0
REGIONAL_RELEVANCE_THRESHOLD = 0.2
UNRELATED_REGION_RELEVANCE = 0.3
INTEREST_BOOST_FACTOR = 0.5
DEFAULT_SIMILAR_VIBES_LIMIT = 10
DEFAULT_SIMILAR_VIBES_MIN = 0.5

# --- Embeddings ---
DEFAULT_LOCAL_EMBEDDING_MODEL = "all-mpnet-base-v2"  # 768 dims
DEFAULT_OLLAMA_EMBEDDING_MODEL = "nomic-embed-text"  # 768 dims
DEFAULT_OLLAMA_URL = "http://localhost:11434"
EMBEDDING_TIMEOUT_SECONDS = 30.0
MAX_EMBEDDING_TEXT_CHARS = 2000

# --- Service ---
DEFAULT_SEARCH_LIMIT = 20
STATUS_TOP_VIBES = 10
DEFAULT_RECENT_LIMIT = 10
