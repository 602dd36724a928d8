"""Count 1-or-2 pill daily schedules behind a cache and a deferral policy."""

from __future__ import annotations

from .cache_client import CacheLookup, HttpCacheClient, RedisCacheClient
from .config import Settings
from .counting import (
    PermutationTable,
    count_permutations,
    permutation_table,
    write_permutation_table,
)
from .defer_client import DeferClient, DeferredTask
from .errors import (
    ConfigurationError,
    PersistenceError,
    PillPermutationError,
    RetrievalError,
    ServiceError,
    SubmissionError,
    ValidationError,
)
from .orchestrator import (
    MAX_PILLS,
    MIN_PILLS,
    SYNCHRONOUS_THRESHOLD,
    PermutationResult,
    PermutationService,
    validate_pills,
)

__all__ = [
    "CacheLookup",
    "ConfigurationError",
    "DeferClient",
    "DeferredTask",
    "HttpCacheClient",
    "MAX_PILLS",
    "MIN_PILLS",
    "PermutationResult",
    "PermutationService",
    "PermutationTable",
    "PersistenceError",
    "PillPermutationError",
    "RedisCacheClient",
    "RetrievalError",
    "SYNCHRONOUS_THRESHOLD",
    "ServiceError",
    "Settings",
    "SubmissionError",
    "ValidationError",
    "count_permutations",
    "permutation_table",
    "validate_pills",
    "write_permutation_table",
]
