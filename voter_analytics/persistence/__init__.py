"""
Data access layer.

Provides the abstract store interface, the PostgreSQL implementation and
the query-result cache.
"""

from .cache import MISS, CacheStats, QueryResultCache
from .postgres import PostgresVoterStore
from .repository import VoterStore

__all__ = [
    "MISS",
    "CacheStats",
    "QueryResultCache",
    "PostgresVoterStore",
    "VoterStore",
]
