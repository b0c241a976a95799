from .mutations import MutationResult, MutationRunner
from .query_cache import CacheEntry, QueryCache, QueryKey, QueryResult, make_key, matches

__all__ = [
    "CacheEntry",
    "MutationResult",
    "MutationRunner",
    "QueryCache",
    "QueryKey",
    "QueryResult",
    "make_key",
    "matches",
]
