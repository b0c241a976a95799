"""
Remote read cache.

Entries are keyed by a query key: a tuple such as ("wikiPage", "p1") or
("wikiPages", (("limit", 20),)). Dicts in keys are frozen into sorted tuples, so
equal parameters always map to the same entry.

- fresh entries (age < stale time, not invalidated) are served without a request
- concurrent reads of one key share a single in-flight request
- invalidate(prefix) marks matching entries stale and detaches requests already in
  flight, so the next read goes to the network
- a detached request that finishes late is stored as stale, and never replaces data
  from a request started after the invalidation
- entries unused for cache_time_s are dropped by collect_garbage()
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Iterator, List, Literal, Optional, Tuple, TypeVar

from koala_wiki import config
from koala_wiki.api.errors import ApiError, NotFoundError

logger = logging.getLogger("koala_wiki.cache")

T = TypeVar("T")
QueryKey = Tuple[Any, ...]
Fetcher = Callable[[], Awaitable[Any]]


def _freeze(value: Any) -> Any:
    if isinstance(value, dict):
        return tuple(sorted((str(k), _freeze(v)) for k, v in value.items() if v is not None))
    if isinstance(value, (list, tuple, set)):
        return tuple(_freeze(v) for v in value)
    return value


def make_key(*parts: Any) -> QueryKey:
    return tuple(_freeze(p) for p in parts)


def matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[: len(prefix)] == prefix


@dataclass
class CacheEntry:
    key: QueryKey
    data: Any = None
    has_data: bool = False
    fetched_at: Optional[float] = None
    is_stale: bool = True
    in_flight: Optional[asyncio.Task] = None
    error: Optional[BaseException] = None
    generation: int = 0
    data_generation: int = 0
    last_used: float = 0.0
    fetch_count: int = 0


@dataclass(frozen=True)
class Snapshot:
    key: QueryKey
    data: Any
    has_data: bool
    fetched_at: Optional[float]
    is_stale: bool


QueryStatus = Literal["idle", "success", "not_found", "error"]


@dataclass
class QueryResult(Generic[T]):
    """
    Outcome of a page-level read. Failures are reported here instead of raised;
    `data` keeps the last cached value when a refetch fails.
    """

    status: QueryStatus
    data: Optional[T] = None
    error: Optional[ApiError] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    @property
    def not_found(self) -> bool:
        return self.status == "not_found"


class QueryCache:
    def __init__(
        self,
        *,
        stale_time_s: Optional[float] = None,
        cache_time_s: Optional[float] = None,
        retry: Optional[int] = None,
        retry_delay_s: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.stale_time_s = float(stale_time_s if stale_time_s is not None else config.query_stale_time_s())
        self.cache_time_s = float(cache_time_s if cache_time_s is not None else config.query_cache_time_s())
        self.retry = int(retry if retry is not None else config.query_retry())
        self.retry_delay_s = float(retry_delay_s if retry_delay_s is not None else config.query_retry_delay_s())
        self._clock = clock
        self._entries: Dict[QueryKey, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def entry(self, key: QueryKey) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def _matching(self, prefix: QueryKey) -> Iterator[CacheEntry]:
        for key, entry in list(self._entries.items()):
            if matches(key, prefix):
                yield entry

    def is_fresh(self, entry: CacheEntry, stale_time_s: Optional[float] = None) -> bool:
        if not entry.has_data or entry.is_stale or entry.fetched_at is None:
            return False
        limit = self.stale_time_s if stale_time_s is None else stale_time_s
        return (self._clock() - entry.fetched_at) < limit

    async def fetch(
        self,
        key: QueryKey,
        fetcher: Fetcher,
        *,
        stale_time_s: Optional[float] = None,
        retry: Optional[int] = None,
        force: bool = False,
    ) -> Any:
        """
        Return cached data for `key` when fresh, otherwise load it with `fetcher`.
        Errors from the last attempt propagate; the previous data stays cached.
        """
        now = self._clock()
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(key=key)
            self._entries[key] = entry
        entry.last_used = now

        if not force and self.is_fresh(entry, stale_time_s):
            return entry.data

        if entry.in_flight is None or entry.in_flight.done():
            entry.in_flight = asyncio.ensure_future(self._load(entry, fetcher, retry, generation=entry.generation))
        return await asyncio.shield(entry.in_flight)

    async def _load(self, entry: CacheEntry, fetcher: Fetcher, retry: Optional[int], *, generation: int) -> Any:
        attempts = 1 + max(0, int(self.retry if retry is None else retry))
        attempt = 0
        try:
            while True:
                attempt += 1
                try:
                    data = await fetcher()
                except ApiError as e:
                    entry.error = e
                    if not e.retryable or attempt >= attempts:
                        raise
                    logger.info("retrying %s after %s error (%d/%d)", entry.key, e.kind, attempt, attempts - 1)
                    await asyncio.sleep(self.retry_delay_s)
                    continue
                self._store(entry, data, generation=generation)
                return data
        finally:
            if entry.in_flight is asyncio.current_task():
                entry.in_flight = None

    def _store(self, entry: CacheEntry, data: Any, *, generation: int) -> None:
        if entry.has_data and entry.data_generation > generation:
            # a request started after the invalidation already stored newer data
            logger.debug("dropping outdated response for %s", entry.key)
            return
        entry.data = data
        entry.data_generation = generation
        entry.has_data = True
        entry.error = None
        entry.fetch_count += 1
        entry.fetched_at = self._clock()
        # invalidated while this request was in flight
        entry.is_stale = generation != entry.generation

    async def query(
        self,
        key: QueryKey,
        fetcher: Fetcher,
        *,
        enabled: bool = True,
        stale_time_s: Optional[float] = None,
        retry: Optional[int] = None,
        force: bool = False,
    ) -> QueryResult:
        if not enabled:
            return QueryResult(status="idle")
        try:
            data = await self.fetch(key, fetcher, stale_time_s=stale_time_s, retry=retry, force=force)
        except NotFoundError as e:
            return QueryResult(status="not_found", error=e)
        except ApiError as e:
            logger.info("query %s failed: %s", key, e.message)
            return QueryResult(status="error", data=self.peek(key), error=e)
        return QueryResult(status="success", data=data)

    def peek(self, key: QueryKey) -> Any:
        """Cached data, fresh or stale, without fetching."""
        entry = self._entries.get(key)
        return entry.data if entry is not None and entry.has_data else None

    def set_data(self, key: QueryKey, data: Any) -> None:
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(key=key)
            self._entries[key] = entry
        entry.data = data
        entry.has_data = True
        entry.data_generation = entry.generation
        entry.fetched_at = self._clock()
        entry.is_stale = False
        entry.last_used = entry.fetched_at

    def snapshot(self, key: QueryKey) -> Optional[Snapshot]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        return Snapshot(
            key=key,
            data=entry.data,
            has_data=entry.has_data,
            fetched_at=entry.fetched_at,
            is_stale=entry.is_stale,
        )

    def restore(self, snap: Snapshot) -> None:
        entry = self._entries.get(snap.key)
        if entry is None:
            entry = CacheEntry(key=snap.key)
            self._entries[snap.key] = entry
        entry.data = snap.data
        entry.has_data = snap.has_data
        entry.fetched_at = snap.fetched_at
        entry.is_stale = snap.is_stale

    def invalidate(self, prefix: QueryKey) -> int:
        count = 0
        for entry in self._matching(prefix):
            entry.is_stale = True
            entry.generation += 1
            entry.in_flight = None
            count += 1
        if count:
            logger.debug("invalidated %d entries under %s", count, prefix)
        return count

    def remove(self, prefix: QueryKey) -> int:
        keys = [e.key for e in self._matching(prefix)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> List[QueryKey]:
        return list(self._entries.keys())

    def collect_garbage(self) -> int:
        """
        Drop entries unused for longer than cache_time_s and not currently loading.
        """
        now = self._clock()
        stale_keys = [
            key
            for key, entry in self._entries.items()
            if entry.in_flight is None and (now - entry.last_used) >= self.cache_time_s
        ]
        for key in stale_keys:
            del self._entries[key]
        return len(stale_keys)
