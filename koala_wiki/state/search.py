from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, List, Literal, Optional

from koala_wiki import config
from koala_wiki.storage.local import LocalStorage

STORAGE_KEY = "search-storage"

StatusFilter = Literal["all", "published", "draft"]


@dataclass
class SearchFilters:
    tags: List[str] = field(default_factory=list)
    author: Optional[str] = None
    status: StatusFilter = "published"


class SearchStore:
    """
    Recent searches (most recent first, de-duplicated, bounded) and list filters.
    """

    def __init__(self, storage: Optional[LocalStorage] = None, *, limit: Optional[int] = None):
        self._storage = storage
        self.limit = int(limit or config.recent_search_limit())
        self.recent_searches: List[str] = []
        self.filters = SearchFilters()

    async def restore(self) -> None:
        if self._storage is None:
            return
        blob = await self._storage.load(STORAGE_KEY)
        saved = (blob or {}).get("state") if isinstance(blob, dict) else None
        if not isinstance(saved, dict):
            return
        recent = saved.get("recentSearches")
        if isinstance(recent, list):
            self.recent_searches = [str(q) for q in recent][: self.limit]
        filters = saved.get("searchFilters")
        if isinstance(filters, dict):
            self.filters = SearchFilters(
                tags=[str(t) for t in filters.get("tags") or []],
                author=filters.get("author"),
                status=filters.get("status") if filters.get("status") in ("all", "published", "draft") else "published",
            )

    async def add_recent_search(self, query: str) -> None:
        q = (query or "").strip()
        if not q:
            return
        self.recent_searches = [q, *[s for s in self.recent_searches if s != q]][: self.limit]
        await self._persist()

    async def clear_recent_searches(self) -> None:
        self.recent_searches = []
        await self._persist()

    async def set_search_filters(self, **changes: Any) -> SearchFilters:
        current = asdict(self.filters)
        current.update({k: v for k, v in changes.items() if k in current})
        self.filters = SearchFilters(**current)
        await self._persist()
        return self.filters

    async def reset_search_filters(self) -> None:
        self.filters = SearchFilters()
        await self._persist()

    async def _persist(self) -> None:
        if self._storage is None:
            return
        blob = {
            "state": {
                "recentSearches": list(self.recent_searches),
                "searchFilters": asdict(self.filters),
            },
            "version": 0,
        }
        await self._storage.save(STORAGE_KEY, blob)
