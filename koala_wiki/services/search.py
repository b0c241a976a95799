from __future__ import annotations

from typing import List

from koala_wiki.cache.query_cache import QueryResult, make_key
from koala_wiki.models import SearchResult, SearchType, Tag
from . import keys
from .base import SEARCH_STALE_S, SUGGESTIONS_STALE_S, TAGS_STALE_S, Service

MIN_SEARCH_LENGTH = 3


class SearchService(Service):
    async def search(self, query: str, type: SearchType = "all", limit: int = 20) -> QueryResult[SearchResult]:
        """
        Full search runs only for queries of three characters or more; shorter
        queries return an idle result without a request.
        """
        q = (query or "").strip()
        result = await self.cache.query(
            make_key(*keys.SEARCH, q, type, limit),
            lambda: self.api.search.search(q, type, limit),
            enabled=len(q) >= MIN_SEARCH_LENGTH,
            stale_time_s=SEARCH_STALE_S,
        )
        if result.ok:
            await self.ctx.search.add_recent_search(q)
        return result

    async def suggestions(self, query: str, limit: int = 5) -> QueryResult[List[str]]:
        q = (query or "").strip()
        return await self.cache.query(
            make_key(*keys.SUGGESTIONS, q, limit),
            lambda: self.api.search.get_suggestions(q, limit),
            enabled=bool(q),
            stale_time_s=SUGGESTIONS_STALE_S,
        )

    async def popular_tags(self, limit: int = 20) -> QueryResult[List[Tag]]:
        return await self.cache.query(
            make_key(*keys.TAGS, limit),
            lambda: self.api.search.get_tags(limit),
            stale_time_s=TAGS_STALE_S,
        )
