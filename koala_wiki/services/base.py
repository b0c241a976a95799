from __future__ import annotations

from dataclasses import dataclass

from koala_wiki.api.resources import WikiApi
from koala_wiki.cache.mutations import MutationRunner
from koala_wiki.cache.query_cache import QueryCache
from koala_wiki.navigation import Navigator
from koala_wiki.state.search import SearchStore
from koala_wiki.state.session import SessionStore
from koala_wiki.state.ui import UIStore

# Stale times (seconds) per resource; other reads use the cache default.
POPULAR_PAGES_STALE_S = 10 * 60
COMMENTS_STALE_S = 2 * 60
SEARCH_STALE_S = 2 * 60
SUGGESTIONS_STALE_S = 5 * 60
TAGS_STALE_S = 15 * 60
PAGE_DETAIL_RETRY = 1


@dataclass
class ServiceContext:
    api: WikiApi
    cache: QueryCache
    mutations: MutationRunner
    session: SessionStore
    ui: UIStore
    navigator: Navigator
    search: SearchStore


class Service:
    def __init__(self, ctx: ServiceContext):
        self.ctx = ctx

    @property
    def api(self) -> WikiApi:
        return self.ctx.api

    @property
    def cache(self) -> QueryCache:
        return self.ctx.cache

    @property
    def mutations(self) -> MutationRunner:
        return self.ctx.mutations
