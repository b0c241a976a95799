"""
Cache keys for server reads. A mutation invalidates by prefix, so ("wikiPages",)
covers every ("wikiPages", params) entry.
"""
from __future__ import annotations

from typing import Any, Dict

from koala_wiki.cache.query_cache import QueryKey, make_key

WIKI_PAGES: QueryKey = ("wikiPages",)
WIKI_PAGE: QueryKey = ("wikiPage",)
POPULAR_PAGES: QueryKey = ("popularPages",)
PAGE_HISTORY: QueryKey = ("pageHistory",)
USER_PAGES: QueryKey = ("userPages",)
USER: QueryKey = ("user",)
ME: QueryKey = ("user", "me")
COMMENTS: QueryKey = ("comments",)
USER_COMMENTS: QueryKey = ("userComments",)
SEARCH: QueryKey = ("search",)
SUGGESTIONS: QueryKey = ("suggestions",)
TAGS: QueryKey = ("tags",)
ADMIN_USERS: QueryKey = ("adminUsers",)
ADMIN_PAGES: QueryKey = ("adminPages",)
PENDING_PAGES: QueryKey = ("pendingPages",)
ADMIN_STATS: QueryKey = ("adminStats",)
ADMIN_SETTINGS: QueryKey = ("adminSettings",)
ADMIN_LOGS: QueryKey = ("adminLogs",)
UPLOAD_HISTORY: QueryKey = ("uploadHistory",)


def wiki_pages(params: Dict[str, Any]) -> QueryKey:
    return make_key(*WIKI_PAGES, params)


def wiki_page(page_id: str) -> QueryKey:
    return make_key(*WIKI_PAGE, page_id)


def comments(page_id: str) -> QueryKey:
    return make_key(*COMMENTS, page_id)


def user(user_id: str) -> QueryKey:
    return make_key(*USER, user_id)
