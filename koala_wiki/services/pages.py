from __future__ import annotations

from typing import Any, Dict, List, Optional

from koala_wiki.cache.mutations import MutationResult
from koala_wiki.cache.query_cache import QueryResult, make_key
from koala_wiki.models import CreatePageResult, EditHistory, PageList, WikiPage, WikiPageCreate, WikiPageUpdate
from koala_wiki.validation import validate_content, validate_page, validate_tags, validate_title
from . import keys
from .base import PAGE_DETAIL_RETRY, POPULAR_PAGES_STALE_S, Service


def _created_message(result: CreatePageResult) -> str:
    if result.published:
        return "Page created"
    return "Page submitted and pending approval"


class PageService(Service):
    async def list_pages(
        self,
        *,
        status: Optional[str] = None,
        search: Optional[str] = None,
        tag: Optional[str] = None,
        author: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> QueryResult[PageList]:
        params: Dict[str, Any] = {
            "status": status,
            "search": search,
            "tag": tag,
            "author": author,
            "limit": limit,
            "offset": offset,
        }
        return await self.cache.query(keys.wiki_pages(params), lambda: self.api.wiki.get_pages(**params))

    async def get_page(self, page_id: str) -> QueryResult[WikiPage]:
        return await self.cache.query(
            keys.wiki_page(page_id),
            lambda: self.api.wiki.get_page(page_id),
            enabled=bool(page_id),
            retry=PAGE_DETAIL_RETRY,
        )

    async def popular_pages(self, limit: int = 10) -> QueryResult[List[WikiPage]]:
        return await self.cache.query(
            make_key(*keys.POPULAR_PAGES, limit),
            lambda: self.api.wiki.get_popular_pages(limit),
            stale_time_s=POPULAR_PAGES_STALE_S,
        )

    async def history(self, page_id: str) -> QueryResult[List[EditHistory]]:
        return await self.cache.query(
            make_key(*keys.PAGE_HISTORY, page_id),
            lambda: self.api.wiki.get_page_history(page_id),
            enabled=bool(page_id),
        )

    async def create(self, title: str, content: str, tags: List[str]) -> MutationResult[CreatePageResult]:
        def _validate() -> None:
            validate_page(title, content)
            validate_tags(tags)

        payload = WikiPageCreate(title=title.strip(), content=content, tags=list(tags))
        return await self.mutations.run(
            lambda: self.api.wiki.create_page(payload),
            name="create page",
            validate=_validate,
            invalidates=[keys.WIKI_PAGES, keys.USER_PAGES],
            success=_created_message,
            error_title="Could not create the page",
            loading_key="page:create",
        )

    async def update(
        self,
        page_id: str,
        *,
        title: Optional[str] = None,
        content: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> MutationResult[None]:
        changes = WikiPageUpdate(title=title.strip() if title is not None else None, content=content, tags=tags)

        def _validate() -> None:
            if title is not None:
                validate_title(title)
            if content is not None:
                validate_content(content)
            if tags is not None:
                validate_tags(tags)

        def _patch(page: WikiPage) -> WikiPage:
            return page.model_copy(update=changes.model_dump(exclude_none=True))

        return await self.mutations.run(
            lambda: self.api.wiki.update_page(page_id, changes),
            name="update page",
            validate=_validate,
            optimistic={keys.wiki_page(page_id): _patch},
            invalidates=[keys.wiki_page(page_id), keys.WIKI_PAGES],
            success="Page updated",
            error_title="Could not update the page",
            loading_key=f"page:update:{page_id}",
        )

    async def delete(self, page_id: str) -> MutationResult[None]:
        return await self.mutations.run(
            lambda: self.api.wiki.delete_page(page_id),
            name="delete page",
            removes=[keys.wiki_page(page_id)],
            invalidates=[keys.WIKI_PAGES, keys.ADMIN_PAGES, keys.ADMIN_STATS, keys.PENDING_PAGES],
            success="Page deleted",
            error_title="Could not delete the page",
        )

    async def approve(self, page_id: str) -> MutationResult[None]:
        return await self.mutations.run(
            lambda: self.api.wiki.approve_page(page_id),
            name="approve page",
            invalidates=[keys.ADMIN_PAGES, keys.ADMIN_STATS, keys.PENDING_PAGES, keys.WIKI_PAGES],
            success="Page approved",
            error_title="Could not approve the page",
        )
