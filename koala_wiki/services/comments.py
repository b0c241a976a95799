from __future__ import annotations

from typing import List

from koala_wiki.cache.mutations import MutationResult
from koala_wiki.cache.query_cache import QueryResult, make_key
from koala_wiki.models import Comment, CommentCreate
from koala_wiki.validation import validate_comment
from . import keys
from .base import COMMENTS_STALE_S, Service


class CommentService(Service):
    async def list_for_page(self, page_id: str) -> QueryResult[List[Comment]]:
        return await self.cache.query(
            keys.comments(page_id),
            lambda: self.api.comments.get_page_comments(page_id),
            enabled=bool(page_id),
            stale_time_s=COMMENTS_STALE_S,
        )

    async def list_for_user(self, user_id: str, limit: int = 20, offset: int = 0) -> QueryResult[List[Comment]]:
        return await self.cache.query(
            make_key(*keys.USER_COMMENTS, user_id, limit, offset),
            lambda: self.api.comments.get_user_comments(user_id, limit, offset),
            enabled=bool(user_id),
        )

    async def create(self, page_id: str, content: str) -> MutationResult[str]:
        text = (content or "").strip()
        return await self.mutations.run(
            lambda: self.api.comments.create_comment(CommentCreate(pageId=page_id, content=text)),
            name="create comment",
            validate=lambda: validate_comment(text),
            invalidates=[keys.comments(page_id)],
            success="Comment posted",
            error_title="Could not post the comment",
            loading_key=f"comment:create:{page_id}",
        )

    async def update(self, page_id: str, comment_id: str, content: str) -> MutationResult[None]:
        text = (content or "").strip()

        def _patch(items: List[Comment]) -> List[Comment]:
            return [c.model_copy(update={"content": text}) if c.id == comment_id else c for c in items]

        return await self.mutations.run(
            lambda: self.api.comments.update_comment(comment_id, text),
            name="update comment",
            validate=lambda: validate_comment(text),
            optimistic={keys.comments(page_id): _patch},
            invalidates=[keys.comments(page_id)],
            success="Comment updated",
            error_title="Could not update the comment",
        )

    async def delete(self, page_id: str, comment_id: str) -> MutationResult[None]:
        return await self.mutations.run(
            lambda: self.api.comments.delete_comment(comment_id),
            name="delete comment",
            optimistic={keys.comments(page_id): lambda items: [c for c in items if c.id != comment_id]},
            invalidates=[keys.comments(page_id)],
            success="Comment deleted",
            error_title="Could not delete the comment",
        )
