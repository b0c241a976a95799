from __future__ import annotations

from typing import Any, Dict, List, Optional

from koala_wiki.cache.mutations import MutationResult
from koala_wiki.cache.query_cache import QueryResult, make_key
from koala_wiki.models import User, WikiPage
from koala_wiki.validation import validate_nickname
from . import keys
from .base import Service


class UserService(Service):
    async def get_user(self, user_id: str) -> QueryResult[User]:
        return await self.cache.query(
            keys.user(user_id),
            lambda: self.api.users.get_user(user_id),
            enabled=bool(user_id),
        )

    async def user_pages(self, user_id: str, limit: int = 20, offset: int = 0) -> QueryResult[List[WikiPage]]:
        return await self.cache.query(
            make_key(*keys.USER_PAGES, user_id, limit, offset),
            lambda: self.api.users.get_user_pages(user_id, limit, offset),
            enabled=bool(user_id),
        )

    async def me(self) -> QueryResult[User]:
        return await self.cache.query(
            keys.ME,
            self.api.users.get_me,
            enabled=self.ctx.session.state.is_authenticated,
        )

    async def update_profile(
        self,
        *,
        nickname: str,
        bio: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> MutationResult[None]:
        changes: Dict[str, Any] = {"nickname": (nickname or "").strip()}
        if bio is not None:
            changes["bio"] = bio
        if avatar_url is not None:
            changes["avatarUrl"] = avatar_url

        result = await self.mutations.run(
            lambda: self.api.users.update_me(changes),
            name="update profile",
            validate=lambda: validate_nickname(changes["nickname"]),
            invalidates=[keys.USER],
            success="Profile updated",
            error_title="Could not update the profile",
            loading_key="profile",
        )
        if result.ok:
            await self.ctx.session.update_user(**changes)
        return result
