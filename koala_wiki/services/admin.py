"""
Admin dashboard operations. Reads need the moderator or admin role; role changes
and settings updates need admin. The server enforces the same rules, the checks
here only avoid requests that are bound to fail.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from koala_wiki.api.errors import AuthorizationError
from koala_wiki.cache.mutations import MutationResult
from koala_wiki.cache.query_cache import QueryKey, QueryResult, make_key
from koala_wiki.guards import ADMIN_ROLES, Access, decide
from koala_wiki.models import AdminLog, AdminStats, AdminUserList, PageList, Role, WikiPage
from . import keys
from .base import Service


class AdminService(Service):
    def _denied(self, roles: Iterable[Role]) -> Optional[AuthorizationError]:
        if decide(self.ctx.session.state, roles) == Access.ALLOW:
            return None
        return AuthorizationError("You do not have permission for this action", status=403)

    async def _admin_query(
        self,
        key: QueryKey,
        fetcher: Callable[[], Awaitable[Any]],
        roles: Iterable[Role] = ADMIN_ROLES,
    ) -> QueryResult:
        err = self._denied(roles)
        if err is not None:
            return QueryResult(status="error", error=err)
        return await self.cache.query(key, fetcher)

    async def _admin_mutation(self, roles: Iterable[Role], fn: Callable[[], Awaitable[Any]], **kw: Any) -> MutationResult:
        err = self._denied(roles)
        if err is not None:
            self.ctx.ui.add_toast("error", kw.get("error_title", "Not allowed"), err.message)
            return MutationResult(ok=False, error=err)
        return await self.mutations.run(fn, **kw)

    async def users(
        self,
        *,
        role: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> QueryResult[AdminUserList]:
        filters: Dict[str, Any] = {"role": role, "search": search, "limit": limit, "offset": offset}
        return await self._admin_query(
            make_key(*keys.ADMIN_USERS, filters),
            lambda: self.api.admin.get_users(**filters),
        )

    async def change_role(self, user_id: str, role: Role | str) -> MutationResult[None]:
        new_role = Role(role)
        return await self._admin_mutation(
            (Role.ADMIN,),
            lambda: self.api.admin.change_user_role(user_id, new_role.value),
            name="change role",
            invalidates=[keys.ADMIN_USERS],
            success=f"Role changed to {new_role.value}",
            error_title="Could not change the role",
        )

    async def pages(self, *, status: Optional[str] = None, limit: int = 20, offset: int = 0) -> QueryResult[PageList]:
        params: Dict[str, Any] = {"status": status, "limit": limit, "offset": offset}
        return await self._admin_query(
            make_key(*keys.ADMIN_PAGES, params),
            lambda: self.api.wiki.get_pages(**params),
        )

    async def pending_pages(self, limit: int = 20, offset: int = 0) -> QueryResult[List[WikiPage]]:
        return await self._admin_query(
            make_key(*keys.PENDING_PAGES, limit, offset),
            lambda: self.api.admin.get_pending_pages(limit, offset),
        )

    async def stats(self) -> QueryResult[AdminStats]:
        return await self._admin_query(keys.ADMIN_STATS, self.api.admin.get_stats)

    async def settings(self) -> QueryResult[Dict[str, str]]:
        return await self._admin_query(keys.ADMIN_SETTINGS, self.api.admin.get_settings)

    async def update_settings(self, settings: Dict[str, str]) -> MutationResult[None]:
        values = {str(k): str(v) for k, v in settings.items()}
        return await self._admin_mutation(
            (Role.ADMIN,),
            lambda: self.api.admin.update_settings(values),
            name="update settings",
            invalidates=[keys.ADMIN_SETTINGS],
            success="Settings saved",
            error_title="Could not save the settings",
        )

    async def logs(self, *, action: Optional[str] = None, limit: int = 50, offset: int = 0) -> QueryResult[List[AdminLog]]:
        params: Dict[str, Any] = {"action": action, "limit": limit, "offset": offset}
        return await self._admin_query(
            make_key(*keys.ADMIN_LOGS, params),
            lambda: self.api.admin.get_logs(**params),
        )
