from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, TypeVar

import aiofiles
from pydantic import BaseModel, ValidationError as ModelValidationError

from koala_wiki import config
from koala_wiki.models import (
    AdminLog,
    AdminStats,
    AdminUserList,
    AuthResponse,
    Comment,
    CommentCreate,
    CreatePageResult,
    EditHistory,
    PageList,
    SearchResult,
    SearchType,
    Tag,
    UploadHistory,
    UploadResponse,
    User,
    VerifyResponse,
    WikiPage,
    WikiPageCreate,
    WikiPageUpdate,
)
from .client import WikiApiClient
from .errors import ServerError

logger = logging.getLogger("koala_wiki.api")

M = TypeVar("M", bound=BaseModel)


def _parse(model: Type[M], data: Any) -> M:
    """Validate a response body; a body of the wrong shape is a server error."""
    try:
        return model.model_validate(data)
    except ModelValidationError as e:
        logger.warning("unexpected %s payload (%d errors)", model.__name__, e.error_count())
        raise ServerError("Unexpected response from server") from e


def _field(data: Any, key: str) -> Any:
    return data.get(key) if isinstance(data, dict) else None


def _list(data: Any, key: str) -> List[dict]:
    items = data.get(key) if isinstance(data, dict) else None
    return [x for x in items if isinstance(x, dict)] if isinstance(items, list) else []


class AuthAPI:
    def __init__(self, client: WikiApiClient):
        self.client = client

    async def register(self, *, nickname: str, email: str, password: str) -> AuthResponse:
        data = await self.client.post(
            "/api/auth/register",
            json={"nickname": nickname, "email": email, "password": password},
        )
        return _parse(AuthResponse, data)

    async def login(self, *, email: str, password: str) -> AuthResponse:
        data = await self.client.post("/api/auth/login", json={"email": email, "password": password})
        return _parse(AuthResponse, data)

    async def verify(self) -> VerifyResponse:
        data = await self.client.get("/api/auth/verify")
        return _parse(VerifyResponse, data or {"valid": False})


class UserAPI:
    def __init__(self, client: WikiApiClient):
        self.client = client

    async def get_me(self) -> User:
        data = await self.client.get("/api/users/me")
        return _parse(User, _field(data, "user"))

    async def update_me(self, changes: Dict[str, Any]) -> None:
        await self.client.put("/api/users/me", json=changes)

    async def get_user(self, user_id: str) -> User:
        data = await self.client.get(f"/api/users/{user_id}")
        return _parse(User, _field(data, "user"))

    async def get_user_pages(self, user_id: str, limit: int = 20, offset: int = 0) -> List[WikiPage]:
        data = await self.client.get(f"/api/users/{user_id}/pages", params={"limit": limit, "offset": offset})
        return [_parse(WikiPage, p) for p in _list(data, "pages")]


class WikiAPI:
    def __init__(self, client: WikiApiClient):
        self.client = client

    async def get_pages(
        self,
        *,
        status: Optional[str] = None,
        search: Optional[str] = None,
        tag: Optional[str] = None,
        author: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> PageList:
        params = {"status": status, "search": search, "tag": tag, "author": author, "limit": limit, "offset": offset}
        data = await self.client.get("/api/wiki", params=params)
        return _parse(PageList, data or {})

    async def get_popular_pages(self, limit: int = 10) -> List[WikiPage]:
        data = await self.client.get("/api/wiki/popular", params={"limit": limit})
        return [_parse(WikiPage, p) for p in _list(data, "pages")]

    async def get_page(self, page_id: str) -> WikiPage:
        data = await self.client.get(f"/api/wiki/{page_id}")
        return _parse(WikiPage, _field(data, "page"))

    async def create_page(self, page: WikiPageCreate) -> CreatePageResult:
        data = await self.client.post("/api/wiki", json=page.to_payload())
        return _parse(CreatePageResult, data)

    async def update_page(self, page_id: str, changes: WikiPageUpdate) -> None:
        await self.client.put(f"/api/wiki/{page_id}", json=changes.to_payload())

    async def delete_page(self, page_id: str) -> None:
        await self.client.delete(f"/api/wiki/{page_id}")

    async def approve_page(self, page_id: str) -> None:
        await self.client.post(f"/api/wiki/{page_id}/approve")

    async def get_page_history(self, page_id: str) -> List[EditHistory]:
        data = await self.client.get(f"/api/wiki/{page_id}/history")
        return [_parse(EditHistory, h) for h in _list(data, "history")]


class CommentAPI:
    def __init__(self, client: WikiApiClient):
        self.client = client

    async def create_comment(self, comment: CommentCreate) -> str:
        data = await self.client.post("/api/comments", json=comment.to_payload())
        comment_id = _field(data, "id")
        if not comment_id:
            raise ServerError("Unexpected response from server")
        return str(comment_id)

    async def get_page_comments(self, page_id: str) -> List[Comment]:
        data = await self.client.get(f"/api/comments/page/{page_id}")
        return [_parse(Comment, c) for c in _list(data, "comments")]

    async def update_comment(self, comment_id: str, content: str) -> None:
        await self.client.put(f"/api/comments/{comment_id}", json={"content": content})

    async def delete_comment(self, comment_id: str) -> None:
        await self.client.delete(f"/api/comments/{comment_id}")

    async def get_user_comments(self, user_id: str, limit: int = 20, offset: int = 0) -> List[Comment]:
        data = await self.client.get(f"/api/comments/user/{user_id}", params={"limit": limit, "offset": offset})
        return [_parse(Comment, c) for c in _list(data, "comments")]


class SearchAPI:
    def __init__(self, client: WikiApiClient):
        self.client = client

    async def search(self, query: str, type: SearchType = "all", limit: int = 20) -> SearchResult:
        data = await self.client.get("/api/search", params={"q": query, "type": type, "limit": limit})
        return _parse(SearchResult, data or {})

    async def get_tags(self, limit: int = 20) -> List[Tag]:
        data = await self.client.get("/api/search/tags", params={"limit": limit})
        return [_parse(Tag, t) for t in _list(data, "tags")]

    async def get_suggestions(self, query: str, limit: int = 5) -> List[str]:
        data = await self.client.get("/api/search/suggestions", params={"q": query, "limit": limit})
        items = _field(data, "suggestions")
        return [str(s) for s in items] if isinstance(items, list) else []


class UploadAPI:
    def __init__(self, client: WikiApiClient):
        self.client = client

    async def upload_image(self, path: Path | str, *, content_type: Optional[str] = None) -> UploadResponse:
        p = Path(path)
        mime = content_type or mimetypes.guess_type(p.name)[0] or "application/octet-stream"
        async with aiofiles.open(p, "rb") as f:
            body = await f.read()
        files = {"image": (p.name, body, mime)}
        data = await self.client.post("/api/upload/image", files=files)
        return _parse(UploadResponse, data)

    async def get_upload_history(self, limit: int = 20, offset: int = 0) -> List[UploadHistory]:
        data = await self.client.get("/api/upload/history", params={"limit": limit, "offset": offset})
        return [_parse(UploadHistory, u) for u in _list(data, "uploads")]

    async def delete_file(self, file_name: str) -> None:
        await self.client.delete(f"/api/upload/{file_name}")


class AdminAPI:
    def __init__(self, client: WikiApiClient):
        self.client = client

    async def get_users(
        self,
        *,
        role: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        use_admin_token: bool = False,
    ) -> AdminUserList:
        token = config.admin_api_token() if use_admin_token else None
        data = await self.client.get(
            "/api/admin/users",
            params={"role": role, "search": search, "limit": limit, "offset": offset},
            token=token,
        )
        return _parse(AdminUserList, data or {})

    async def change_user_role(self, user_id: str, role: str) -> None:
        await self.client.put(f"/api/admin/users/{user_id}/role", json={"role": role})

    async def get_pending_pages(self, limit: int = 20, offset: int = 0) -> List[WikiPage]:
        data = await self.client.get("/api/admin/pages/pending", params={"limit": limit, "offset": offset})
        return [_parse(WikiPage, p) for p in _list(data, "pages")]

    async def get_stats(self) -> AdminStats:
        data = await self.client.get("/api/admin/stats")
        return _parse(AdminStats, data or {})

    async def get_settings(self) -> Dict[str, str]:
        data = await self.client.get("/api/admin/settings")
        settings = _field(data, "settings")
        return {str(k): str(v) for k, v in settings.items()} if isinstance(settings, dict) else {}

    async def update_settings(self, settings: Dict[str, str]) -> None:
        await self.client.put("/api/admin/settings", json=settings)

    async def get_logs(
        self,
        *,
        action: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[AdminLog]:
        data = await self.client.get("/api/admin/logs", params={"action": action, "limit": limit, "offset": offset})
        return [_parse(AdminLog, x) for x in _list(data, "logs")]


class WikiApi:
    """All endpoint groups over one shared client."""

    def __init__(self, client: WikiApiClient):
        self.client = client
        self.auth = AuthAPI(client)
        self.users = UserAPI(client)
        self.wiki = WikiAPI(client)
        self.comments = CommentAPI(client)
        self.search = SearchAPI(client)
        self.uploads = UploadAPI(client)
        self.admin = AdminAPI(client)

    async def close(self) -> None:
        await self.client.close()
