"""
Wire models for the wiki API. Field names follow the API's JSON.
"""
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Permission level, ordered contributor < editor < moderator < admin."""
    CONTRIBUTOR = "contributor"
    EDITOR = "editor"
    MODERATOR = "moderator"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]

    def at_least(self, other: "Role | str") -> bool:
        return self.rank >= Role(other).rank


_ROLE_RANK = {
    Role.CONTRIBUTOR: 0,
    Role.EDITOR: 1,
    Role.MODERATOR: 2,
    Role.ADMIN: 3,
}


class PageStatus(str, Enum):
    PUBLISHED = "published"
    DRAFT = "draft"
    ARCHIVED = "archived"


class WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class PublicUser(WireModel):
    id: str
    nickname: str
    role: Role = Role.CONTRIBUTOR
    avatarUrl: Optional[str] = None
    bio: Optional[str] = None
    createdAt: Optional[str] = None


class User(PublicUser):
    email: str = ""
    updatedAt: Optional[str] = None
    pageCount: Optional[int] = None
    commentCount: Optional[int] = None


class AuthResponse(WireModel):
    message: str = ""
    token: str
    user: User


class VerifyResponse(WireModel):
    valid: bool
    user: Optional[User] = None


class WikiPage(WireModel):
    id: str
    title: str
    content: str = ""
    authorId: str = ""
    author: Optional[PublicUser] = None
    tags: List[str] = Field(default_factory=list)
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None
    status: PageStatus = PageStatus.PUBLISHED
    viewCount: int = 0
    thumbnailUrl: Optional[str] = None


class PageList(WireModel):
    pages: List[WikiPage] = Field(default_factory=list)
    total: int = 0
    hasMore: bool = False


class WikiPageCreate(WireModel):
    title: str
    content: str
    tags: List[str] = Field(default_factory=list)


class WikiPageUpdate(WireModel):
    title: Optional[str] = None
    content: Optional[str] = None
    tags: Optional[List[str]] = None


class CreatePageResult(WireModel):
    id: str
    status: PageStatus = PageStatus.DRAFT

    @property
    def published(self) -> bool:
        return self.status == PageStatus.PUBLISHED


class EditHistory(WireModel):
    id: str
    pageId: str
    editorId: str = ""
    editor: Optional[PublicUser] = None
    titleBefore: Optional[str] = None
    titleAfter: Optional[str] = None
    contentBefore: Optional[str] = None
    contentAfter: Optional[str] = None
    editedAt: Optional[str] = None


class Comment(WireModel):
    id: str
    pageId: str
    authorId: str = ""
    author: Optional[PublicUser] = None
    content: str
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


class CommentCreate(WireModel):
    pageId: str
    content: str


class SearchResult(WireModel):
    pages: Optional[List[WikiPage]] = None
    users: Optional[List[PublicUser]] = None


class Tag(WireModel):
    tag: str
    count: int = 0


class UploadResponse(WireModel):
    message: str = ""
    url: str
    fileName: str
    size: int = 0


class UploadHistory(WireModel):
    id: str
    fileName: str
    originalName: str = ""
    fileSize: int = 0
    mimeType: str = ""
    url: str = ""
    uploadedAt: Optional[str] = None


class TopPage(WireModel):
    id: str
    title: str
    viewCount: int = 0


class AdminStats(WireModel):
    totalUsers: int = 0
    totalPages: int = 0
    totalComments: int = 0
    totalViews: int = 0
    newUsersThisMonth: int = 0
    newPagesThisMonth: int = 0
    viewsThisWeek: int = 0
    commentsThisWeek: int = 0
    topPages: List[TopPage] = Field(default_factory=list)


class AdminLog(WireModel):
    id: str
    adminId: str = ""
    adminNickname: str = ""
    action: str
    targetType: str = ""
    targetId: str = ""
    oldValue: Optional[str] = None
    newValue: Optional[str] = None
    createdAt: Optional[str] = None


class AdminUserList(WireModel):
    users: List[User] = Field(default_factory=list)
    total: int = 0
    hasMore: bool = False


SearchType = Literal["all", "pages", "users"]
