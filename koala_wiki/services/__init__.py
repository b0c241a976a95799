from .admin import AdminService
from .auth import AuthService
from .base import ServiceContext
from .comments import CommentService
from .pages import PageService
from .search import SearchService
from .uploads import UploadService
from .users import UserService

__all__ = [
    "AdminService",
    "AuthService",
    "ServiceContext",
    "CommentService",
    "PageService",
    "SearchService",
    "UploadService",
    "UserService",
]
