from .client import WikiApiClient
from .errors import (
    ApiError,
    AuthorizationError,
    FieldError,
    NetworkError,
    NotFoundError,
    ServerError,
    ValidationError,
)
from .resources import WikiApi

__all__ = [
    "WikiApiClient",
    "WikiApi",
    "ApiError",
    "AuthorizationError",
    "FieldError",
    "NetworkError",
    "NotFoundError",
    "ServerError",
    "ValidationError",
]
