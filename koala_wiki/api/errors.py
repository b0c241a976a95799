from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}" if self.field else self.message


class ApiError(RuntimeError):
    """
    Base of the tagged error taxonomy. `kind` is one of:
    network, authorization, validation, not_found, server.
    """

    kind = "server"

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.details = details or {}

    @property
    def retryable(self) -> bool:
        return False


class NetworkError(ApiError):
    kind = "network"

    @property
    def retryable(self) -> bool:
        return True


class AuthorizationError(ApiError):
    kind = "authorization"


class ValidationError(ApiError):
    kind = "validation"

    def __init__(self, message: str, *, field_errors: Optional[List[FieldError]] = None, **kw: Any):
        super().__init__(message, **kw)
        self.field_errors: List[FieldError] = list(field_errors or [])

    def messages(self) -> List[str]:
        return [str(e) for e in self.field_errors]


class NotFoundError(ApiError):
    kind = "not_found"


class ServerError(ApiError):
    kind = "server"

    @property
    def retryable(self) -> bool:
        return self.status is None or self.status >= 500


def _field_errors(details: Dict[str, Any]) -> List[FieldError]:
    out: List[FieldError] = []
    errors = details.get("errors") if isinstance(details, dict) else None
    if not isinstance(errors, list):
        return out
    for e in errors:
        if isinstance(e, dict):
            out.append(FieldError(field=str(e.get("field", "") or ""), message=str(e.get("message", "") or "")))
    return out


def error_from_response(resp: httpx.Response) -> ApiError:
    """
    Map an HTTP error response onto the taxonomy. The server sends
    {"error": str, "code": str, "details": {"errors": [{field, message}]}}.
    """
    try:
        body = resp.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        body = {}

    status = resp.status_code
    code = body.get("code")
    code = str(code) if code else None
    details = body.get("details") if isinstance(body.get("details"), dict) else {}
    message = str(body.get("error") or body.get("message") or f"HTTP {status}: {resp.text[:300]}")

    kw: Dict[str, Any] = {"status": status, "code": code, "details": details}
    if code == "VALIDATION_ERROR" or status in (400, 422):
        return ValidationError(message, field_errors=_field_errors(details), **kw)
    if status in (401, 403):
        return AuthorizationError(message, **kw)
    if status == 404:
        return NotFoundError(message, **kw)
    return ServerError(message, **kw)
