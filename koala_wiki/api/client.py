from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

import httpx

from koala_wiki import config
from .errors import NetworkError, ServerError, error_from_response

logger = logging.getLogger("koala_wiki.api")

TokenProvider = Callable[[], Optional[str]]


class WikiApiClient:
    """
    Thin async JSON client for the wiki API.

    - attaches `Authorization: Bearer <token>` when the session holds a token
    - drops None-valued query params
    - raises the tagged ApiError subclasses for transport failures, >= 400, and
      2xx bodies that are not JSON
    """

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        token_provider: Optional[TokenProvider] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or config.api_base_url()).rstrip("/")
        self.timeout_s = float(timeout_s if timeout_s is not None else config.request_timeout_s())
        self._token_provider = token_provider
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_s,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "WikiApiClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    def set_token_provider(self, provider: Optional[TokenProvider]) -> None:
        self._token_provider = provider

    def _headers(self, token: Optional[str]) -> Dict[str, str]:
        if token is None and self._token_provider is not None:
            token = self._token_provider()
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        files: Any = None,
        token: Optional[str] = None,
    ) -> Any:
        clean = {k: v for k, v in (params or {}).items() if v is not None and v != ""}
        try:
            resp = await self._client.request(
                method,
                path,
                params=clean or None,
                json=json,
                files=files,
                headers=self._headers(token),
            )
        except httpx.TimeoutException as e:
            logger.warning("%s %s timed out after %.1fs", method, path, self.timeout_s)
            raise NetworkError(f"Request timed out: {method} {path}") from e
        except httpx.TransportError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise NetworkError(f"Network error: {e}") from e

        if resp.status_code >= 400:
            err = error_from_response(resp)
            logger.info("%s %s -> %s (%s)", method, path, resp.status_code, err.kind)
            raise err

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            logger.warning("%s %s -> %s with a non-JSON body", method, path, resp.status_code)
            raise ServerError("Unexpected response from server", status=resp.status_code) from e

    async def get(self, path: str, **kw: Any) -> Any:
        return await self.request("GET", path, **kw)

    async def post(self, path: str, **kw: Any) -> Any:
        return await self.request("POST", path, **kw)

    async def put(self, path: str, **kw: Any) -> Any:
        return await self.request("PUT", path, **kw)

    async def delete(self, path: str, **kw: Any) -> Any:
        return await self.request("DELETE", path, **kw)
