"""
Write path: run a mutation once (no retries), then invalidate or remove the cache
keys it touches. Failures become one error toast and a failed MutationResult.

Optimistic patches are applied to cached entries before the request goes out and
rolled back to their snapshots if the request fails.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Iterable, List, Mapping, Optional, TypeVar, Union

from koala_wiki.api.errors import ApiError, FieldError, ValidationError
from koala_wiki.state.ui import UIStore
from .query_cache import QueryCache, QueryKey, Snapshot

logger = logging.getLogger("koala_wiki.mutations")

T = TypeVar("T")

SuccessMessage = Union[None, str, Callable[[Any], Optional[str]]]
ErrorDescriber = Callable[[ApiError], Optional[str]]


@dataclass
class MutationResult(Generic[T]):
    ok: bool
    data: Optional[T] = None
    error: Optional[ApiError] = None

    @property
    def field_errors(self) -> List[FieldError]:
        if isinstance(self.error, ValidationError):
            return list(self.error.field_errors)
        return []


def describe(error: ApiError) -> str:
    if isinstance(error, ValidationError) and error.field_errors and not error.message:
        return "; ".join(e.message for e in error.field_errors)
    return error.message


class MutationRunner:
    def __init__(self, cache: QueryCache, ui: Optional[UIStore] = None):
        self.cache = cache
        self.ui = ui

    async def run(
        self,
        fn: Callable[[], Awaitable[T]],
        *,
        name: str = "mutation",
        validate: Optional[Callable[[], None]] = None,
        invalidates: Iterable[QueryKey] = (),
        removes: Iterable[QueryKey] = (),
        optimistic: Optional[Mapping[QueryKey, Callable[[Any], Any]]] = None,
        success: SuccessMessage = None,
        error_title: str = "Something went wrong",
        describe_error: Optional[ErrorDescriber] = None,
        loading_key: Optional[str] = None,
    ) -> MutationResult[T]:
        try:
            if validate is not None:
                validate()
        except ValidationError as e:
            # nothing was sent
            self._notify_error(error_title, e, describe_error)
            return MutationResult(ok=False, error=e)

        snapshots: List[Snapshot] = []
        for key, patch in (optimistic or {}).items():
            snap = self.cache.snapshot(key)
            if snap is None or not snap.has_data:
                continue
            snapshots.append(snap)
            self.cache.set_data(key, patch(snap.data))

        if loading_key and self.ui is not None:
            self.ui.set_loading(loading_key, True)
        try:
            data = await fn()
        except ApiError as e:
            for snap in reversed(snapshots):
                self.cache.restore(snap)
            if snapshots:
                logger.info("%s failed, rolled back %d cached entries", name, len(snapshots))
            else:
                logger.info("%s failed: %s (%s)", name, e.message, e.kind)
            self._notify_error(error_title, e, describe_error)
            return MutationResult(ok=False, error=e)
        finally:
            if loading_key and self.ui is not None:
                self.ui.set_loading(loading_key, False)

        for key in removes:
            self.cache.remove(key)
        for key in invalidates:
            self.cache.invalidate(key)

        message = success(data) if callable(success) else success
        if message and self.ui is not None:
            self.ui.add_toast("success", message)
        return MutationResult(ok=True, data=data)

    def _notify_error(self, title: str, error: ApiError, describe_error: Optional[ErrorDescriber]) -> None:
        if self.ui is None:
            return
        description = describe_error(error) if describe_error is not None else None
        self.ui.add_toast("error", title, description or describe(error))
