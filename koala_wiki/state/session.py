"""
Session store: who is the current user, and do we know yet.

The store starts in the LOADING phase. `restore()` reads the persisted session blob
and moves to AUTHENTICATED or ANONYMOUS; from then on the phase never returns to
LOADING. Consumers must treat LOADING as "unknown", never as "logged out", and await
`wait_initialized()` before making any auth-gated decision.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError as ModelValidationError

from koala_wiki.models import Role, User
from koala_wiki.storage.local import LocalStorage

logger = logging.getLogger("koala_wiki.session")

STORAGE_KEY = "auth-storage"


class SessionPhase(str, Enum):
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


@dataclass(frozen=True)
class SessionState:
    phase: SessionPhase = SessionPhase.LOADING
    token: Optional[str] = None
    user: Optional[User] = None

    @property
    def is_initialized(self) -> bool:
        return self.phase != SessionPhase.LOADING

    @property
    def is_authenticated(self) -> bool:
        return self.phase == SessionPhase.AUTHENTICATED

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user else None

    @property
    def role(self) -> Optional[Role]:
        return self.user.role if self.user else None

    def has_role(self, minimum: Role | str) -> bool:
        return self.is_authenticated and self.user is not None and self.user.role.at_least(minimum)


Listener = Callable[[SessionState], None]


class SessionStore:
    def __init__(self, storage: LocalStorage):
        self._storage = storage
        self._state = SessionState()
        self._ready = asyncio.Event()
        self._listeners: List[Listener] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def token(self) -> Optional[str]:
        return self._state.token

    @property
    def user(self) -> Optional[User]:
        return self._state.user

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _set(self, state: SessionState) -> None:
        if self._state.is_initialized and not state.is_initialized:
            raise RuntimeError("Session cannot return to the loading phase")
        if state == self._state:
            return
        self._state = state
        if state.is_initialized:
            self._ready.set()
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("session listener failed")

    async def restore(self) -> SessionState:
        """
        Restore token/user from persisted storage. Completes initialisation whatever
        the outcome; calling it again after that is a no-op.
        """
        if self._state.is_initialized:
            return self._state

        blob = await self._storage.load(STORAGE_KEY)
        restored = SessionState(phase=SessionPhase.ANONYMOUS)
        saved = (blob or {}).get("state") if isinstance(blob, dict) else None
        if isinstance(saved, dict) and saved.get("token") and isinstance(saved.get("user"), dict):
            try:
                user = User.model_validate(saved["user"])
            except ModelValidationError as e:
                logger.warning("discarding unreadable persisted session: %s", e)
            else:
                if user.id:
                    restored = SessionState(
                        phase=SessionPhase.AUTHENTICATED,
                        token=str(saved["token"]),
                        user=user,
                    )

        # login()/logout() may have completed while the file was being read.
        if not self._state.is_initialized:
            self._set(restored)
            logger.info("session restored: %s", restored.phase.value)
        return self._state

    async def wait_initialized(self) -> SessionState:
        await self._ready.wait()
        return self._state

    async def login(self, token: str, user: User) -> SessionState:
        if not token or not user.id:
            raise ValueError("login requires a token and a user id")
        self._set(SessionState(phase=SessionPhase.AUTHENTICATED, token=token, user=user))
        await self._persist()
        logger.info("logged in as %s (%s)", user.nickname, user.role.value)
        return self._state

    async def logout(self) -> SessionState:
        was_authenticated = self._state.is_authenticated
        self._set(SessionState(phase=SessionPhase.ANONYMOUS))
        await self._storage.clear(STORAGE_KEY)
        if was_authenticated:
            logger.info("logged out")
        return self._state

    async def update_user(self, **changes: Any) -> Optional[User]:
        """
        Merge profile fields into the current user. No-op when nobody is logged in.
        """
        current = self._state.user
        if current is None or not self._state.is_authenticated:
            return None
        merged = current.model_copy(update={k: v for k, v in changes.items() if k in User.model_fields})
        merged = User.model_validate(merged.model_dump())
        self._set(replace(self._state, user=merged))
        await self._persist()
        return merged

    async def _persist(self) -> None:
        if not self._state.is_authenticated or self._state.user is None:
            return
        blob: Dict[str, Any] = {
            "state": {
                "token": self._state.token,
                "user": self._state.user.model_dump(mode="json", exclude_none=True),
            },
            "version": 0,
        }
        await self._storage.save(STORAGE_KEY, blob)
