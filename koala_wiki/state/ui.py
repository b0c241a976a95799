from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Optional

from koala_wiki import config
from koala_wiki.storage.local import LocalStorage

logger = logging.getLogger("koala_wiki.ui")

STORAGE_KEY = "ui-storage"

ToastType = Literal["success", "error", "warning", "info"]
ModalType = Literal["confirm", "form", "info"]
Theme = Literal["light", "dark"]


def _new_id() -> str:
    return uuid.uuid4().hex[:9]


@dataclass
class Toast:
    id: str
    type: ToastType
    title: str
    description: Optional[str] = None
    duration_s: float = 5.0


@dataclass
class Modal:
    id: str
    type: ModalType
    title: str
    content: Any = None
    on_confirm: Optional[Callable[[], Any]] = None
    on_cancel: Optional[Callable[[], Any]] = None


@dataclass
class UIStore:
    """
    Transient UI state: notifications, modal dialogs, loading flags.
    Theme and sidebar state are persisted.
    """

    storage: Optional[LocalStorage] = None
    sidebar_open: bool = False
    theme: Theme = "light"
    show_navbar: bool = False
    toasts: List[Toast] = field(default_factory=list)
    modals: List[Modal] = field(default_factory=list)
    loading: Dict[str, bool] = field(default_factory=dict)
    on_toast: Optional[Callable[[Toast], None]] = None
    _timers: Dict[str, asyncio.TimerHandle] = field(default_factory=dict, repr=False)

    async def restore(self) -> None:
        if self.storage is None:
            return
        blob = await self.storage.load(STORAGE_KEY)
        saved = (blob or {}).get("state") if isinstance(blob, dict) else None
        if not isinstance(saved, dict):
            return
        if saved.get("theme") in ("light", "dark"):
            self.theme = saved["theme"]
        self.sidebar_open = bool(saved.get("sidebarOpen", self.sidebar_open))

    async def _persist(self) -> None:
        if self.storage is None:
            return
        blob = {"state": {"theme": self.theme, "sidebarOpen": self.sidebar_open}, "version": 0}
        await self.storage.save(STORAGE_KEY, blob)

    # Preferences

    async def set_theme(self, theme: Theme) -> None:
        if theme not in ("light", "dark"):
            raise ValueError(f"Unknown theme: {theme}")
        self.theme = theme
        await self._persist()

    async def set_sidebar_open(self, open_: bool) -> None:
        self.sidebar_open = bool(open_)
        await self._persist()

    async def toggle_sidebar(self) -> None:
        await self.set_sidebar_open(not self.sidebar_open)

    def set_show_navbar(self, show: bool) -> None:
        self.show_navbar = bool(show)

    # Notifications

    def add_toast(
        self,
        type: ToastType,
        title: str,
        description: Optional[str] = None,
        *,
        duration_s: Optional[float] = None,
    ) -> Toast:
        toast = Toast(
            id=_new_id(),
            type=type,
            title=title,
            description=description,
            duration_s=float(duration_s if duration_s is not None else config.toast_duration_s()),
        )
        self.toasts.append(toast)
        log = logger.warning if type == "error" else logger.debug
        log("toast[%s] %s%s", type, title, f": {description}" if description else "")
        if self.on_toast is not None:
            self.on_toast(toast)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None and toast.duration_s > 0:
            self._timers[toast.id] = loop.call_later(toast.duration_s, self.remove_toast, toast.id)
        return toast

    def remove_toast(self, toast_id: str) -> None:
        timer = self._timers.pop(toast_id, None)
        if timer is not None:
            timer.cancel()
        self.toasts = [t for t in self.toasts if t.id != toast_id]

    def clear_toasts(self) -> None:
        for toast in list(self.toasts):
            self.remove_toast(toast.id)

    # Modals

    def open_modal(
        self,
        type: ModalType,
        title: str,
        content: Any = None,
        *,
        on_confirm: Optional[Callable[[], Any]] = None,
        on_cancel: Optional[Callable[[], Any]] = None,
    ) -> Modal:
        modal = Modal(id=_new_id(), type=type, title=title, content=content, on_confirm=on_confirm, on_cancel=on_cancel)
        self.modals.append(modal)
        return modal

    def close_modal(self, modal_id: str) -> None:
        self.modals = [m for m in self.modals if m.id != modal_id]

    def close_all_modals(self) -> None:
        self.modals = []

    async def confirm(self, modal_id: str) -> Any:
        return await self._resolve(modal_id, confirmed=True)

    async def cancel(self, modal_id: str) -> Any:
        return await self._resolve(modal_id, confirmed=False)

    async def _resolve(self, modal_id: str, *, confirmed: bool) -> Any:
        modal = next((m for m in self.modals if m.id == modal_id), None)
        if modal is None:
            return None
        self.close_modal(modal_id)
        callback = modal.on_confirm if confirmed else modal.on_cancel
        if callback is None:
            return None
        result = callback()
        if asyncio.iscoroutine(result):
            result = await result
        return result

    # Loading flags

    def set_loading(self, key: str, loading: bool) -> None:
        self.loading = {**self.loading, key: bool(loading)}

    def is_loading(self, key: str) -> bool:
        return bool(self.loading.get(key))
