"""
Debounced autosave trigger.

notify() records an edit. A save runs `debounce_s` after the last edit, or
`max_interval_s` after the first unsaved edit, whichever comes first, so
continuous typing still reaches disk at a bounded interval. stop() lets a save
that is already running finish, then flushes edits made since.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from koala_wiki import config

logger = logging.getLogger("koala_wiki.autosave")

SaveFn = Callable[[], Awaitable[Any]]


class AutosaveScheduler:
    def __init__(
        self,
        save: SaveFn,
        *,
        debounce_s: Optional[float] = None,
        max_interval_s: Optional[float] = None,
    ):
        self._save = save
        self.debounce_s = float(debounce_s if debounce_s is not None else config.autosave_debounce_s())
        self.max_interval_s = float(max_interval_s if max_interval_s is not None else config.autosave_max_interval_s())
        if self.max_interval_s < self.debounce_s:
            self.max_interval_s = self.debounce_s
        self._first_change: Optional[float] = None
        self._last_change: Optional[float] = None
        self._wake = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._saving: Optional[asyncio.Future] = None
        self.save_count = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def pending(self) -> bool:
        return self._last_change is not None

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    def notify(self) -> None:
        now = asyncio.get_running_loop().time()
        if self._first_change is None:
            self._first_change = now
        self._last_change = now
        self._wake.set()

    def cancel_pending(self) -> None:
        self._first_change = None
        self._last_change = None

    async def flush(self) -> None:
        if self.pending:
            await self._save_pending()

    async def stop(self, *, flush: bool = True) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        # a save already under way runs to completion
        saving, self._saving = self._saving, None
        if saving is not None and not saving.done():
            await saving
        if flush:
            await self.flush()
        else:
            self.cancel_pending()

    async def __aenter__(self) -> "AutosaveScheduler":
        self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    def _deadline(self) -> Optional[float]:
        if self._first_change is None or self._last_change is None:
            return None
        return min(self._last_change + self.debounce_s, self._first_change + self.max_interval_s)

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            deadline = self._deadline()
            self._wake.clear()
            if deadline is None:
                await self._wake.wait()
                continue
            delay = deadline - loop.time()
            if delay > 0:
                try:
                    await asyncio.wait_for(self._wake.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
                continue
            self._saving = asyncio.ensure_future(self._save_pending())
            await asyncio.shield(self._saving)

    async def _save_pending(self) -> None:
        self.cancel_pending()
        try:
            await self._save()
        except Exception as e:
            logger.error("autosave failed: %s", e)
        else:
            self.save_count += 1
