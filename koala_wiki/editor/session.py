"""
Editor controller for creating a page or editing an existing one.

The baseline is what the server has (an empty document for a new page). A stored
draft for the same key wins over the baseline until the user saves or discards.
Edits are written to the draft store by the autosave trigger while the session is
mounted; unmounting stops the trigger on every exit path.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, List, Optional

from koala_wiki.cache.mutations import MutationResult
from koala_wiki.guards import can_edit
from koala_wiki.navigation import Navigator
from koala_wiki.services.pages import PageService
from koala_wiki.state.drafts import Draft, DraftFields, DraftStore, draft_key
from koala_wiki.state.session import SessionStore
from koala_wiki.state.ui import UIStore
from koala_wiki.validation import TagRejected, add_tag
from .autosave import AutosaveScheduler

logger = logging.getLogger("koala_wiki.editor")


class EditorSession:
    def __init__(
        self,
        *,
        session: SessionStore,
        drafts: DraftStore,
        pages: PageService,
        ui: UIStore,
        navigator: Navigator,
        page_id: Optional[str] = None,
        debounce_s: Optional[float] = None,
        max_interval_s: Optional[float] = None,
    ):
        self.session = session
        self.drafts = drafts
        self.pages = pages
        self.ui = ui
        self.navigator = navigator
        self.page_id = page_id or None
        self.key = draft_key(self.page_id)
        self.baseline = DraftFields()
        self.fields = DraftFields()
        self.mounted = False
        self.restored_draft = False
        self.autosave = AutosaveScheduler(self.persist_draft, debounce_s=debounce_s, max_interval_s=max_interval_s)

    @property
    def is_new(self) -> bool:
        return self.page_id is None

    @property
    def title(self) -> str:
        return self.fields.title

    @property
    def content(self) -> str:
        return self.fields.content

    @property
    def tags(self) -> List[str]:
        return list(self.fields.tags)

    @property
    def is_dirty(self) -> bool:
        return self.fields != self.baseline

    async def mount(self) -> bool:
        """
        Load the document and any stored draft, then start autosave. Returns False
        when the user was sent elsewhere (not logged in, no permission, missing page).
        """
        state = await self.session.wait_initialized()
        if not state.is_authenticated:
            self.navigator.push("/login")
            return False

        if self.page_id is not None:
            result = await self.pages.get_page(self.page_id)
            if result.not_found:
                self.ui.add_toast("error", "Page not found")
                self.navigator.push("/")
                return False
            if not result.ok or result.data is None:
                message = result.error.message if result.error else None
                self.ui.add_toast("error", "Could not load the page", message)
                return False
            page = result.data
            if not can_edit(state, page):
                self.ui.add_toast("error", "You do not have permission to edit this page")
                self.navigator.push(f"/wiki/{self.page_id}")
                return False
            self.baseline = DraftFields(title=page.title, content=page.content, tags=list(page.tags))
        else:
            self.baseline = DraftFields()

        draft = self.drafts.load_draft(self.key)
        if draft is not None:
            self.fields = draft.fields()
            self.restored_draft = True
            self.ui.add_toast("info", "Restored your unsaved draft")
            logger.info("restored draft %s (updated %s)", self.key, draft.updatedAt)
        else:
            self.fields = replace(self.baseline, tags=list(self.baseline.tags))

        self.autosave.start()
        self.mounted = True
        return True

    async def unmount(self) -> None:
        await self.autosave.stop(flush=self.mounted)
        self.mounted = False

    async def __aenter__(self) -> "EditorSession":
        await self.mount()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.unmount()

    def _changed(self) -> None:
        self.drafts.set_current_draft(replace(self.fields, tags=list(self.fields.tags)))
        if self.mounted:
            self.autosave.notify()

    def set_title(self, title: str) -> None:
        self.fields = replace(self.fields, title=title)
        self._changed()

    def set_content(self, content: str) -> None:
        self.fields = replace(self.fields, content=content)
        self._changed()

    def add_tag(self, tag: str) -> bool:
        try:
            tags = add_tag(self.fields.tags, tag)
        except TagRejected as e:
            self.ui.add_toast("warning", "Tag not added", e.message)
            return False
        self.fields = replace(self.fields, tags=tags)
        self._changed()
        return True

    def remove_tag(self, tag: str) -> None:
        if tag not in self.fields.tags:
            return
        self.fields = replace(self.fields, tags=[t for t in self.fields.tags if t != tag])
        self._changed()

    async def persist_draft(self) -> Optional[Draft]:
        """
        Autosave target: store the fields when they differ from the baseline. Back at
        the baseline, or blank, the stored draft is dropped so it cannot come back on
        the next mount.
        """
        if not self.is_dirty or self.fields.is_blank():
            if self.drafts.get_draft(self.key) is not None:
                await self.drafts.delete_draft(self.key)
                self.drafts.set_current_draft(replace(self.fields, tags=list(self.fields.tags)))
                logger.debug("dropped draft %s, no unsaved changes left", self.key)
            return None
        return await self.drafts.save_draft(self.key, self.fields.title, self.fields.content, self.fields.tags)

    async def save_now(self) -> Optional[Draft]:
        self.autosave.cancel_pending()
        draft = await self.persist_draft()
        if draft is not None:
            self.ui.add_toast("success", "Draft saved")
        return draft

    async def submit(self) -> MutationResult:
        if self.page_id is None:
            result = await self.pages.create(self.fields.title, self.fields.content, self.fields.tags)
        else:
            result = await self.pages.update(
                self.page_id,
                title=self.fields.title,
                content=self.fields.content,
                tags=self.fields.tags,
            )
        if not result.ok:
            return result

        self.autosave.cancel_pending()
        self.baseline = replace(self.fields, tags=list(self.fields.tags))
        await self.drafts.delete_draft(self.key)
        await self.drafts.clear_current_draft()

        if self.page_id is None:
            created = result.data
            if created is not None and created.published:
                self.navigator.push(f"/wiki/{created.id}")
            else:
                self.navigator.push("/")
        else:
            self.navigator.push(f"/wiki/{self.page_id}")
        return result

    async def discard(self) -> None:
        self.autosave.cancel_pending()
        await self.drafts.delete_draft(self.key)
        self.fields = replace(self.baseline, tags=list(self.baseline.tags))
        self.drafts.set_current_draft(replace(self.fields, tags=list(self.fields.tags)))
        self.ui.add_toast("info", "Draft discarded")
