"""
Draft store: locally persisted, unsaved page edits.

One record per draft key. A new page is drafted under "auto"; an edit of page <id>
under "page:<id>", so the two can never collide.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from koala_wiki.storage.local import LocalStorage
from koala_wiki.validation import validate_tags

logger = logging.getLogger("koala_wiki.drafts")

STORAGE_KEY = "editor-storage"
NEW_PAGE_DRAFT_KEY = "auto"


def draft_key(page_id: Optional[str] = None) -> str:
    if not page_id:
        return NEW_PAGE_DRAFT_KEY
    return f"page:{page_id}"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class DraftFields:
    title: str = ""
    content: str = ""
    tags: List[str] = field(default_factory=list)

    def is_blank(self) -> bool:
        return not self.title.strip() and not self.content.strip()


@dataclass
class Draft:
    title: str
    content: str
    tags: List[str]
    updatedAt: str

    def fields(self) -> DraftFields:
        return DraftFields(title=self.title, content=self.content, tags=list(self.tags))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Draft":
        tags = data.get("tags") or []
        return cls(
            title=str(data.get("title", "") or ""),
            content=str(data.get("content", "") or ""),
            tags=[str(t) for t in tags] if isinstance(tags, list) else [],
            updatedAt=str(data.get("updatedAt", "") or ""),
        )


class DraftStore:
    def __init__(self, storage: LocalStorage, *, clock: Callable[[], str] = utc_now_iso):
        self._storage = storage
        self._clock = clock
        self.drafts: Dict[str, Draft] = {}
        self.current_key: Optional[str] = None
        self.current_draft: Optional[DraftFields] = None

    async def restore(self) -> None:
        blob = await self._storage.load(STORAGE_KEY)
        saved = (blob or {}).get("state") if isinstance(blob, dict) else None
        drafts = saved.get("drafts") if isinstance(saved, dict) else None
        self.drafts = {}
        if isinstance(drafts, dict):
            for key, rec in drafts.items():
                if isinstance(rec, dict):
                    self.drafts[str(key)] = Draft.from_dict(rec)
        logger.debug("restored %d drafts", len(self.drafts))

    async def save_draft(self, key: str, title: str, content: str, tags: List[str]) -> Draft:
        """
        Upsert the draft for `key` with a fresh timestamp.
        """
        if not key:
            raise ValueError("Missing draft key")
        validate_tags(tags)
        draft = Draft(title=title, content=content, tags=list(tags), updatedAt=self._clock())
        self.drafts[key] = draft
        await self._persist()
        return draft

    def get_draft(self, key: str) -> Optional[Draft]:
        return self.drafts.get(key)

    def load_draft(self, key: str) -> Optional[Draft]:
        """
        Make `key` the current draft key; if a draft exists it becomes the current draft.
        """
        self.current_key = key
        draft = self.drafts.get(key)
        if draft is not None:
            self.current_draft = draft.fields()
        return draft

    def set_current_draft(self, fields: DraftFields) -> None:
        self.current_draft = fields

    async def delete_draft(self, key: str) -> bool:
        if key not in self.drafts:
            return False
        del self.drafts[key]
        if key == self.current_key:
            self.current_draft = None
        await self._persist()
        return True

    async def clear_current_draft(self) -> None:
        """
        Drop the current draft, in memory and on disk, after a successful save.
        """
        self.current_draft = None
        if self.current_key is not None and self.current_key in self.drafts:
            del self.drafts[self.current_key]
            await self._persist()

    def list_drafts(self) -> List[tuple[str, Draft]]:
        return sorted(self.drafts.items(), key=lambda kv: kv[1].updatedAt, reverse=True)

    async def _persist(self) -> None:
        blob = {
            "state": {"drafts": {k: d.to_dict() for k, d in self.drafts.items()}},
            "version": 0,
        }
        await self._storage.save(STORAGE_KEY, blob)
