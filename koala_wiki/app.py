from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

import httpx

from koala_wiki.api.client import WikiApiClient
from koala_wiki.api.resources import WikiApi
from koala_wiki.cache.mutations import MutationRunner
from koala_wiki.cache.query_cache import QueryCache
from koala_wiki.editor.session import EditorSession
from koala_wiki.navigation import Navigator
from koala_wiki.services import (
    AdminService,
    AuthService,
    CommentService,
    PageService,
    SearchService,
    ServiceContext,
    UploadService,
    UserService,
)
from koala_wiki.state.drafts import DraftStore
from koala_wiki.state.search import SearchStore
from koala_wiki.state.session import SessionStore
from koala_wiki.state.ui import UIStore
from koala_wiki.storage.local import LocalStorage

logger = logging.getLogger("koala_wiki.app")


class WikiApp:
    """
    One client instance: persisted stores, the API client, the read cache and the
    services built on them. Nothing is shared between instances.
    """

    def __init__(
        self,
        *,
        data_dir: Optional[Path | str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache: Optional[QueryCache] = None,
    ):
        self.storage = LocalStorage(data_dir)
        self.session = SessionStore(self.storage)
        self.drafts = DraftStore(self.storage)
        self.ui = UIStore(storage=self.storage)
        self.search_store = SearchStore(self.storage)
        self.navigator = Navigator()

        client = WikiApiClient(base_url=base_url, token_provider=lambda: self.session.token, transport=transport)
        self.api = WikiApi(client)
        self.cache = cache or QueryCache()
        self.mutations = MutationRunner(self.cache, self.ui)

        ctx = ServiceContext(
            api=self.api,
            cache=self.cache,
            mutations=self.mutations,
            session=self.session,
            ui=self.ui,
            navigator=self.navigator,
            search=self.search_store,
        )
        self.auth = AuthService(ctx)
        self.pages = PageService(ctx)
        self.comments = CommentService(ctx)
        self.users = UserService(ctx)
        self.search = SearchService(ctx)
        self.admin = AdminService(ctx)
        self.uploads = UploadService(ctx)

    async def startup(self) -> None:
        await asyncio.gather(
            self.session.restore(),
            self.drafts.restore(),
            self.ui.restore(),
            self.search_store.restore(),
        )
        logger.debug("startup complete (session=%s)", self.session.state.phase.value)

    def editor(
        self,
        page_id: Optional[str] = None,
        *,
        debounce_s: Optional[float] = None,
        max_interval_s: Optional[float] = None,
    ) -> EditorSession:
        return EditorSession(
            session=self.session,
            drafts=self.drafts,
            pages=self.pages,
            ui=self.ui,
            navigator=self.navigator,
            page_id=page_id,
            debounce_s=debounce_s,
            max_interval_s=max_interval_s,
        )

    async def close(self) -> None:
        self.ui.clear_toasts()
        await self.api.close()

    async def __aenter__(self) -> "WikiApp":
        await self.startup()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()
