from __future__ import annotations

from typing import List

import httpx

from koala_wiki.app import WikiApp
from koala_wiki.cache.query_cache import QueryCache
from koala_wiki.models import User

from fake_wiki import FakeWiki

BASE_URL = "http://wiki.test"


def make_app(fake: FakeWiki, data_dir) -> WikiApp:
    return WikiApp(
        data_dir=data_dir,
        base_url=BASE_URL,
        transport=httpx.ASGITransport(app=fake.app),
        cache=QueryCache(retry_delay_s=0),
    )


async def login_as(app: WikiApp, fake: FakeWiki, user_id: str) -> User:
    user = User.model_validate(fake.user_record(user_id))
    await app.session.login(fake.token_for(user_id), user)
    return user


def toast_texts(app: WikiApp) -> List[str]:
    return [f"{t.title} {t.description or ''}".strip() for t in app.ui.toasts]
