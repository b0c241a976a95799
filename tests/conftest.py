from __future__ import annotations

import pytest

from fake_wiki import FakeWiki
from helpers import make_app


@pytest.fixture
def fake() -> FakeWiki:
    return FakeWiki()


@pytest.fixture
async def wiki(fake, tmp_path):
    app = make_app(fake, tmp_path)
    await app.startup()
    yield app
    await app.close()
