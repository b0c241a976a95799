from __future__ import annotations

import httpx
import pytest

from koala_wiki.api.client import WikiApiClient
from koala_wiki.api.errors import (
    AuthorizationError,
    NetworkError,
    NotFoundError,
    ServerError,
    ValidationError,
)
from koala_wiki.api.resources import WikiApi
from koala_wiki.app import WikiApp
from koala_wiki.cache.query_cache import QueryCache
from koala_wiki.models import PageStatus, User, WikiPageCreate

from helpers import BASE_URL


def _client(handler, token=None) -> WikiApiClient:
    return WikiApiClient(
        base_url=BASE_URL,
        transport=httpx.MockTransport(handler),
        token_provider=(lambda: token) if token else None,
    )


@pytest.mark.parametrize(
    "status,body,expected",
    [
        (400, {"error": "bad"}, ValidationError),
        (422, {"error": "bad"}, ValidationError),
        (409, {"error": "taken", "code": "VALIDATION_ERROR"}, ValidationError),
        (401, {"error": "login"}, AuthorizationError),
        (403, {"error": "nope"}, AuthorizationError),
        (404, {"error": "missing"}, NotFoundError),
        (409, {"error": "exists", "code": "USER_EXISTS"}, ServerError),
        (500, {"error": "boom"}, ServerError),
    ],
)
async def test_error_mapping(status, body, expected):
    client = _client(lambda request: httpx.Response(status, json=body))
    with pytest.raises(expected) as exc:
        await client.get("/api/anything")
    assert exc.value.status == status
    assert exc.value.message == body["error"]
    await client.close()


async def test_validation_details_become_field_errors():
    body = {
        "error": "Validation failed",
        "code": "VALIDATION_ERROR",
        "details": {"errors": [{"field": "email", "message": "Invalid email"}]},
    }
    client = _client(lambda request: httpx.Response(400, json=body))
    with pytest.raises(ValidationError) as exc:
        await client.post("/api/auth/register", json={})
    assert exc.value.code == "VALIDATION_ERROR"
    assert exc.value.messages() == ["email: Invalid email"]
    await client.close()


async def test_non_json_error_body():
    client = _client(lambda request: httpx.Response(502, text="Bad gateway"))
    with pytest.raises(ServerError) as exc:
        await client.get("/api/wiki")
    assert exc.value.retryable
    assert "502" in exc.value.message
    await client.close()


async def test_transport_failure_is_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)
    with pytest.raises(NetworkError) as exc:
        await client.get("/api/wiki")
    assert exc.value.retryable
    await client.close()


async def test_bearer_token_and_param_cleanup():
    seen = {}

    def handler(request: httpx.Request):
        seen["auth"] = request.headers.get("authorization")
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"pages": [], "total": 0, "hasMore": False})

    client = _client(handler, token="tok-1")
    api = WikiApi(client)
    await api.wiki.get_pages(status="published", tag=None, search="", limit=5)
    assert seen["auth"] == "Bearer tok-1"
    assert seen["params"] == {"status": "published", "limit": "5"}
    await api.close()


async def test_no_authorization_header_without_token():
    seen = {}

    def handler(request: httpx.Request):
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(204)

    client = _client(handler)
    assert await client.delete("/api/wiki/p1") is None
    assert seen["auth"] is None
    await client.close()


async def test_resources_against_fake_server(fake):
    client = WikiApiClient(
        base_url=BASE_URL,
        transport=httpx.ASGITransport(app=fake.app),
        token_provider=lambda: fake.token_for("u-editor"),
    )
    api = WikiApi(client)

    page = await api.wiki.get_page("p1")
    assert page.title == "Koalas"
    assert page.author is not None and page.author.nickname == "alice"

    created = await api.wiki.create_page(WikiPageCreate(title="New", content="Body", tags=["t"]))
    assert created.status == PageStatus.PUBLISHED

    popular = await api.wiki.get_popular_pages(limit=1)
    assert [p.id for p in popular] == ["p1"]

    tags = await api.search.get_tags()
    assert tags[0].tag == "animals"

    me = await api.users.get_me()
    assert me.id == "u-editor"
    await api.close()


async def test_image_upload_is_multipart(fake, tmp_path):
    img = tmp_path / "koala.png"
    img.write_bytes(b"\x89PNG" + b"1" * 64)
    client = WikiApiClient(
        base_url=BASE_URL,
        transport=httpx.ASGITransport(app=fake.app),
        token_provider=lambda: fake.token_for("u-alice"),
    )
    api = WikiApi(client)

    uploaded = await api.uploads.upload_image(img)
    assert uploaded.size == 68
    stored = fake.uploads[uploaded.fileName]
    assert stored["originalName"] == "koala.png"
    assert stored["mimeType"] == "image/png"

    history = await api.uploads.get_upload_history()
    assert [u.fileName for u in history] == [uploaded.fileName]
    await api.close()


def _portal_page(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, text="<html>portal</html>", headers={"content-type": "text/html"})


@pytest.mark.parametrize("body", [{}, {"page": None}, {"page": {"title": "no id"}}, []])
async def test_wrong_shaped_body_is_server_error(body):
    client = _client(lambda request: httpx.Response(200, json=body))
    api = WikiApi(client)
    with pytest.raises(ServerError) as exc:
        await api.wiki.get_page("p1")
    assert exc.value.message == "Unexpected response from server"
    await api.close()


async def test_html_body_is_server_error_with_status():
    client = _client(_portal_page)
    with pytest.raises(ServerError) as exc:
        await client.get("/api/wiki/p1")
    assert exc.value.status == 200
    assert not exc.value.retryable
    await client.close()


async def test_html_body_becomes_error_result_for_reads_and_writes(tmp_path):
    app = WikiApp(
        data_dir=tmp_path,
        base_url=BASE_URL,
        transport=httpx.MockTransport(_portal_page),
        cache=QueryCache(retry_delay_s=0),
    )
    await app.startup()
    user = User.model_validate({"id": "u1", "nickname": "alice", "email": "a@example.com", "role": "editor"})
    await app.session.login("tok-u1", user)

    page = await app.pages.get_page("p1")
    assert page.status == "error"
    assert page.error.kind == "server"

    async with app.editor() as editor:
        editor.set_title("New page")
        editor.set_content("Body")
        created = await editor.submit()

    assert not created.ok
    assert created.error.kind == "server"
    assert app.ui.toasts[-1].type == "error"
    assert app.navigator.history == ["/"]
    await app.close()
