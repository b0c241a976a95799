from __future__ import annotations

import asyncio
import json

import pytest

from koala_wiki.models import Role, User
from koala_wiki.state.session import STORAGE_KEY, SessionPhase, SessionStore
from koala_wiki.storage.local import LocalStorage


def _user(**kw) -> User:
    data = {"id": "u1", "nickname": "alice", "email": "alice@example.com", "role": "contributor"}
    data.update(kw)
    return User.model_validate(data)


@pytest.fixture
def storage(tmp_path) -> LocalStorage:
    return LocalStorage(tmp_path)


async def test_restore_without_persisted_session_is_anonymous(storage):
    store = SessionStore(storage)
    assert store.state.phase == SessionPhase.LOADING
    assert not store.state.is_initialized

    state = await store.restore()
    assert state.phase == SessionPhase.ANONYMOUS
    assert state.is_initialized
    assert not state.is_authenticated


async def test_restore_reads_persisted_session(storage):
    first = SessionStore(storage)
    await first.restore()
    await first.login("tok-1", _user(role="editor"))

    second = SessionStore(storage)
    state = await second.restore()
    assert state.is_authenticated
    assert state.token == "tok-1"
    assert state.user is not None and state.user.nickname == "alice"
    assert state.role == Role.EDITOR


async def test_corrupt_blob_still_completes_initialisation(storage, tmp_path):
    (tmp_path / f"{STORAGE_KEY}.json").write_text("{not json", encoding="utf-8")
    store = SessionStore(storage)
    state = await store.restore()
    assert state.phase == SessionPhase.ANONYMOUS


async def test_blob_without_user_id_is_anonymous(storage, tmp_path):
    blob = {"state": {"token": "t", "user": {"id": "", "nickname": "x"}}, "version": 0}
    (tmp_path / f"{STORAGE_KEY}.json").write_text(json.dumps(blob), encoding="utf-8")
    state = await SessionStore(storage).restore()
    assert not state.is_authenticated


async def test_initialisation_flips_exactly_once(storage):
    store = SessionStore(storage)
    seen = []
    store.subscribe(lambda s: seen.append(s.is_initialized))

    await store.restore()
    await store.login("tok", _user())
    await store.logout()
    await store.restore()

    assert seen == [True, True, True]
    assert store.state.is_initialized


async def test_restore_after_login_does_not_override(storage):
    store = SessionStore(storage)
    await store.login("tok", _user())
    state = await store.restore()
    assert state.is_authenticated
    assert state.token == "tok"


async def test_wait_initialized_blocks_until_restore(storage):
    store = SessionStore(storage)
    waiter = asyncio.create_task(store.wait_initialized())
    await asyncio.sleep(0)
    assert not waiter.done()

    await store.restore()
    state = await asyncio.wait_for(waiter, timeout=1)
    assert state.phase == SessionPhase.ANONYMOUS


async def test_logout_twice_is_identical(storage):
    store = SessionStore(storage)
    await store.restore()
    await store.login("tok", _user())

    first = await store.logout()
    second = await store.logout()
    assert first == second
    assert not storage.exists(STORAGE_KEY)


async def test_login_twice_with_same_arguments(storage):
    store = SessionStore(storage)
    await store.restore()
    user = _user()
    first = await store.login("tok", user)
    second = await store.login("tok", user)
    assert first == second
    assert second.user_id == "u1"


async def test_login_requires_token_and_user_id(storage):
    store = SessionStore(storage)
    with pytest.raises(ValueError):
        await store.login("", _user())
    with pytest.raises(ValueError):
        await store.login("tok", _user(id=""))
    assert store.state.phase == SessionPhase.LOADING


async def test_update_user_merges_and_persists(storage):
    store = SessionStore(storage)
    await store.restore()
    await store.login("tok", _user())

    merged = await store.update_user(nickname="alice2", bio="hi", unknown_field=1)
    assert merged is not None
    assert merged.nickname == "alice2"
    assert merged.email == "alice@example.com"

    reloaded = await SessionStore(storage).restore()
    assert reloaded.user is not None and reloaded.user.bio == "hi"


async def test_update_user_without_session_is_noop(storage):
    store = SessionStore(storage)
    await store.restore()
    assert await store.update_user(nickname="ghost") is None
    assert store.user is None


async def test_listener_errors_do_not_break_transitions(storage):
    store = SessionStore(storage)

    def broken(_state):
        raise RuntimeError("listener bug")

    store.subscribe(broken)
    await store.restore()
    assert store.state.is_initialized


async def test_has_role_follows_role_order(storage):
    store = SessionStore(storage)
    await store.login("tok", _user(role="moderator"))
    assert store.state.has_role(Role.EDITOR)
    assert store.state.has_role("moderator")
    assert not store.state.has_role(Role.ADMIN)
