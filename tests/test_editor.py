from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from koala_wiki.editor.autosave import AutosaveScheduler
from koala_wiki.state.drafts import DraftFields, draft_key

from helpers import login_as, make_app, toast_texts


def _age_s(iso: str) -> float:
    ts = datetime.fromisoformat(iso.replace("Z", "+00:00"))
    return (datetime.now(timezone.utc) - ts).total_seconds()


async def test_contributor_page_goes_to_approval(wiki, fake):
    await login_as(wiki, fake, "u-alice")
    async with wiki.editor() as editor:
        assert editor.mounted
        editor.set_title("My koala")
        editor.set_content("Koalas are marsupials.")
        assert editor.add_tag("animals")

        result = await editor.submit()

    assert result.ok
    assert result.data.status.value == "draft"
    assert wiki.navigator.history == ["/", "/"]
    assert any("pending approval" in text for text in toast_texts(wiki))
    assert wiki.drafts.get_draft(draft_key()) is None


async def test_editor_page_is_published_and_opened(wiki, fake):
    await login_as(wiki, fake, "u-editor")
    async with wiki.editor() as editor:
        editor.set_title("Published")
        editor.set_content("Body")
        result = await editor.submit()

    assert result.ok and result.data.published
    assert wiki.navigator.current == f"/wiki/{result.data.id}"


async def test_submit_requires_title_and_content(wiki, fake):
    await login_as(wiki, fake, "u-alice")
    async with wiki.editor() as editor:
        editor.set_title("Only a title")
        result = await editor.submit()

    assert not result.ok
    assert fake.count("POST", "/api/wiki") == 0
    assert result.error.kind == "validation"
    assert wiki.navigator.history == ["/"]


async def test_idle_editor_autosaves_draft(wiki, fake):
    await login_as(wiki, fake, "u-alice")
    async with wiki.editor(debounce_s=0.2, max_interval_s=0.5) as editor:
        editor.set_title("Draft Title")
        await asyncio.sleep(0.6)

        draft = wiki.drafts.get_draft(draft_key())
        assert draft is not None
        assert draft.title == "Draft Title"
        assert 0 <= _age_s(draft.updatedAt) < 10

    reloaded = make_app(fake, wiki.storage.directory)
    await reloaded.drafts.restore()
    assert reloaded.drafts.get_draft(draft_key()).title == "Draft Title"
    await reloaded.close()


async def test_stored_draft_wins_over_server_document(wiki, fake):
    await login_as(wiki, fake, "u-alice")
    await wiki.drafts.save_draft(draft_key("p1"), "Local title", "Local body", ["mine"])

    async with wiki.editor("p1") as editor:
        assert editor.mounted
        assert editor.restored_draft
        assert (editor.title, editor.content, editor.tags) == ("Local title", "Local body", ["mine"])
        assert editor.baseline.title == "Koalas"
        assert editor.is_dirty

        await editor.discard()
        assert editor.title == "Koalas"
        assert not editor.is_dirty

    assert wiki.drafts.get_draft(draft_key("p1")) is None


async def test_new_page_draft_does_not_leak_into_edit(wiki, fake):
    await login_as(wiki, fake, "u-alice")
    await wiki.drafts.save_draft(draft_key(), "New page draft", "...", [])

    async with wiki.editor("p1") as editor:
        assert not editor.restored_draft
        assert editor.title == "Koalas"


async def test_update_navigates_to_page_and_clears_draft(wiki, fake):
    await login_as(wiki, fake, "u-alice")
    async with wiki.editor("p1") as editor:
        editor.set_content("Koalas sleep up to 20 hours.")
        await editor.save_now()
        assert wiki.drafts.get_draft(draft_key("p1")) is not None

        result = await editor.submit()

    assert result.ok
    assert wiki.navigator.current == "/wiki/p1"
    assert wiki.drafts.get_draft(draft_key("p1")) is None
    assert fake.pages["p1"]["content"] == "Koalas sleep up to 20 hours."


async def test_tag_limits_leave_tags_untouched(wiki, fake):
    await login_as(wiki, fake, "u-alice")
    async with wiki.editor() as editor:
        for i in range(10):
            assert editor.add_tag(f"tag{i}")
        before = editor.tags

        assert not editor.add_tag("eleventh")
        assert editor.tags == before

        editor.remove_tag("tag0")
        assert not editor.add_tag("x" * 21)
        assert not editor.add_tag("tag1")
        assert len(editor.tags) == 9

    assert any(t.type == "warning" for t in wiki.ui.toasts)


async def test_anonymous_user_is_sent_to_login(wiki, fake):
    async with wiki.editor() as editor:
        assert not editor.mounted
    assert wiki.navigator.current == "/login"


async def test_contributor_cannot_edit_someone_elses_page(wiki, fake):
    await login_as(wiki, fake, "u-bob")
    async with wiki.editor("p1") as editor:
        assert not editor.mounted
    assert wiki.navigator.current == "/wiki/p1"
    assert not editor.autosave.running


async def test_editor_role_can_edit_any_page(wiki, fake):
    await login_as(wiki, fake, "u-editor")
    async with wiki.editor("p1") as editor:
        assert editor.mounted


async def test_missing_page_goes_home(wiki, fake):
    await login_as(wiki, fake, "u-admin")
    async with wiki.editor("nope") as editor:
        assert not editor.mounted
    assert wiki.navigator.current == "/"
    assert "Page not found" in toast_texts(wiki)


async def test_unchanged_document_is_not_saved(wiki, fake):
    await login_as(wiki, fake, "u-alice")
    async with wiki.editor("p1") as editor:
        editor.set_title("Koalas")
        assert await editor.persist_draft() is None
    assert wiki.drafts.get_draft(draft_key("p1")) is None


async def test_reverting_to_server_text_drops_stored_draft(wiki, fake):
    await login_as(wiki, fake, "u-alice")
    async with wiki.editor("p1") as editor:
        editor.set_title("Koalas (edited)")
        await editor.persist_draft()
        assert wiki.drafts.get_draft(draft_key("p1")) is not None

        editor.set_title("Koalas")
        assert await editor.persist_draft() is None
        assert wiki.drafts.get_draft(draft_key("p1")) is None

    async with wiki.editor("p1") as editor:
        assert not editor.restored_draft
        assert editor.title == "Koalas"


async def test_unmount_flushes_pending_edit(wiki, fake):
    await login_as(wiki, fake, "u-alice")
    editor = wiki.editor(debounce_s=30, max_interval_s=60)
    await editor.mount()
    editor.set_title("Typed just before leaving")
    assert wiki.drafts.get_draft(draft_key()) is None

    await editor.unmount()
    assert not editor.autosave.running
    assert wiki.drafts.get_draft(draft_key()).title == "Typed just before leaving"


async def test_unmount_stops_autosave_when_body_raises(wiki, fake):
    await login_as(wiki, fake, "u-alice")
    editor = wiki.editor()
    try:
        async with editor:
            assert editor.autosave.running
            raise RuntimeError("screen crashed")
    except RuntimeError:
        pass
    assert not editor.autosave.running


async def test_autosave_debounces_bursts():
    saves = []

    async def save():
        saves.append(asyncio.get_running_loop().time())

    async with AutosaveScheduler(save, debounce_s=0.1, max_interval_s=1.0) as autosave:
        for _ in range(3):
            autosave.notify()
            await asyncio.sleep(0.02)
        await asyncio.sleep(0.3)

    assert len(saves) == 1


async def test_autosave_max_interval_under_continuous_edits():
    saves = []

    async def save():
        saves.append(asyncio.get_running_loop().time())

    loop = asyncio.get_running_loop()
    started = loop.time()
    async with AutosaveScheduler(save, debounce_s=0.2, max_interval_s=0.3) as autosave:
        while loop.time() - started < 0.5:
            autosave.notify()
            await asyncio.sleep(0.05)
        first_save = saves[0] if saves else None

    assert first_save is not None
    assert first_save - started < 0.45


async def test_stop_lets_a_running_save_finish():
    started = asyncio.Event()
    release = asyncio.Event()
    finished = []

    async def save():
        started.set()
        await release.wait()
        finished.append(len(finished) + 1)

    autosave = AutosaveScheduler(save, debounce_s=0.01, max_interval_s=0.05)
    autosave.start()
    autosave.notify()
    await started.wait()
    # edit made while the first save is still writing
    autosave.notify()

    stopping = asyncio.create_task(autosave.stop())
    await asyncio.sleep(0.02)
    assert not stopping.done()

    release.set()
    await stopping
    assert finished == [1, 2]
    assert not autosave.running
    assert not autosave.pending


async def test_autosave_errors_are_logged_and_loop_continues(caplog):
    calls = 0

    async def save():
        nonlocal calls
        calls += 1
        if calls == 1:
            raise OSError("disk full")

    async with AutosaveScheduler(save, debounce_s=0.05, max_interval_s=0.1) as autosave:
        autosave.notify()
        await asyncio.sleep(0.15)
        autosave.notify()
        await asyncio.sleep(0.15)

    assert calls == 2
    assert "autosave failed" in caplog.text


def test_draft_fields_blank():
    assert DraftFields().is_blank()
    assert not DraftFields(title="x").is_blank()
