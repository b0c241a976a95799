from __future__ import annotations

import asyncio

import pytest

from koala_wiki.api.errors import NetworkError, NotFoundError, ServerError, ValidationError
from koala_wiki.cache.mutations import MutationRunner
from koala_wiki.cache.query_cache import QueryCache, make_key, matches
from koala_wiki.state.ui import UIStore


class Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class CountingFetcher:
    def __init__(self, *results) -> None:
        self.results = list(results)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def cache(clock) -> QueryCache:
    return QueryCache(stale_time_s=60, cache_time_s=300, retry=2, retry_delay_s=0, clock=clock)


def test_keys_freeze_dict_params():
    a = make_key("wikiPages", {"limit": 20, "tag": "x", "author": None})
    b = make_key("wikiPages", {"tag": "x", "limit": 20})
    assert a == b
    assert matches(a, ("wikiPages",))
    assert not matches(make_key("wikiPage", "p1"), ("wikiPages",))


async def test_fresh_entry_is_served_from_cache(cache, clock):
    fetch = CountingFetcher("v1", "v2")
    key = make_key("wikiPage", "p1")

    assert await cache.fetch(key, fetch) == "v1"
    clock.now += 30
    assert await cache.fetch(key, fetch) == "v1"
    assert fetch.calls == 1

    clock.now += 31
    assert await cache.fetch(key, fetch) == "v2"
    assert fetch.calls == 2


async def test_per_query_stale_time(cache, clock):
    fetch = CountingFetcher("a", "b")
    key = make_key("tags", 20)
    await cache.fetch(key, fetch, stale_time_s=900)
    clock.now += 600
    assert await cache.fetch(key, fetch, stale_time_s=900) == "a"
    assert fetch.calls == 1


async def test_concurrent_reads_share_one_request(cache):
    gate = asyncio.Event()
    calls = 0

    async def slow():
        nonlocal calls
        calls += 1
        await gate.wait()
        return "data"

    key = make_key("wikiPages", {})
    tasks = [asyncio.create_task(cache.fetch(key, slow)) for _ in range(3)]
    await asyncio.sleep(0)
    gate.set()
    assert await asyncio.gather(*tasks) == ["data", "data", "data"]
    assert calls == 1


async def test_invalidate_forces_a_fresh_request(cache):
    fetch = CountingFetcher("before", "after")
    key = make_key("wikiPages", {"limit": 20})
    await cache.fetch(key, fetch)

    assert cache.invalidate(("wikiPages",)) == 1
    assert cache.peek(key) == "before"
    assert await cache.fetch(key, fetch) == "after"
    assert fetch.calls == 2


async def test_response_started_before_invalidation_is_stored_stale(cache):
    gate = asyncio.Event()
    results = iter(["old", "new"])

    async def fetcher():
        value = next(results)
        if value == "old":
            await gate.wait()
        return value

    key = make_key("comments", "p1")
    first = asyncio.create_task(cache.fetch(key, fetcher))
    await asyncio.sleep(0)

    cache.invalidate(("comments",))
    gate.set()
    assert await first == "old"

    entry = cache.entry(key)
    assert entry is not None and entry.is_stale
    assert await cache.fetch(key, fetcher) == "new"


async def test_late_response_does_not_replace_newer_data(cache):
    gate = asyncio.Event()

    async def before_mutation():
        await gate.wait()
        return "before-mutation"

    async def after_mutation():
        return "after-mutation"

    key = make_key("k")
    first = asyncio.create_task(cache.fetch(key, before_mutation))
    await asyncio.sleep(0)

    cache.invalidate(("k",))
    assert await cache.fetch(key, after_mutation) == "after-mutation"

    gate.set()
    assert await first == "before-mutation"

    entry = cache.entry(key)
    assert cache.peek(key) == "after-mutation"
    assert not entry.is_stale
    assert await cache.fetch(key, CountingFetcher("unused")) == "after-mutation"


async def test_network_errors_are_retried(cache):
    fetch = CountingFetcher(NetworkError("down"), NetworkError("down"), "ok")
    assert await cache.fetch(make_key("x"), fetch) == "ok"
    assert fetch.calls == 3


async def test_retry_count_can_be_lowered(cache):
    fetch = CountingFetcher(ServerError("boom", status=503))
    with pytest.raises(ServerError):
        await cache.fetch(make_key("wikiPage", "p1"), fetch, retry=1)
    assert fetch.calls == 2


async def test_client_errors_are_not_retried(cache):
    fetch = CountingFetcher(ValidationError("bad"))
    with pytest.raises(ValidationError):
        await cache.fetch(make_key("x"), fetch)
    assert fetch.calls == 1


async def test_failed_refetch_keeps_previous_data(cache):
    key = make_key("wikiPage", "p1")
    await cache.fetch(key, CountingFetcher("cached"))
    cache.invalidate(key)

    result = await cache.query(key, CountingFetcher(ServerError("boom", status=500)))
    assert result.status == "error"
    assert result.data == "cached"
    assert cache.peek(key) == "cached"


async def test_query_reports_not_found_and_idle(cache):
    missing = await cache.query(make_key("wikiPage", "nope"), CountingFetcher(NotFoundError("gone", status=404)))
    assert missing.not_found
    assert not missing.ok

    fetch = CountingFetcher("never")
    idle = await cache.query(make_key("search", "ab"), fetch, enabled=False)
    assert idle.status == "idle"
    assert fetch.calls == 0


async def test_garbage_collection_drops_unused_entries(cache, clock):
    await cache.fetch(make_key("a"), CountingFetcher(1))
    clock.now += 200
    await cache.fetch(make_key("b"), CountingFetcher(2))
    clock.now += 150

    assert cache.collect_garbage() == 1
    assert make_key("a") not in cache
    assert make_key("b") in cache


async def test_remove_by_prefix(cache):
    await cache.fetch(make_key("wikiPage", "p1"), CountingFetcher(1))
    await cache.fetch(make_key("wikiPage", "p2"), CountingFetcher(2))
    assert cache.remove(make_key("wikiPage", "p1")) == 1
    assert cache.keys() == [make_key("wikiPage", "p2")]


async def test_mutation_invalidates_and_toasts(cache):
    ui = UIStore()
    runner = MutationRunner(cache, ui)
    key = make_key("comments", "p1")
    await cache.fetch(key, CountingFetcher(["c1"]))

    async def ok():
        return "new-id"

    result = await runner.run(ok, invalidates=[("comments",)], success="Posted")
    assert result.ok and result.data == "new-id"
    assert cache.entry(key).is_stale
    assert [t.title for t in ui.toasts] == ["Posted"]


async def test_failed_mutation_rolls_back_optimistic_patch(cache):
    ui = UIStore()
    runner = MutationRunner(cache, ui)
    key = make_key("comments", "p1")
    await cache.fetch(key, CountingFetcher(["c1", "c2"]))
    seen = []

    async def fail():
        seen.append(list(cache.peek(key)))
        raise ServerError("boom", status=500)

    result = await runner.run(
        fail,
        optimistic={key: lambda items: [c for c in items if c != "c1"]},
        invalidates=[key],
        error_title="Could not delete",
    )
    assert not result.ok
    assert seen == [["c2"]]
    assert cache.peek(key) == ["c1", "c2"]
    assert not cache.entry(key).is_stale
    assert [(t.type, t.title, t.description) for t in ui.toasts] == [("error", "Could not delete", "boom")]


async def test_mutations_are_not_retried(cache):
    runner = MutationRunner(cache)
    calls = 0

    async def flaky():
        nonlocal calls
        calls += 1
        raise NetworkError("offline")

    result = await runner.run(flaky)
    assert not result.ok
    assert result.error is not None and result.error.kind == "network"
    assert calls == 1


async def test_validation_failure_sends_nothing(cache):
    ui = UIStore()
    runner = MutationRunner(cache, ui)
    calls = 0

    async def send():
        nonlocal calls
        calls += 1

    def invalid():
        raise ValidationError("Enter a comment")

    result = await runner.run(send, validate=invalid, error_title="Could not post")
    assert not result.ok
    assert calls == 0
    assert ui.toasts[0].description == "Enter a comment"
