from __future__ import annotations

import asyncio

import pytest

from fileaccess_backend.cache import KeyedLocks, MemoCache


def test_put_if_absent_keeps_first_value() -> None:
    cache: MemoCache[str, bytes] = MemoCache()
    assert cache.put_if_absent("k", b"first") == b"first"
    assert cache.put_if_absent("k", b"second") == b"first"
    assert cache.get("k") == b"first"
    assert len(cache) == 1


def test_unbounded_cache_never_evicts() -> None:
    cache: MemoCache[int, int] = MemoCache()
    for i in range(1000):
        cache.put_if_absent(i, i)
    assert len(cache) == 1000
    assert 0 in cache


def test_bounded_cache_evicts_least_recently_used() -> None:
    cache: MemoCache[str, int] = MemoCache(max_entries=2)
    cache.put_if_absent("a", 1)
    cache.put_if_absent("b", 2)
    cache.get("a")
    cache.put_if_absent("c", 3)
    assert "a" in cache
    assert "b" not in cache
    assert "c" in cache


@pytest.mark.asyncio
async def test_keyed_locks_serialize_same_key_and_clean_up() -> None:
    locks: KeyedLocks[str] = KeyedLocks()
    order: list[str] = []

    async def worker(name: str) -> None:
        async with locks.hold("key"):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    await asyncio.gather(worker("one"), worker("two"))
    assert order == ["one-in", "one-out", "two-in", "two-out"]
    assert len(locks) == 0
