"""
Unit Tests for KeyedLock

Same key serializes, different keys run concurrently, multi-key
acquisition never deadlocks and idle locks are dropped.
"""

import asyncio

import pytest

from core.keyed_lock import KeyedLock

pytestmark = [pytest.mark.unit, pytest.mark.asyncio]


async def test_same_key_serializes():
    locks = KeyedLock()
    trace = []

    async def worker(name):
        async with locks.hold("item-1"):
            trace.append(f"{name}:start")
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            trace.append(f"{name}:end")

    await asyncio.gather(worker("a"), worker("b"))

    assert trace == ["a:start", "a:end", "b:start", "b:end"]


async def test_different_keys_do_not_block():
    locks = KeyedLock()
    released = asyncio.Event()

    async def holder():
        async with locks.hold("x"):
            await released.wait()

    async def other():
        async with locks.hold("y"):
            released.set()

    await asyncio.wait_for(asyncio.gather(holder(), other()), timeout=1)


async def test_hold_many_in_opposite_orders():
    locks = KeyedLock()
    done = []

    async def worker(keys, name):
        async with locks.hold_many(keys):
            await asyncio.sleep(0)
            done.append(name)

    await asyncio.wait_for(
        asyncio.gather(*(worker(["a", "b"] if i % 2 else ["b", "a"], i) for i in range(10))),
        timeout=1,
    )
    assert sorted(done) == list(range(10))


async def test_idle_locks_are_dropped():
    locks = KeyedLock()
    async with locks.hold_many(["a", "b", "a"]):
        assert len(locks) == 2
    async with locks.hold("c"):
        assert len(locks) == 1
    assert len(locks) == 0


async def test_lock_released_on_error():
    locks = KeyedLock()
    with pytest.raises(RuntimeError):
        async with locks.hold("k"):
            raise RuntimeError("boom")

    async with locks.hold("k"):
        pass
    assert len(locks) == 0
