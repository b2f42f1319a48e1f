"""Unit tests for the keyed lock registry."""

import asyncio

from app.shared.locks import KeyedLock


class TestKeyedLock:
    """Test cases for KeyedLock."""

    async def test_same_key_is_serialised(self):
        locks = KeyedLock()
        order = []

        async def worker(name):
            async with locks.hold("chat-1"):
                order.append(f"{name}:start")
                await asyncio.sleep(0.01)
                order.append(f"{name}:end")

        await asyncio.gather(worker("a"), worker("b"))

        assert order == ["a:start", "a:end", "b:start", "b:end"]

    async def test_different_keys_do_not_wait(self):
        locks = KeyedLock()
        entered = asyncio.Event()

        async def holder():
            async with locks.hold("chat-1"):
                await entered.wait()

        task = asyncio.create_task(holder())
        await asyncio.sleep(0)

        async with locks.hold("chat-2"):
            assert locks.is_held("chat-1")
            entered.set()
        await task

    async def test_idle_keys_are_dropped(self):
        locks = KeyedLock()

        async with locks.hold("chat-1"):
            assert len(locks) == 1

        assert len(locks) == 0
        assert not locks.is_held("chat-1")

    async def test_lock_released_on_error(self):
        locks = KeyedLock()

        try:
            async with locks.hold("chat-1"):
                raise ValueError("boom")
        except ValueError:
            pass

        assert len(locks) == 0
