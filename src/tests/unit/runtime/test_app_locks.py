"""Tests for AppLocks."""

import asyncio

from wpruntime.runtimes.local.lock import AppLocks


class TestAppLocks:
    async def test_entry_dropped_after_release(self) -> None:
        locks = AppLocks()

        async with locks.hold("blog"):
            assert len(locks) == 1

        assert len(locks) == 0

    async def test_entry_dropped_when_body_raises(self) -> None:
        locks = AppLocks()

        try:
            async with locks.hold("blog"):
                raise RuntimeError("boom")
        except RuntimeError:
            pass

        assert len(locks) == 0

    async def test_same_app_serialized(self) -> None:
        locks = AppLocks()
        order: list[str] = []
        entered = asyncio.Event()

        async def first() -> None:
            async with locks.hold("blog"):
                entered.set()
                await asyncio.sleep(0.05)
                order.append("first")

        async def second() -> None:
            await entered.wait()
            async with locks.hold("blog"):
                order.append("second")

        await asyncio.gather(first(), second())

        assert order == ["first", "second"]
        assert len(locks) == 0

    async def test_waiter_keeps_entry_alive(self) -> None:
        locks = AppLocks()
        release = asyncio.Event()
        waiting = asyncio.Event()
        inside: list[str] = []

        async def holder() -> None:
            async with locks.hold("blog"):
                waiting.set()
                await release.wait()

        async def waiter() -> None:
            await waiting.wait()
            async with locks.hold("blog"):
                inside.append("waiter")
                # A newcomer must queue on the same lock, not a fresh one
                newcomer = asyncio.create_task(join())
                await asyncio.sleep(0.01)
                assert not newcomer.done()
            await newcomer

        async def join() -> None:
            async with locks.hold("blog"):
                inside.append("newcomer")

        tasks = [asyncio.create_task(holder()), asyncio.create_task(waiter())]
        await waiting.wait()
        await asyncio.sleep(0.01)
        release.set()
        await asyncio.gather(*tasks)

        assert inside == ["waiter", "newcomer"]
        assert len(locks) == 0

    async def test_different_apps_independent(self) -> None:
        locks = AppLocks()

        async with locks.hold("blog"):
            async with locks.hold("shop"):
                assert len(locks) == 2
