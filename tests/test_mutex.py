from __future__ import annotations

import asyncio

import pytest


def test_acquire_free_gate_is_immediate() -> None:
    from mcp_servers.chrome_devtools.mutex import ExclusiveGate

    async def _main() -> None:
        gate = ExclusiveGate()
        guard = await gate.acquire()
        assert gate.locked
        guard.dispose()
        assert not gate.locked
        assert guard.released

    asyncio.run(_main())


def test_second_acquire_waits_until_release() -> None:
    from mcp_servers.chrome_devtools.mutex import ExclusiveGate

    async def _main() -> None:
        gate = ExclusiveGate()
        first = await gate.acquire()
        second = asyncio.create_task(gate.acquire())
        await asyncio.sleep(0)
        assert not second.done()
        assert gate.waiters == 1
        first.dispose()
        guard = await asyncio.wait_for(second, timeout=1)
        assert gate.locked
        guard.dispose()
        assert not gate.locked

    asyncio.run(_main())


def test_waiters_are_granted_in_arrival_order() -> None:
    from mcp_servers.chrome_devtools.mutex import ExclusiveGate

    async def _main() -> list[int]:
        gate = ExclusiveGate()
        order: list[int] = []
        holder = await gate.acquire()

        async def worker(n: int) -> None:
            guard = await gate.acquire()
            order.append(n)
            await asyncio.sleep(0)
            guard.dispose()

        tasks = [asyncio.create_task(worker(n)) for n in range(5)]
        await asyncio.sleep(0)
        holder.dispose()
        await asyncio.gather(*tasks)
        return order

    assert asyncio.run(_main()) == [0, 1, 2, 3, 4]


def test_late_acquire_does_not_overtake_queue() -> None:
    from mcp_servers.chrome_devtools.mutex import ExclusiveGate

    async def _main() -> list[str]:
        gate = ExclusiveGate()
        order: list[str] = []
        holder = await gate.acquire()

        async def worker(name: str) -> None:
            async with gate.hold():
                order.append(name)

        queued = asyncio.create_task(worker("queued"))
        await asyncio.sleep(0)
        holder.dispose()
        # Arrives after the release but before the queued waiter resumed.
        late = asyncio.create_task(worker("late"))
        await asyncio.gather(queued, late)
        return order

    assert asyncio.run(_main()) == ["queued", "late"]


def test_guard_double_dispose_raises() -> None:
    from mcp_servers.chrome_devtools.mutex import ExclusiveGate

    async def _main() -> None:
        gate = ExclusiveGate()
        guard = await gate.acquire()
        guard.dispose()
        with pytest.raises(RuntimeError):
            guard.dispose()
        assert not gate.locked

    asyncio.run(_main())


def test_cancelled_waiter_leaves_queue() -> None:
    from mcp_servers.chrome_devtools.mutex import ExclusiveGate

    async def _main() -> None:
        gate = ExclusiveGate()
        holder = await gate.acquire()
        waiter = asyncio.create_task(gate.acquire())
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter
        assert gate.waiters == 0
        holder.dispose()
        assert not gate.locked

    asyncio.run(_main())


def test_hold_releases_on_exception() -> None:
    from mcp_servers.chrome_devtools.mutex import ExclusiveGate

    async def _main() -> None:
        gate = ExclusiveGate()
        with pytest.raises(ValueError):
            async with gate.hold():
                raise ValueError("boom")
        assert not gate.locked

    asyncio.run(_main())
