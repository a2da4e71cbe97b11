from __future__ import annotations

import asyncio

import pytest

from dynolock.core.errors import LockAcquireTimeoutError, LockAlreadyOwnedError, LockNotOwnedError
from dynolock.core.lock import DistributedLock
from dynolock.core.lock_async import AsyncDistributedLock
from dynolock.data.store_memory import MemoryLockStore

from stores import KEY, TABLE, BrokenStore, RivalStealStore, SlowWriteStore, VanishingStore


def make_lock(store: MemoryLockStore, **kwargs) -> AsyncDistributedLock:
    return AsyncDistributedLock(store, TABLE, "PK", "SK", "testing-lock", **kwargs)


@pytest.mark.asyncio
async def test_async_lock_round_trip():
    store = MemoryLockStore(partition_key="PK", sort_key="SK")
    lock1 = make_lock(store)
    lock2 = make_lock(store)

    await lock1.acquire(30)
    with pytest.raises(LockAcquireTimeoutError):
        await lock2.acquire_with_timeout(30, 0.2)

    await lock1.release()
    await lock2.acquire_with_timeout(30, 1)

    assert store.snapshot(TABLE, KEY)["Dyno_LockID"] == lock2.owned
    await lock2.release()
    assert lock2.owned is None


@pytest.mark.asyncio
async def test_async_release_without_ownership():
    lock = make_lock(MemoryLockStore(partition_key="PK", sort_key="SK"))

    with pytest.raises(LockNotOwnedError):
        await lock.release()


@pytest.mark.asyncio
async def test_async_lock_contends_with_sync_holder_and_takes_over():
    store = MemoryLockStore(partition_key="PK", sort_key="SK")
    holder = DistributedLock(store, TABLE, "PK", "SK", "testing-lock")
    holder.acquire(0)

    contender = make_lock(store)
    await contender.acquire_with_timeout(30, 1)

    assert contender.owned != holder.owned
    holder.release()
    assert store.snapshot(TABLE, KEY)["Dyno_LockID"] == contender.owned


@pytest.mark.asyncio
async def test_cancelled_wait_leaves_lock_unowned():
    store = MemoryLockStore(partition_key="PK", sort_key="SK")
    await make_lock(store).acquire(3600)

    waiter = make_lock(store)
    task = asyncio.create_task(waiter.acquire(3600))
    await asyncio.sleep(0.1)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert waiter.owned is None
    # local guard was released by the cancelled call
    with pytest.raises(LockAcquireTimeoutError):
        await waiter.acquire_with_timeout(3600, 0.05)


@pytest.mark.asyncio
async def test_async_hold_and_strict_mode():
    store = MemoryLockStore(partition_key="PK", sort_key="SK")
    lock = make_lock(store, strict=True)

    async with lock.hold(30) as held:
        assert held.owned is not None
        with pytest.raises(LockAlreadyOwnedError):
            await lock.acquire(30)

    assert lock.owned is None
    assert "Dyno_LockID" not in store.snapshot(TABLE, KEY)


@pytest.mark.asyncio
async def test_async_tasks_take_turns():
    store = MemoryLockStore(partition_key="PK", sort_key="SK")
    order: list[int] = []

    async def worker(index: int) -> None:
        lock = make_lock(store, poll_interval=0.005)
        async with lock.hold(30, 5):
            order.append(index)
            await asyncio.sleep(0.01)
            order.append(index)

    await asyncio.gather(*(worker(index) for index in range(3)))

    assert len(order) == 6
    # each worker's enter/exit pair is adjacent
    assert all(order[i] == order[i + 1] for i in range(0, 6, 2))


@pytest.mark.asyncio
async def test_cancel_during_a_landing_put_removes_the_record():
    store = SlowWriteStore("put_if_absent")
    waiter = make_lock(store)

    task = asyncio.create_task(waiter.acquire(3600))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert waiter.owned is None
    assert store.snapshot(TABLE, KEY) == KEY
    assert store.calls == ["put_if_absent", "remove_if_equal"]

    store.slow = ""
    other = make_lock(store)
    await other.acquire_with_timeout(3600, 0.5)
    assert store.snapshot(TABLE, KEY)["Dyno_LockID"] == other.owned


@pytest.mark.asyncio
async def test_cancel_during_a_landing_takeover_removes_the_record():
    store = SlowWriteStore("replace_if_equal")
    holder = DistributedLock(store, TABLE, "PK", "SK", "testing-lock")
    holder.acquire(0)
    waiter = make_lock(store)

    task = asyncio.create_task(waiter.acquire(3600))
    await asyncio.sleep(0.12)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert waiter.owned is None
    assert "replace_if_equal" in store.calls
    assert store.calls[-1] == "remove_if_equal"
    assert "Dyno_LockID" not in store.snapshot(TABLE, KEY)


@pytest.mark.asyncio
async def test_async_lost_takeover_race_keeps_waiting():
    store = RivalStealStore()
    await make_lock(store).acquire(0)

    contender = make_lock(store)
    with pytest.raises(LockAcquireTimeoutError):
        await contender.acquire_with_timeout(30, 0.3)

    assert store.calls.count("replace_if_equal") == 1
    assert contender.owned is None
    assert store.snapshot(TABLE, KEY)["Dyno_LockID"] == RivalStealStore.rival_token


@pytest.mark.asyncio
@pytest.mark.parametrize("failing", ["put_if_absent", "get", "replace_if_equal"])
async def test_async_store_failures_propagate(failing):
    store = BrokenStore("")
    await make_lock(store).acquire(0)

    store.failing = failing
    contender = make_lock(store)
    with pytest.raises(RuntimeError, match="throttled"):
        await contender.acquire_with_timeout(30, 1)
    assert contender.owned is None


@pytest.mark.asyncio
async def test_async_failed_release_keeps_ownership_for_retry():
    store = BrokenStore("")
    lock = make_lock(store)
    await lock.acquire(30)
    token = lock.owned

    store.failing = "remove_if_equal"
    with pytest.raises(RuntimeError):
        await lock.release()
    assert lock.owned == token

    store.failing = ""
    await lock.release()
    assert lock.owned is None


@pytest.mark.asyncio
async def test_async_vanished_record_only_yields(monkeypatch):
    store = VanishingStore()
    real_sleep = asyncio.sleep
    sleeps: list[float] = []

    async def recording_sleep(delay, *args, **kwargs):
        sleeps.append(delay)
        await real_sleep(delay, *args, **kwargs)

    monkeypatch.setattr("dynolock.core.lock_async.asyncio.sleep", recording_sleep)

    lock = make_lock(store)
    await lock.acquire(30)

    assert lock.owned is not None
    assert store.calls == ["put_if_absent", "get", "put_if_absent"]
    assert sleeps == [0]


@pytest.mark.asyncio
async def test_async_hold_tolerates_release_inside_the_block():
    store = MemoryLockStore(partition_key="PK", sort_key="SK")
    lock = make_lock(store)

    with pytest.raises(KeyError):
        async with lock.hold(30):
            await lock.release()
            raise KeyError("boom")

    assert lock.owned is None
    assert repr(lock) == "<AsyncDistributedLock dyno-test-table/testing-lock unowned>"
