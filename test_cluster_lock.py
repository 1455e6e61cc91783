"""
Cluster lock tests
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

from services.cluster_lock import (
    ClusterLockManager,
    advisory_lock_id,
    build_lock_keys,
)


def test_build_lock_keys_covers_clusters_and_identifiers():
    keys = build_lock_keys("a@example.com", "555", {1, 7})
    assert keys == frozenset({"contact:1", "contact:7", "email:a@example.com", "phone:555"})

    assert build_lock_keys(None, "555", []) == frozenset({"phone:555"})


def test_advisory_lock_id_is_stable_signed_64_bit():
    lock_id = advisory_lock_id("contact:42")
    assert lock_id == advisory_lock_id("contact:42")
    assert lock_id != advisory_lock_id("contact:43")
    assert -(2 ** 63) <= lock_id < 2 ** 63


async def test_shared_key_serializes_holders():
    locks = ClusterLockManager(use_advisory_locks=False)
    events = []

    async def worker(name, keys):
        async with locks.hold(keys):
            events.append(f"{name}-in")
            await asyncio.sleep(0.01)
            events.append(f"{name}-out")

    await asyncio.gather(
        worker("first", ["contact:1", "email:a"]),
        worker("second", ["email:a"]),
    )

    assert events == ["first-in", "first-out", "second-in", "second-out"]


async def test_disjoint_keys_run_in_parallel():
    locks = ClusterLockManager(use_advisory_locks=False)
    inside = asyncio.Event()
    released = asyncio.Event()

    async def holder():
        async with locks.hold(["contact:1"]):
            inside.set()
            await released.wait()

    task = asyncio.create_task(holder())
    await inside.wait()

    async with locks.hold(["contact:2"]):
        assert locks.active_keys() == ["contact:1", "contact:2"]

    released.set()
    await task


async def test_opposite_key_order_does_not_deadlock():
    locks = ClusterLockManager(use_advisory_locks=False)

    async def worker(keys):
        async with locks.hold(keys):
            await asyncio.sleep(0)

    await asyncio.wait_for(
        asyncio.gather(
            *(worker(["contact:1", "contact:2"]) for _ in range(5)),
            *(worker(["contact:2", "contact:1"]) for _ in range(5)),
        ),
        timeout=2
    )


async def test_registry_is_emptied_after_release():
    locks = ClusterLockManager(use_advisory_locks=False)

    async with locks.hold(["contact:1", "phone:555"]) as held:
        assert held == ["contact:1", "phone:555"]

    assert locks.active_keys() == []


async def test_registry_is_emptied_after_error():
    locks = ClusterLockManager(use_advisory_locks=False)

    try:
        async with locks.hold(["contact:1"]):
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    assert locks.active_keys() == []


async def test_advisory_locks_skipped_on_sqlite(database, write_counter):
    locks = ClusterLockManager(use_advisory_locks=True)

    async with database.get_session() as session:
        await locks.acquire_advisory(session, ["contact:1"])

    assert write_counter == []


def postgres_session():
    """Stand-in session reporting the PostgreSQL dialect and recording executes"""
    return SimpleNamespace(
        get_bind=lambda: SimpleNamespace(dialect=SimpleNamespace(name="postgresql")),
        execute=AsyncMock()
    )


async def test_advisory_locks_taken_per_key_in_sorted_order():
    locks = ClusterLockManager(use_advisory_locks=True)
    session = postgres_session()

    await locks.acquire_advisory(session, ["phone:555", "contact:7", "email:a@example.com", "contact:7"])

    expected_keys = ["contact:7", "email:a@example.com", "phone:555"]
    assert session.execute.await_count == len(expected_keys)
    for call, key in zip(session.execute.await_args_list, expected_keys):
        statement, params = call.args
        assert str(statement) == "SELECT pg_advisory_xact_lock(:lock_id)"
        assert params == {"lock_id": advisory_lock_id(key)}


async def test_advisory_locks_disabled_issue_nothing():
    locks = ClusterLockManager(use_advisory_locks=False)
    session = postgres_session()

    await locks.acquire_advisory(session, ["contact:7"])

    session.execute.assert_not_awaited()
