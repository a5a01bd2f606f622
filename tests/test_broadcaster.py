"""
Catalog live-sync tests
"""
import asyncio
import threading

import pytest

from releasehub.services.broadcaster import SyncBroadcaster
from tests.factories import make_version


def _codes(snapshot):
    return [v.version_code for v in snapshot]


@pytest.mark.unit
def test_new_subscriber_gets_current_snapshot(store):
    store.create(make_version(1))
    store.create(make_version(2))
    with store.subscribe() as sub:
        assert [_codes(s) for s in sub.drain()] == [[2, 1]]


@pytest.mark.unit
def test_every_mutation_is_pushed_in_commit_order(store):
    with store.subscribe() as sub:
        store.create(make_version(1))
        store.create(make_version(3))
        store.set_active(1, False)
        snapshots = sub.drain()
    assert [_codes(s) for s in snapshots] == [[], [1], [3, 1], [3, 1]]
    assert snapshots[-1][1].is_active is False


@pytest.mark.unit
def test_failed_create_does_not_publish(store):
    store.create(make_version(1))
    with store.subscribe() as sub:
        sub.drain()
        store.create(make_version(1))
        store.set_active(99, True)
        assert sub.drain() == []


@pytest.mark.unit
def test_unsubscribed_handle_stops_receiving(store):
    sub = store.subscribe()
    assert store.broadcaster.subscriber_count == 1
    store.unsubscribe(sub)
    assert store.broadcaster.subscriber_count == 0
    store.create(make_version(1))
    assert sub.drain() == []


@pytest.mark.unit
def test_unreleased_subscription_stays_registered(store):
    store.subscribe()
    store.create(make_version(1))
    assert store.broadcaster.subscriber_count == 1


@pytest.mark.unit
def test_slow_subscriber_keeps_latest_snapshots():
    broadcaster = SyncBroadcaster(queue_size=2)
    sub = broadcaster.subscribe([])
    for code in range(1, 6):
        broadcaster.publish([make_version(c) for c in range(code, 0, -1)])
    snapshots = sub.drain()
    assert [s[0].version_code for s in snapshots] == [4, 5]
    assert sub.dropped == 4


@pytest.mark.asyncio
async def test_async_iteration_ends_on_close(store):
    sub = store.subscribe()
    received = []

    async def _consume():
        async for snapshot in sub:
            received.append(_codes(snapshot))

    task = asyncio.create_task(_consume())
    store.create(make_version(7))
    await asyncio.sleep(0)
    sub.close()
    await asyncio.wait_for(task, timeout=2)
    assert received == [[], [7]]


@pytest.mark.asyncio
async def test_writes_from_worker_threads_reach_loop_subscriber(store):
    sub = store.subscribe()
    assert sub.loop is asyncio.get_running_loop()
    assert (await sub.next(timeout=2)) == []

    def _writer():
        for code in (1, 2, 3):
            store.create(make_version(code))

    thread = threading.Thread(target=_writer)
    thread.start()
    await asyncio.get_running_loop().run_in_executor(None, thread.join)

    seen = [_codes(await sub.next(timeout=2)) for _ in range(3)]
    assert seen == [[1], [2, 1], [3, 2, 1]]
    sub.close()
    assert await sub.next(timeout=2) is None
