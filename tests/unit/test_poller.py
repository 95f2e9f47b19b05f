import asyncio
import random

from trailguide_sync.sync.poller import SyncPoller


async def _no_updates():
    return False


def test_quiet_polls_back_off_up_to_the_cap() -> None:
    poller = SyncPoller(_no_updates, base_interval=10, backoff_increment=5, max_interval=20)

    for _ in range(5):
        asyncio.run(poller.run_once())

    assert poller.current_interval == 20


def test_updates_reset_the_interval() -> None:
    results = iter([False, False, True])

    async def callback():
        return next(results)

    poller = SyncPoller(callback, base_interval=10, backoff_increment=5)
    for _ in range(3):
        asyncio.run(poller.run_once())

    assert poller.current_interval == 10


def test_callback_errors_count_as_no_updates() -> None:
    async def callback():
        raise RuntimeError("offline")

    poller = SyncPoller(callback, base_interval=10, backoff_increment=5)

    assert asyncio.run(poller.run_once()) is False
    assert poller.current_interval == 15
    assert poller.is_running is False


def test_overlapping_poll_is_skipped() -> None:
    calls = []

    async def slow():
        calls.append("start")
        await asyncio.sleep(0.01)
        return True

    poller = SyncPoller(slow)

    async def scenario():
        return await asyncio.gather(poller.run_once(), poller.run_once())

    first, second = asyncio.run(scenario())

    assert first is True
    assert second is None
    assert calls == ["start"]


def test_next_interval_stays_within_jitter() -> None:
    poller = SyncPoller(_no_updates, base_interval=10, max_jitter=5, rng=random.Random(7))

    for _ in range(50):
        assert 5 <= poller.next_interval() <= 15


def test_interval_resets_near_ceiling() -> None:
    poller = SyncPoller(_no_updates, base_interval=10, max_interval=300, max_interval_jitter=60, max_jitter=0)
    poller.current_interval = 400

    assert poller.next_interval() == 10
    assert poller.current_interval == 10


def test_run_forever_stops_on_event() -> None:
    polls = []

    async def callback():
        polls.append(1)
        return False

    async def scenario():
        stop = asyncio.Event()
        poller = SyncPoller(callback, base_interval=0.01, max_jitter=0, backoff_increment=0)
        runner = asyncio.ensure_future(poller.run_forever(stop, run_immediately=True))
        await asyncio.sleep(0.05)
        stop.set()
        await asyncio.wait_for(runner, timeout=1)

    asyncio.run(scenario())

    assert len(polls) >= 2
