import asyncio
import logging
from datetime import timedelta

import pytest

from fleetsrv.es_result import Hit
from fleetsrv.subscription import Subscription, SubscriptionMonitor

WAIT = 1.0


class FakeSimpleMonitor:
    def __init__(self, checkpoint=None, error=None):
        self.queue = asyncio.Queue()
        self.checkpoint = checkpoint if checkpoint is not None else [-1]
        self.error = error
        self.cancelled = False

    def get_checkpoint(self):
        return list(self.checkpoint)

    def output(self):
        return self.queue

    async def run(self):
        if self.error is not None:
            raise self.error
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise


async def _stop(task):
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


def _hits(*ids):
    return [Hit(id=i, seq_no=n) for n, i in enumerate(ids)]


def test_subscriptions_are_distinct():
    mon = SubscriptionMonitor(FakeSimpleMonitor())
    first = mon.subscribe()
    second = mon.subscribe()
    assert isinstance(first, Subscription)
    assert first.idx != second.idx
    assert first.output() is not second.output()


def test_get_checkpoint_comes_from_simple_monitor():
    mon = SubscriptionMonitor(FakeSimpleMonitor(checkpoint=[7, 9]))
    assert mon.get_checkpoint() == [7, 9]


@pytest.mark.asyncio
async def test_run_delivers_to_every_subscriber():
    simple = FakeSimpleMonitor()
    mon = SubscriptionMonitor(simple)
    subs = [mon.subscribe(), mon.subscribe()]
    task = asyncio.create_task(mon.run())
    hits = _hits("a", "b")
    await simple.queue.put(hits)
    for sub in subs:
        assert await asyncio.wait_for(sub.output().get(), WAIT) == hits
    await _stop(task)
    assert simple.cancelled


@pytest.mark.asyncio
async def test_unsubscribed_receives_nothing():
    simple = FakeSimpleMonitor()
    mon = SubscriptionMonitor(simple)
    kept = mon.subscribe()
    gone = mon.subscribe()
    mon.unsubscribe(gone)
    mon.unsubscribe(object())
    task = asyncio.create_task(mon.run())
    hits = _hits("a")
    await simple.queue.put(hits)
    assert await asyncio.wait_for(kept.output().get(), WAIT) == hits
    assert gone.output().empty()
    await _stop(task)


@pytest.mark.asyncio
async def test_empty_batches_are_not_delivered():
    simple = FakeSimpleMonitor()
    mon = SubscriptionMonitor(simple)
    sub = mon.subscribe()
    task = asyncio.create_task(mon.run())
    hits = _hits("x")
    await simple.queue.put([])
    await simple.queue.put(hits)
    assert await asyncio.wait_for(sub.output().get(), WAIT) == hits
    await _stop(task)


@pytest.mark.asyncio
async def test_slow_subscriber_misses_batch(caplog):
    caplog.set_level(logging.WARNING, logger="fleetsrv.subscription")
    simple = FakeSimpleMonitor()
    mon = SubscriptionMonitor(simple, sub_timeout=timedelta(milliseconds=50))
    fast = mon.subscribe()
    slow = mon.subscribe()
    pending = _hits("old")
    slow.output().put_nowait(pending)
    task = asyncio.create_task(mon.run())
    hits = _hits("new")
    await simple.queue.put(hits)
    assert await asyncio.wait_for(fast.output().get(), WAIT) == hits
    await asyncio.sleep(0.2)
    assert slow.output().qsize() == 1
    assert slow.output().get_nowait() == pending
    assert any(r.getMessage() == "dropped notification" for r in caplog.records)
    await _stop(task)


@pytest.mark.asyncio
async def test_failure_of_simple_monitor_is_raised():
    simple = FakeSimpleMonitor(error=RuntimeError("boom"))
    mon = SubscriptionMonitor(simple)
    with pytest.raises(RuntimeError, match="boom"):
        await asyncio.wait_for(mon.run(), WAIT)