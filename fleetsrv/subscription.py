"""Fan-out of new index documents to any number of subscribers."""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
from datetime import timedelta
from typing import Any, Protocol

from fleetsrv.es_result import Hit

DEFAULT_SUBSCRIPTION_TIMEOUT = timedelta(seconds=5)

_log = logging.getLogger(__name__)
_counter = itertools.count(1)


class _SimpleMonitor(Protocol):
    def get_checkpoint(self) -> list[int]: ...

    async def run(self) -> Any: ...

    def output(self) -> asyncio.Queue[list[Hit]]: ...


class Subscription:
    """A subscription that receives batches of new documents."""

    def __init__(self, idx: int) -> None:
        self.idx = idx
        self._queue: asyncio.Queue[list[Hit]] = asyncio.Queue(maxsize=1)

    def output(self) -> asyncio.Queue[list[Hit]]:
        """Return the queue the monitor sends new documents to."""
        return self._queue


class SubscriptionMonitor:
    """Runs a simple index monitor and passes its documents to every subscriber.

    A subscriber that does not take a batch within ``sub_timeout`` misses it.
    """

    def __init__(
        self,
        simple: _SimpleMonitor,
        *,
        sub_timeout: timedelta = DEFAULT_SUBSCRIPTION_TIMEOUT,
    ) -> None:
        self._simple = simple
        self._sub_timeout = sub_timeout
        self._subs: dict[int, Subscription] = {}

    def get_checkpoint(self) -> list[int]:
        """Return the global checkpoint of the monitored index."""
        return self._simple.get_checkpoint()

    def subscribe(self) -> Subscription:
        """Start receiving new documents."""
        sub = Subscription(next(_counter))
        self._subs[sub.idx] = sub
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        """Stop receiving new documents; unknown subscriptions are ignored."""
        if isinstance(sub, Subscription):
            self._subs.pop(sub.idx, None)

    async def run(self) -> None:
        """Run the underlying monitor and dispatch until cancelled or it fails."""
        task = asyncio.ensure_future(self._simple.run())
        output = self._simple.output()
        getter: asyncio.Task | None = None
        try:
            while True:
                getter = asyncio.ensure_future(output.get())
                done, _ = await asyncio.wait(
                    {getter, task}, return_when=asyncio.FIRST_COMPLETED
                )
                if getter in done:
                    hits = getter.result()
                    getter = None
                    await self._notify(hits)
                    continue
                task.result()
                return
        finally:
            if getter is not None and not getter.done():
                getter.cancel()
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    async def _notify(self, hits: list[Hit]) -> None:
        if not hits:
            return
        subs = list(self._subs.values())
        await asyncio.gather(*(self._deliver(sub, hits) for sub in subs))

    async def _deliver(self, sub: Subscription, hits: list[Hit]) -> None:
        timeout = self._sub_timeout.total_seconds()
        try:
            await asyncio.wait_for(sub.output().put(hits), timeout)
        except asyncio.TimeoutError:
            _log.warning(
                "dropped notification",
                extra={"ctx": "subscription monitor", "timeout": timeout},
            )