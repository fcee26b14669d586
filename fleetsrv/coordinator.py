"""Coordinators that turn policy revisions into coordinated policy revisions."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import replace

from fleetsrv.model import Policy

_log = logging.getLogger(__name__)


class Coordinator(ABC):
    """Processes the revisions of one policy and produces coordinated revisions."""

    @abstractmethod
    def name(self) -> str:
        """Return the name of the coordinator."""

    @abstractmethod
    async def run(self) -> None:
        """Process policies until cancelled."""

    @abstractmethod
    async def update(self, policy: Policy) -> None:
        """Hand over a new policy revision; the work is done by ``run``."""

    @abstractmethod
    def output(self) -> asyncio.Queue[Policy]:
        """Return the queue that receives coordinated policies."""


Factory = Callable[[Policy], Coordinator]


class CoordinatorZero(Coordinator):
    """The v0 coordinator: passes a policy through, bumping its coordinator index."""

    def __init__(self, policy: Policy) -> None:
        self._policy = policy
        self._in: asyncio.Queue[Policy] = asyncio.Queue()
        self._out: asyncio.Queue[Policy] = asyncio.Queue(maxsize=1)
        self._log = logging.LoggerAdapter(
            _log, {"ctx": "coordinator v0", "policyId": policy.policy_id}
        )

    def name(self) -> str:
        return "v0"

    async def run(self) -> None:
        await self._handle(self._policy)
        while True:
            policy = await self._in.get()
            await self._handle(policy)

    async def update(self, policy: Policy) -> None:
        await self._in.put(policy)

    def output(self) -> asyncio.Queue[Policy]:
        return self._out

    async def _handle(self, policy: Policy) -> None:
        try:
            await self._update_policy(policy)
        except Exception:
            self._log.exception("failed to handle policy")

    async def _update_policy(self, policy: Policy) -> None:
        # v0 coordination leaves the payload unchanged.
        new_data = policy.data
        if policy.coordinator_idx == 0 or new_data != policy.data:
            coordinated = replace(
                policy, coordinator_idx=policy.coordinator_idx + 1, data=new_data
            )
            self._policy = coordinated
            await self._out.put(coordinated)