"""Tier worker: a periodic loop that claims due accounts and processes them."""
from __future__ import annotations

import asyncio
import logging
from enum import Enum

from ..config import WorkerConfig
from ..interfaces.state_store import MonitoringStateStore
from ..models import DueAccount, TickSummary
from .monitor import AccountMonitor

logger = logging.getLogger(__name__)


class WorkerState(str, Enum):
    IDLE = "idle"
    TICKING = "ticking"


class TierWorker:
    """Independent periodic loop over one or more tiers.

    A tick claims up to ``batch_size`` due accounts, most urgent tier first,
    and hands them to the monitor as a single batch. A tick requested while
    one is already running is dropped. ``stop()`` lets the in-flight tick
    finish before ``run()`` returns.
    """

    def __init__(
        self,
        config: WorkerConfig,
        store: MonitoringStateStore,
        monitor: AccountMonitor,
        network_id: int,
    ) -> None:
        self.config = config
        self._store = store
        self._monitor = monitor
        self._network_id = network_id
        self._state = WorkerState.IDLE
        self._stop = asyncio.Event()

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def state(self) -> WorkerState:
        return self._state

    async def _claim(self) -> list[DueAccount]:
        claimed: list[DueAccount] = []
        for tier in self.config.tiers:
            remaining = self.config.batch_size - len(claimed)
            if remaining <= 0:
                break
            claimed.extend(await self._store.claim_due(self._network_id, tier, remaining))
        return claimed

    async def tick(self) -> TickSummary | None:
        """Run one tick; returns ``None`` when dropped because one is in flight."""
        if self._state is WorkerState.TICKING:
            logger.debug("[%s] tick already in progress, dropping", self.name)
            return None

        self._state = WorkerState.TICKING
        try:
            accounts = await self._claim()
            if not accounts:
                logger.debug("[%s] nothing due", self.name)
                return TickSummary()

            summary = await self._monitor.process(accounts, self.config.retry_seconds)
            logger.info(
                "[%s] tick: claimed=%d read_failed=%d evaluated=%d opportunities=%d errors=%d",
                self.name,
                summary.claimed,
                summary.read_failed,
                summary.evaluated,
                summary.opportunities,
                summary.errors,
            )
            return summary
        finally:
            self._state = WorkerState.IDLE

    async def run(self) -> None:
        """Tick every ``interval_seconds`` until ``stop()`` is called."""
        logger.info(
            "[%s] starting (tiers=%s, every %.0fs, batch %d)",
            self.name,
            ",".join(t.value for t in self.config.tiers),
            self.config.interval_seconds,
            self.config.batch_size,
        )
        while not self._stop.is_set():
            try:
                await self.tick()
            except Exception as e:
                logger.error("[%s] tick failed: %s", self.name, e, exc_info=True)

            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.config.interval_seconds)
            except asyncio.TimeoutError:
                pass
        logger.info("[%s] stopped", self.name)

    def stop(self) -> None:
        self._stop.set()
