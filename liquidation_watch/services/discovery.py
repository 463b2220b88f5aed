"""Seed discovered borrowers and give them a first evaluation."""
from __future__ import annotations

import logging

from ..interfaces.discovery import AccountSource
from ..models import TickSummary
from ..storage import SqliteStateStore
from .monitor import AccountMonitor

logger = logging.getLogger(__name__)


class DiscoveryRunner:
    """Registers every discovered borrower, then runs it through the monitor
    in batches so its tier is known before the workers pick it up."""

    def __init__(
        self,
        source: AccountSource,
        store: SqliteStateStore,
        monitor: AccountMonitor,
        network_id: int,
        batch_size: int = 100,
        retry_seconds: float = 60.0,
    ) -> None:
        self._source = source
        self._store = store
        self._monitor = monitor
        self._network_id = network_id
        self._batch_size = batch_size
        self._retry_seconds = retry_seconds

    async def run(self) -> TickSummary:
        total = TickSummary()
        async for page in self._source.iter_borrowers():
            accounts = await self._store.seed_accounts(self._network_id, page)
            for i in range(0, len(accounts), self._batch_size):
                batch = accounts[i:i + self._batch_size]
                total = total + await self._monitor.process(batch, self._retry_seconds)
            logger.info(
                "Discovery progress: %d accounts processed, %d opportunities",
                total.claimed,
                total.opportunities,
            )
        return total
