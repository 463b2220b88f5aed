"""Per-batch monitoring pipeline: read, classify, reschedule, evaluate."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from ..config import SchedulerConfig, ThresholdsConfig
from ..errors import READ_ERRORS
from ..interfaces.lending import LendingReader
from ..interfaces.state_store import MonitoringStateStore
from ..liquidation import classify
from ..models import AccountSnapshot, DueAccount, Tier, TickSummary
from .evaluator import OpportunityEvaluator

logger = logging.getLogger(__name__)

READ_FAILED = "read-failed"
EVALUATION_FAILED = "evaluation-failed"

# Per-account outcomes counted into a TickSummary
_READ_FAILED = "read_failed"
_EVALUATED = "evaluated"
_OPPORTUNITY = "opportunity"
_ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountMonitor:
    """Runs one batch of claimed accounts through the monitoring pipeline.

    The batch is read with a single aggregate call. Each account is then
    handled independently under a concurrency bound; an exception in one
    account is logged and counted, never propagated to the caller.
    """

    def __init__(
        self,
        reader: LendingReader,
        store: MonitoringStateStore,
        evaluator: OpportunityEvaluator,
        thresholds: ThresholdsConfig,
        scheduler: SchedulerConfig,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._reader = reader
        self._store = store
        self._evaluator = evaluator
        self._thresholds = thresholds
        self._recheck = scheduler.tier_recheck_seconds
        self._semaphore = asyncio.Semaphore(scheduler.evaluation_concurrency)
        self._clock = clock

    async def _read_snapshots(
        self, accounts: list[DueAccount]
    ) -> list[AccountSnapshot | None]:
        try:
            return await self._reader.get_account_snapshots([a.address for a in accounts])
        except READ_ERRORS as e:
            logger.warning("Batch read of %d accounts failed: %s", len(accounts), e)
            return [None] * len(accounts)

    async def process(
        self, accounts: list[DueAccount], retry_seconds: float
    ) -> TickSummary:
        if not accounts:
            return TickSummary()

        snapshots = await self._read_snapshots(accounts)
        outcomes = await asyncio.gather(
            *(
                self._guarded(account, snapshot, retry_seconds)
                for account, snapshot in zip(accounts, snapshots)
            )
        )
        return TickSummary(
            claimed=len(accounts),
            read_failed=outcomes.count(_READ_FAILED),
            evaluated=outcomes.count(_EVALUATED) + outcomes.count(_OPPORTUNITY),
            opportunities=outcomes.count(_OPPORTUNITY),
            errors=outcomes.count(_ERROR),
        )

    async def _guarded(
        self,
        account: DueAccount,
        snapshot: AccountSnapshot | None,
        retry_seconds: float,
    ) -> str:
        async with self._semaphore:
            try:
                return await self._process_one(account, snapshot, retry_seconds)
            except Exception as e:
                logger.warning("Account %s failed: %s", account.address, e, exc_info=True)
                return _ERROR

    async def _process_one(
        self,
        account: DueAccount,
        snapshot: AccountSnapshot | None,
        retry_seconds: float,
    ) -> str:
        now = self._clock()

        if snapshot is None:
            await self._store.record_result(
                account.account_id,
                error=READ_FAILED,
                next_check_at=now + timedelta(seconds=retry_seconds),
            )
            return _READ_FAILED

        tier = classify(snapshot.health_measure, self._thresholds)
        await self._store.record_result(
            account.account_id,
            health_measure=snapshot.health_measure,
            tier=tier,
            next_check_at=now + timedelta(seconds=self._recheck[tier]),
        )

        if tier is not Tier.LIQUIDATABLE:
            return _EVALUATED

        try:
            opportunity = await self._evaluator.evaluate(account, snapshot)
        except Exception as e:
            logger.warning("Evaluation of %s failed: %s", account.address, e, exc_info=True)
            await self._store.record_result(
                account.account_id,
                error=f"{EVALUATION_FAILED}: {e}",
                next_check_at=now + timedelta(seconds=retry_seconds),
            )
            return _ERROR

        await self._store.record_opportunity(account.account_id, opportunity)
        return _OPPORTUNITY if opportunity.is_actionable else _EVALUATED
