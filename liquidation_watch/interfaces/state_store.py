"""Monitoring state store protocol: persisted scheduling state and results."""
from datetime import datetime
from typing import Protocol

from ..models import DueAccount, Opportunity, Tier


class MonitoringStateStore(Protocol):
    """Persistence the scheduler depends on.

    Each call is a single atomic write or read.
    """

    async def claim_due(
        self, network_id: int, tier: Tier, limit: int
    ) -> list[DueAccount]: ...

    async def record_result(
        self,
        account_id: int,
        *,
        next_check_at: datetime,
        health_measure: int | None = None,
        tier: Tier | None = None,
        error: str | None = None,
    ) -> None: ...

    async def record_opportunity(
        self, account_id: int, opportunity: Opportunity
    ) -> None: ...


class AssetReferenceData(Protocol):
    """Asset metadata lookup; a missing entry means the asset cannot be evaluated."""

    async def get_asset_decimals(
        self, network_id: int, assets: list[str]
    ) -> dict[str, int]: ...
