"""Data models: all frozen (immutable).

Monetary amounts and health measures are plain ``int`` fixed-point values.
The only float in this module is ``UsdApprox``, which is used for ranking
opportunities and comparing against the minimum profit, never for amounts.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import NewType

UsdApprox = NewType("UsdApprox", float)


class Tier(str, Enum):
    """Monitoring urgency band, most urgent last."""

    HEALTHY = "healthy"
    NORMAL_WATCH = "normal-watch"
    HIGH_FREQ_WATCH = "high-freq-watch"
    LIQUIDATABLE = "liquidatable-candidate"

    @classmethod
    def parse(cls, value: str | Tier) -> Tier:
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown tier '{value}'") from None


@dataclass(frozen=True)
class DueAccount:
    """An account row handed out by ``claim_due``."""

    account_id: int
    address: str


@dataclass(frozen=True)
class AccountSnapshot:
    """One ``getUserAccountData`` reading, all values in base-currency units.

    ``health_measure`` is ``None`` when the account has no debt or the raw
    value is too large to persist.
    """

    total_collateral_base: int
    total_debt_base: int
    health_measure: int | None
    available_borrows_base: int = 0
    liquidation_threshold_bps: int = 0
    ltv_bps: int = 0


@dataclass(frozen=True)
class ReserveConfig:
    """Decoded per-reserve configuration bitfield."""

    asset: str
    ltv_bps: int
    liquidation_threshold_bps: int
    liquidation_bonus_bps: int
    decimals: int
    reserve_factor_bps: int = 0
    is_active: bool = True
    is_frozen: bool = False
    borrowing_enabled: bool = True
    stable_borrowing_enabled: bool = False
    is_paused: bool = False

    @property
    def usage_as_collateral_enabled(self) -> bool:
        # Aave V3 has no explicit flag; a zero threshold disables collateral use.
        return self.liquidation_threshold_bps > 0


@dataclass(frozen=True)
class UserReserve:
    """One user's balances in one reserve, raw token units."""

    asset: str
    collateral_balance: int = 0
    debt_amount: int = 0
    usage_as_collateral: bool = False


@dataclass(frozen=True)
class UserPositions:
    """Non-zero collateral and debt reserves of one account."""

    collaterals: tuple[UserReserve, ...] = ()
    debts: tuple[UserReserve, ...] = ()

    @property
    def assets(self) -> tuple[str, ...]:
        """Union of involved assets, lower-cased, first-seen order."""
        seen: dict[str, None] = {}
        for reserve in self.collaterals + self.debts:
            seen.setdefault(reserve.asset.lower(), None)
        return tuple(seen)


@dataclass(frozen=True)
class ProfitResult:
    """Output of the financial model for one (debt, collateral) pair."""

    repay_amount: int
    profit_base: int
    profit_usd_approx: UsdApprox


@dataclass(frozen=True)
class Opportunity:
    """A persisted liquidation evaluation for one account.

    When no pair qualifies, the asset and amount fields are ``None`` and
    ``notes`` explains why.
    """

    health_measure: int | None
    debt_asset: str | None = None
    collateral_asset: str | None = None
    repay_amount: int | None = None
    profit_base: int | None = None
    profit_usd_approx: UsdApprox | None = None
    total_collateral_base: int | None = None
    total_debt_base: int | None = None
    notes: str | None = None

    @property
    def is_actionable(self) -> bool:
        return self.debt_asset is not None and self.collateral_asset is not None


@dataclass(frozen=True)
class TickSummary:
    """Counters for one scheduler tick."""

    claimed: int = 0
    read_failed: int = 0
    evaluated: int = 0
    opportunities: int = 0
    errors: int = 0

    def __add__(self, other: TickSummary) -> TickSummary:
        return TickSummary(
            claimed=self.claimed + other.claimed,
            read_failed=self.read_failed + other.read_failed,
            evaluated=self.evaluated + other.evaluated,
            opportunities=self.opportunities + other.opportunities,
            errors=self.errors + other.errors,
        )


@dataclass(frozen=True)
class AccountState:
    """Persisted scheduling state of one monitored account."""

    account_id: int
    network_id: int
    address: str
    tier: Tier
    next_check_at: datetime
    last_check_at: datetime | None = None
    last_health_measure: int | None = None
    last_error: str | None = None
    is_active: bool = True
