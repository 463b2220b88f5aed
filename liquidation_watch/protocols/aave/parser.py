"""Pure decoding functions for Aave V3 return data."""
from __future__ import annotations

from typing import Sequence

from ...constants import HEALTH_MEASURE_LIMIT
from ...models import AccountSnapshot, ReserveConfig, UserReserve
from .contracts import (
    GET_CONFIGURATION,
    GET_USER_ACCOUNT_DATA,
    GET_USER_CONFIGURATION,
    GET_USER_RESERVE_DATA,
)

# ReserveConfigurationMap bit layout
LTV_START = 0
LIQUIDATION_THRESHOLD_START = 16
LIQUIDATION_BONUS_START = 32
DECIMALS_START = 48
ACTIVE_BIT = 56
FROZEN_BIT = 57
BORROWING_ENABLED_BIT = 58
STABLE_BORROWING_ENABLED_BIT = 59
PAUSED_BIT = 60
RESERVE_FACTOR_START = 64

BPS_FIELD_BITS = 16
DECIMALS_BITS = 8


def _field(data: int, start: int, bits: int) -> int:
    return (data >> start) & ((1 << bits) - 1)


def _flag(data: int, bit: int) -> bool:
    return bool((data >> bit) & 1)


def decode_reserve_configuration(asset: str, data: int) -> ReserveConfig:
    """Unpack the reserve configuration bitfield.

    Example:
        bonus 10500 (5%), threshold 8250, ltv 8000, 18 decimals, active.
    """
    return ReserveConfig(
        asset=asset.lower(),
        ltv_bps=_field(data, LTV_START, BPS_FIELD_BITS),
        liquidation_threshold_bps=_field(data, LIQUIDATION_THRESHOLD_START, BPS_FIELD_BITS),
        liquidation_bonus_bps=_field(data, LIQUIDATION_BONUS_START, BPS_FIELD_BITS),
        decimals=_field(data, DECIMALS_START, DECIMALS_BITS),
        reserve_factor_bps=_field(data, RESERVE_FACTOR_START, BPS_FIELD_BITS),
        is_active=_flag(data, ACTIVE_BIT),
        is_frozen=_flag(data, FROZEN_BIT),
        borrowing_enabled=_flag(data, BORROWING_ENABLED_BIT),
        stable_borrowing_enabled=_flag(data, STABLE_BORROWING_ENABLED_BIT),
        is_paused=_flag(data, PAUSED_BIT),
    )


def is_borrowing(bitmap: int, reserve_index: int) -> bool:
    return _flag(bitmap, reserve_index * 2)


def is_using_as_collateral(bitmap: int, reserve_index: int) -> bool:
    return _flag(bitmap, reserve_index * 2 + 1)


def flagged_reserves(bitmap: int, reserves: Sequence[str]) -> list[str]:
    """Reserves the user either borrows or uses as collateral, in reserve order."""
    return [
        asset
        for i, asset in enumerate(reserves)
        if is_borrowing(bitmap, i) or is_using_as_collateral(bitmap, i)
    ]


def normalize_health_measure(health_factor: int, total_debt_base: int) -> int | None:
    """``None`` when there is no debt or the value does not fit numeric(38,18)."""
    if total_debt_base == 0 or health_factor >= HEALTH_MEASURE_LIMIT:
        return None
    return health_factor


def parse_account_data(raw: bytes) -> AccountSnapshot:
    collateral, debt, available, liq_threshold, ltv, health_factor = (
        GET_USER_ACCOUNT_DATA.decode(raw)
    )
    return AccountSnapshot(
        total_collateral_base=collateral,
        total_debt_base=debt,
        health_measure=normalize_health_measure(health_factor, debt),
        available_borrows_base=available,
        liquidation_threshold_bps=liq_threshold,
        ltv_bps=ltv,
    )


def parse_configuration(raw: bytes) -> int:
    """Unwrap the single-field ``(uint256 data)`` struct."""
    ((data,),) = GET_CONFIGURATION.decode(raw)
    return data


def parse_user_configuration(raw: bytes) -> int:
    ((data,),) = GET_USER_CONFIGURATION.decode(raw)
    return data


def parse_user_reserve_data(asset: str, raw: bytes) -> UserReserve:
    values = GET_USER_RESERVE_DATA.decode(raw)
    a_token_balance, stable_debt, variable_debt = values[0], values[1], values[2]
    usage_as_collateral = bool(values[8])
    return UserReserve(
        asset=asset.lower(),
        collateral_balance=a_token_balance,
        debt_amount=stable_debt + variable_debt,
        usage_as_collateral=usage_as_collateral,
    )
