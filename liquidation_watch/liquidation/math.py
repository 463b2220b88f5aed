"""Exact integer liquidation math: no I/O, no floats."""
from __future__ import annotations

from ..constants import BPS
from ..errors import InvalidInputError


def pow10(decimals: int) -> int:
    if decimals < 0:
        raise InvalidInputError(f"decimals must not be negative, got {decimals}")
    return 10**decimals


def div_trunc(numerator: int, denominator: int) -> int:
    """Integer division truncating toward zero.

    ``//`` floors, which differs for negative numerators (profit can be
    negative), so the sign is handled explicitly.
    """
    if denominator <= 0:
        raise InvalidInputError(f"divisor must be positive, got {denominator}")
    q = abs(numerator) // denominator
    return q if numerator >= 0 else -q


def compute_max_repay(
    debt_amount: int,
    close_factor_bps: int,
    collateral_balance: int,
    price_debt: int,
    price_col: int,
    liquidation_bonus_bps: int,
    debt_decimals: int,
    col_decimals: int,
) -> int:
    """Largest debt repayment allowed by both the close factor and the collateral.

    ``max_by_collateral`` is the repay amount whose bonus-inflated value equals
    the account's collateral in this reserve::

        collateral * price_col * 10000 * 10^debt_decimals
        -------------------------------------------------
        price_debt * bonus_bps * 10^col_decimals

    Raises:
        InvalidInputError: if a price, the bonus or the collateral balance is
            not strictly positive.
    """
    if price_debt <= 0 or price_col <= 0 or liquidation_bonus_bps <= 0 or collateral_balance <= 0:
        raise InvalidInputError(
            "price_debt, price_col, liquidation_bonus_bps and collateral_balance "
            "must be positive"
        )
    if debt_amount < 0 or close_factor_bps < 0:
        raise InvalidInputError("debt_amount and close_factor_bps must not be negative")

    max_by_close_factor = div_trunc(debt_amount * close_factor_bps, BPS)
    max_by_collateral = div_trunc(
        collateral_balance * price_col * BPS * pow10(debt_decimals),
        price_debt * liquidation_bonus_bps * pow10(col_decimals),
    )
    return min(max_by_close_factor, max_by_collateral)
