"""Profit estimation for a single (debt, collateral) liquidation pair."""
from __future__ import annotations

from ..constants import BPS
from ..errors import InvalidInputError
from ..models import ProfitResult, UsdApprox
from .math import compute_max_repay, div_trunc, pow10


def evaluate_profit(
    *,
    debt_amount: int,
    collateral_balance: int,
    price_debt: int,
    price_col: int,
    base_unit: int,
    close_factor_bps: int,
    liquidation_bonus_bps: int,
    debt_decimals: int,
    col_decimals: int,
    dex_fee_bps: int = 0,
    extra_cost_base: int = 0,
) -> ProfitResult:
    """Estimate repay amount and profit in oracle base-currency units.

    The fee is charged on the repaid leg. ``profit_usd_approx`` divides by
    ``base_unit`` as a float and is only meant for ranking.
    """
    if base_unit <= 0:
        raise InvalidInputError(f"base_unit must be positive, got {base_unit}")

    repay_amount = compute_max_repay(
        debt_amount=debt_amount,
        close_factor_bps=close_factor_bps,
        collateral_balance=collateral_balance,
        price_debt=price_debt,
        price_col=price_col,
        liquidation_bonus_bps=liquidation_bonus_bps,
        debt_decimals=debt_decimals,
        col_decimals=col_decimals,
    )

    repay_value_base = div_trunc(repay_amount * price_debt, pow10(debt_decimals))
    seized_value_base = div_trunc(repay_value_base * liquidation_bonus_bps, BPS)
    fee_base = div_trunc(repay_value_base * dex_fee_bps, BPS)

    profit_base = seized_value_base - repay_value_base - fee_base - extra_cost_base

    return ProfitResult(
        repay_amount=repay_amount,
        profit_base=profit_base,
        profit_usd_approx=to_usd_approx(profit_base, base_unit),
    )


def to_usd_approx(amount_base: int, base_unit: int) -> UsdApprox:
    """Lossy conversion of a base-currency amount for display and ranking."""
    return UsdApprox(amount_base / base_unit)
