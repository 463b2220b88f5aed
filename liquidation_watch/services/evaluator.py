"""Liquidation opportunity evaluation for one under-water account."""
from __future__ import annotations

import logging

from ..config import ProfitConfig
from ..errors import READ_ERRORS, InvalidInputError
from ..interfaces.lending import LendingReader
from ..interfaces.state_store import AssetReferenceData
from ..liquidation import close_factor_for, evaluate_profit
from ..models import AccountSnapshot, DueAccount, Opportunity, ProfitResult, UserReserve

logger = logging.getLogger(__name__)


class OpportunityEvaluator:
    """Pick the most profitable (debt, collateral) pair of an account.

    Every pair of non-zero debt and non-zero collateral is priced with the
    exact integer model. Pairs with a missing price or missing decimals are
    skipped, as are pairs whose collateral reserve cannot be read or seized.
    The best pair wins
    only if its approximate USD profit reaches ``min_profit_usd``; otherwise
    the returned opportunity carries no assets and a note.
    """

    def __init__(
        self,
        reader: LendingReader,
        assets: AssetReferenceData,
        network_id: int,
        profit: ProfitConfig,
    ) -> None:
        self._reader = reader
        self._assets = assets
        self._network_id = network_id
        self._profit = profit

    async def evaluate(self, account: DueAccount, snapshot: AccountSnapshot) -> Opportunity:
        base = {
            "health_measure": snapshot.health_measure,
            "total_collateral_base": snapshot.total_collateral_base,
            "total_debt_base": snapshot.total_debt_base,
        }

        positions = await self._reader.get_user_positions(account.address)
        if not positions.collaterals or not positions.debts:
            return Opportunity(**base, notes="no collateral or debt positions found")

        assets = list(positions.assets)
        prices = await self._reader.get_prices(assets)
        decimals = await self._assets.get_asset_decimals(self._network_id, assets)
        base_unit = await self._reader.get_base_unit()

        close_factor_bps = close_factor_for(
            snapshot.health_measure,
            self._profit.close_factor_bps,
            self._profit.full_close_factor_bps,
            self._profit.full_close_factor_below,
        )

        best: tuple[UserReserve, UserReserve, ProfitResult] | None = None
        for debt in positions.debts:
            for col in positions.collaterals:
                result = await self._evaluate_pair(
                    account, debt, col, prices, decimals, base_unit, close_factor_bps
                )
                if result is None:
                    continue
                if best is None or result.profit_usd_approx > best[2].profit_usd_approx:
                    best = (debt, col, result)

        if best is None:
            return Opportunity(**base, notes="no evaluable debt/collateral pair")

        debt, col, result = best
        if result.profit_usd_approx < self._profit.min_profit_usd:
            return Opportunity(
                **base,
                profit_usd_approx=result.profit_usd_approx,
                notes=(
                    f"best pair {debt.asset}/{col.asset} estimated "
                    f"{result.profit_usd_approx:.2f} USD, below minimum "
                    f"{self._profit.min_profit_usd:.2f}"
                ),
            )

        logger.info(
            "Opportunity %s: repay %d of %s for %s, est. profit %.2f USD",
            account.address,
            result.repay_amount,
            debt.asset,
            col.asset,
            result.profit_usd_approx,
        )
        return Opportunity(
            **base,
            debt_asset=debt.asset,
            collateral_asset=col.asset,
            repay_amount=result.repay_amount,
            profit_base=result.profit_base,
            profit_usd_approx=result.profit_usd_approx,
            notes=f"close factor {close_factor_bps} bps",
        )

    async def _evaluate_pair(
        self,
        account: DueAccount,
        debt: UserReserve,
        col: UserReserve,
        prices: dict[str, int],
        decimals: dict[str, int],
        base_unit: int,
        close_factor_bps: int,
    ) -> ProfitResult | None:
        if col.collateral_balance <= 0:
            return None
        price_debt = prices.get(debt.asset, 0)
        price_col = prices.get(col.asset, 0)
        if price_debt <= 0 or price_col <= 0:
            logger.debug("Skipping %s/%s: missing price", debt.asset, col.asset)
            return None
        if debt.asset not in decimals or col.asset not in decimals:
            logger.debug("Skipping %s/%s: unknown decimals", debt.asset, col.asset)
            return None

        try:
            reserve = await self._reader.get_reserve_config(col.asset)
        except READ_ERRORS as e:
            logger.warning("Skipping %s/%s: reserve read failed: %s", debt.asset, col.asset, e)
            return None
        if not reserve.usage_as_collateral_enabled:
            return None

        try:
            return evaluate_profit(
                debt_amount=debt.debt_amount,
                collateral_balance=col.collateral_balance,
                price_debt=price_debt,
                price_col=price_col,
                base_unit=base_unit,
                close_factor_bps=close_factor_bps,
                liquidation_bonus_bps=reserve.liquidation_bonus_bps,
                debt_decimals=decimals[debt.asset],
                col_decimals=decimals[col.asset],
                dex_fee_bps=self._profit.dex_fee_bps,
                extra_cost_base=self._profit.extra_cost_base,
            )
        except InvalidInputError as e:
            logger.warning(
                "Skipping %s/%s for %s: %s", debt.asset, col.asset, account.address, e
            )
            return None
