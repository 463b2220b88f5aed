"""Aave V3 adapter: account, reserve and oracle reads over the batch layer."""
from __future__ import annotations

import logging

from ...chains.evm.abi import checksum
from ...chains.evm.client import EvmClient
from ...chains.evm.multicall import Call, MulticallBatcher
from ...config import ContractsConfig
from ...errors import DecodeError
from ...models import AccountSnapshot, ReserveConfig, UserPositions
from . import parser
from .contracts import (
    BASE_CURRENCY_UNIT,
    ERC20_SYMBOL,
    GET_ASSETS_PRICES,
    GET_CONFIGURATION,
    GET_RESERVES_LIST,
    GET_USER_ACCOUNT_DATA,
    GET_USER_CONFIGURATION,
    GET_USER_RESERVE_DATA,
)

logger = logging.getLogger(__name__)


class AaveV3Adapter:
    """Read Aave V3 pool state for the scheduler and asset sync.

    The reserve list, reserve configurations and the oracle base unit are
    cached for the adapter's lifetime; reserve changes are rare.
    """

    def __init__(
        self,
        client: EvmClient,
        batcher: MulticallBatcher,
        contracts: ContractsConfig,
    ) -> None:
        self._client = client
        self._batcher = batcher
        self._pool = checksum(contracts.pool)
        self._data_provider = checksum(contracts.pool_data_provider)
        self._oracle = checksum(contracts.oracle)
        self._reserves: tuple[str, ...] | None = None
        self._reserve_cache: dict[str, ReserveConfig] = {}
        self._base_unit: int | None = None

    # ------------------------------------------------------------------
    # Account health
    # ------------------------------------------------------------------

    async def get_account_snapshots(
        self, addresses: list[str]
    ) -> list[AccountSnapshot | None]:
        """One ``getUserAccountData`` per address in a single multicall."""
        calls = [
            Call(self._pool, GET_USER_ACCOUNT_DATA.encode(checksum(a)))
            for a in addresses
        ]
        return await self._batcher.map(calls, parser.parse_account_data)

    # ------------------------------------------------------------------
    # Reserves
    # ------------------------------------------------------------------

    async def get_reserves(self) -> tuple[str, ...]:
        if self._reserves is None:
            raw = await self._client.eth_call(self._pool, GET_RESERVES_LIST.encode())
            (reserves,) = GET_RESERVES_LIST.decode(raw)
            self._reserves = tuple(a.lower() for a in reserves)
            logger.info("Loaded %d reserves", len(self._reserves))
        return self._reserves

    async def get_reserve_config(self, asset: str) -> ReserveConfig:
        key = asset.lower()
        if key not in self._reserve_cache:
            raw = await self._client.eth_call(
                self._pool, GET_CONFIGURATION.encode(checksum(asset))
            )
            self._reserve_cache[key] = parser.decode_reserve_configuration(
                key, parser.parse_configuration(raw)
            )
        return self._reserve_cache[key]

    async def get_reserve_configs(self, assets: list[str]) -> dict[str, ReserveConfig]:
        """Batch-load configurations; assets whose read fails are omitted."""
        missing = [a.lower() for a in assets if a.lower() not in self._reserve_cache]
        if missing:
            calls = [
                Call(self._pool, GET_CONFIGURATION.encode(checksum(a))) for a in missing
            ]
            for asset, data in zip(missing, await self._batcher.map(calls, parser.parse_configuration)):
                if data is None:
                    logger.warning("Reserve configuration unavailable for %s", asset)
                    continue
                self._reserve_cache[asset] = parser.decode_reserve_configuration(asset, data)
        return {
            a.lower(): self._reserve_cache[a.lower()]
            for a in assets
            if a.lower() in self._reserve_cache
        }

    # ------------------------------------------------------------------
    # User positions
    # ------------------------------------------------------------------

    async def get_user_positions(self, user: str) -> UserPositions:
        """Non-zero collateral and debt balances of ``user``.

        The user configuration bitmap narrows the reserves to read; each
        flagged reserve then costs one ``getUserReserveData`` sub-call.
        """
        reserves = await self.get_reserves()
        raw = await self._client.eth_call(
            self._pool, GET_USER_CONFIGURATION.encode(checksum(user))
        )
        bitmap = parser.parse_user_configuration(raw)
        flagged = parser.flagged_reserves(bitmap, reserves)
        if not flagged:
            return UserPositions()

        calls = [
            Call(self._data_provider, GET_USER_RESERVE_DATA.encode(checksum(a), checksum(user)))
            for a in flagged
        ]
        raws = await self._batcher.aggregate(calls)

        collaterals = []
        debts = []
        for asset, raw_reserve in zip(flagged, raws):
            if raw_reserve is None:
                logger.warning("getUserReserveData reverted for %s / %s", user, asset)
                continue
            try:
                reserve = parser.parse_user_reserve_data(asset, raw_reserve)
            except DecodeError as e:
                logger.warning("Bad reserve data for %s / %s: %s", user, asset, e)
                continue
            if reserve.usage_as_collateral and reserve.collateral_balance > 0:
                collaterals.append(reserve)
            if reserve.debt_amount > 0:
                debts.append(reserve)

        return UserPositions(collaterals=tuple(collaterals), debts=tuple(debts))

    # ------------------------------------------------------------------
    # Oracle
    # ------------------------------------------------------------------

    async def get_prices(self, assets: list[str]) -> dict[str, int]:
        """Oracle prices in base-currency units, keyed by lower-cased address."""
        if not assets:
            return {}
        raw = await self._client.eth_call(
            self._oracle, GET_ASSETS_PRICES.encode([checksum(a) for a in assets])
        )
        (prices,) = GET_ASSETS_PRICES.decode(raw)
        if len(prices) != len(assets):
            raise DecodeError(f"getAssetsPrices returned {len(prices)} prices for {len(assets)} assets")
        return {a.lower(): p for a, p in zip(assets, prices)}

    async def get_base_unit(self) -> int:
        if self._base_unit is None:
            raw = await self._client.eth_call(self._oracle, BASE_CURRENCY_UNIT.encode())
            (self._base_unit,) = BASE_CURRENCY_UNIT.decode(raw)
        return self._base_unit

    # ------------------------------------------------------------------
    # ERC-20 metadata
    # ------------------------------------------------------------------

    async def get_symbols(self, assets: list[str]) -> dict[str, str | None]:
        """Best-effort ``symbol()`` per asset; non-standard tokens map to None."""
        calls = [Call(checksum(a), ERC20_SYMBOL.encode()) for a in assets]
        symbols = await self._batcher.map(calls, _decode_symbol)
        return {a.lower(): s for a, s in zip(assets, symbols)}


def _decode_symbol(raw: bytes) -> str:
    (symbol,) = ERC20_SYMBOL.decode(raw)
    return symbol
