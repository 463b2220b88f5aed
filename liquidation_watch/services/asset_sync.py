"""Copy reserve decimals and symbols into the asset reference table."""
from __future__ import annotations

import logging

from ..protocols.aave import AaveV3Adapter
from ..storage import SqliteStateStore

logger = logging.getLogger(__name__)


class AssetSync:
    def __init__(self, adapter: AaveV3Adapter, store: SqliteStateStore, network_id: int) -> None:
        self._adapter = adapter
        self._store = store
        self._network_id = network_id

    async def run(self) -> int:
        """Upsert every pool reserve; returns the number of reserves seen."""
        reserves = list(await self._adapter.get_reserves())
        configs = await self._adapter.get_reserve_configs(reserves)
        symbols = await self._adapter.get_symbols(reserves)

        for asset in reserves:
            config = configs.get(asset)
            symbol = symbols.get(asset)
            await self._store.upsert_asset(
                self._network_id,
                asset,
                symbol=symbol,
                decimals=config.decimals if config else None,
            )
            logger.info(
                "  %s %s decimals=%s",
                asset,
                symbol or "?",
                config.decimals if config else "?",
            )

        logger.info("Synced %d reserves on network %d", len(reserves), self._network_id)
        return len(reserves)
