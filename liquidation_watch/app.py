"""Application wiring: build every component from an ``AppConfig``."""
from __future__ import annotations

import asyncio
import logging
import signal

from .chains.evm import EvmClient, MulticallBatcher, RotatingProvider
from .config import AppConfig
from .discovery import SubgraphDiscovery
from .errors import ConfigError
from .models import TickSummary
from .protocols.aave import AaveV3Adapter
from .services import AccountMonitor, AssetSync, DiscoveryRunner, OpportunityEvaluator, TierWorker
from .storage import SqliteStateStore

logger = logging.getLogger(__name__)


class Application:
    """Owns the provider, store and services for one network."""

    def __init__(self, config: AppConfig) -> None:
        self._config = config
        self.network_id = config.network.chain_id

        self.provider = RotatingProvider.from_config(config.rpc, self.network_id)
        self.client = EvmClient(self.provider)
        self.batcher = MulticallBatcher(self.client, config.contracts.multicall3)
        self.adapter = AaveV3Adapter(self.client, self.batcher, config.contracts)

        self.store = SqliteStateStore(
            config.storage.sqlite_path,
            claim_lease_seconds=config.scheduler.claim_lease_seconds,
        )
        self.evaluator = OpportunityEvaluator(
            self.adapter, self.store, self.network_id, config.profit
        )
        self.monitor = AccountMonitor(
            self.adapter,
            self.store,
            self.evaluator,
            config.thresholds,
            config.scheduler,
        )

    async def verify_chain(self) -> None:
        """Fail fast when the RPC endpoints serve a different chain."""
        actual = await self.client.chain_id()
        if actual != self.network_id:
            raise ConfigError(
                f"RPC chain id {actual} does not match configured chain id {self.network_id}"
            )
        logger.info("Connected to chain %d via %s", actual, self.provider.active_url)

    def worker(self, name: str) -> TierWorker:
        worker_cfg = self._config.scheduler.workers.get(name)
        if worker_cfg is None:
            known = ", ".join(sorted(self._config.scheduler.workers))
            raise ConfigError(f"Unknown worker '{name}' (configured: {known})")
        return TierWorker(worker_cfg, self.store, self.monitor, self.network_id)

    async def init_db(self) -> None:
        await self.store.init_schema()

    async def sync_assets(self) -> int:
        return await AssetSync(self.adapter, self.store, self.network_id).run()

    async def discover(self) -> TickSummary:
        discovery = self._config.discovery
        retry = min(w.retry_seconds for w in self._config.scheduler.workers.values())
        runner = DiscoveryRunner(
            SubgraphDiscovery(discovery, timeout=self._config.rpc.timeout),
            self.store,
            self.monitor,
            self.network_id,
            batch_size=discovery.batch_size,
            retry_seconds=retry,
        )
        return await runner.run()

    async def run_workers(self, names: list[str]) -> None:
        """Run the named workers concurrently until SIGINT or SIGTERM."""
        workers = [self.worker(name) for name in names]

        loop = asyncio.get_running_loop()

        def _handle_shutdown() -> None:
            logger.info("Shutdown signal received, stopping workers...")
            for w in workers:
                w.stop()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, _handle_shutdown)
            except NotImplementedError:
                logger.debug("Signal handlers not supported on this platform")

        try:
            await asyncio.gather(*(w.run() for w in workers))
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                try:
                    loop.remove_signal_handler(sig)
                except NotImplementedError:
                    pass

    async def close(self) -> None:
        await self.provider.close()
