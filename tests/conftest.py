"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from liquidation_watch.config import (
    AppConfig,
    ContractsConfig,
    ProfitConfig,
    RpcConfig,
    SchedulerConfig,
    StorageConfig,
    ThresholdsConfig,
    WorkerConfig,
)
from liquidation_watch.constants import WAD
from liquidation_watch.models import (
    AccountSnapshot,
    DueAccount,
    Opportunity,
    ReserveConfig,
    Tier,
    UserPositions,
)

POOL = "0x" + "11" * 20
DATA_PROVIDER = "0x" + "22" * 20
ORACLE = "0x" + "33" * 20
MULTICALL = "0x" + "44" * 20
USER = "0x" + "aa" * 20
USER_2 = "0x" + "bb" * 20
WETH = "0x" + "e1" * 20
USDC = "0x" + "c1" * 20
WBTC = "0x" + "b1" * 20

BASE_UNIT = 10**8
NETWORK_ID = 42161


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_thresholds() -> ThresholdsConfig:
    return ThresholdsConfig(
        liquidation=WAD,
        high_freq=1_010_000_000_000_000_000,
        normal=1_050_000_000_000_000_000,
    )


@pytest.fixture()
def sample_profit() -> ProfitConfig:
    return ProfitConfig(min_profit_usd=100.0, dex_fee_bps=0)


@pytest.fixture()
def sample_scheduler() -> SchedulerConfig:
    return SchedulerConfig(
        evaluation_concurrency=4,
        workers={
            "highfreq": WorkerConfig(
                name="highfreq",
                tiers=(Tier.LIQUIDATABLE, Tier.HIGH_FREQ_WATCH),
                interval_seconds=0.01,
                batch_size=10,
                retry_seconds=15.0,
            ),
        },
    )


@pytest.fixture()
def sample_app_config(
    sample_thresholds: ThresholdsConfig,
    sample_profit: ProfitConfig,
    sample_scheduler: SchedulerConfig,
    tmp_path: Path,
) -> AppConfig:
    return AppConfig(
        rpc=RpcConfig(endpoints=("https://rpc1.example.com", "https://rpc2.example.com")),
        contracts=ContractsConfig(
            pool=POOL, pool_data_provider=DATA_PROVIDER, oracle=ORACLE, multicall3=MULTICALL
        ),
        thresholds=sample_thresholds,
        profit=sample_profit,
        scheduler=sample_scheduler,
        storage=StorageConfig(sqlite_path=str(tmp_path / "monitor.db")),
    )


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent(f"""\
    network:
      chain_id: 42161
      name: arbitrum
    rpc:
      endpoints: ["https://rpc1.example.com", "https://rpc2.example.com"]
      timeout: 10
      slot_interval_ms: 100
    contracts:
      pool: "{POOL}"
      pool_data_provider: "{DATA_PROVIDER}"
      oracle: "{ORACLE}"
    thresholds:
      liquidation: "1.0"
      high_freq: "1.01"
      normal: "1.05"
    profit:
      min_profit_usd: 50
    scheduler:
      workers:
        highfreq:
          tiers: [liquidatable-candidate, high-freq-watch]
          interval_seconds: 15
    storage:
      sqlite_path: data/test.db
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Deterministic UTC clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------


class FakeReader:
    """In-memory LendingReader keyed by lower-cased address."""

    def __init__(self) -> None:
        self.snapshots: dict[str, AccountSnapshot | None] = {}
        self.positions: dict[str, UserPositions] = {}
        self.reserves: dict[str, ReserveConfig] = {}
        self.prices: dict[str, int] = {}
        self.base_unit = BASE_UNIT
        self.snapshot_error: Exception | None = None
        self.snapshot_calls: list[list[str]] = []

    async def get_account_snapshots(self, addresses: list[str]) -> list[AccountSnapshot | None]:
        self.snapshot_calls.append(list(addresses))
        if self.snapshot_error is not None:
            raise self.snapshot_error
        return [self.snapshots.get(a.lower()) for a in addresses]

    async def get_user_positions(self, user: str) -> UserPositions:
        return self.positions.get(user.lower(), UserPositions())

    async def get_reserve_config(self, asset: str) -> ReserveConfig:
        return self.reserves[asset.lower()]

    async def get_prices(self, assets: list[str]) -> dict[str, int]:
        return {a.lower(): self.prices[a.lower()] for a in assets if a.lower() in self.prices}

    async def get_base_unit(self) -> int:
        return self.base_unit


class FakeStore:
    """In-memory MonitoringStateStore and AssetReferenceData."""

    def __init__(self) -> None:
        self.due: dict[Tier, list[DueAccount]] = {}
        self.results: list[dict] = []
        self.opportunities: list[tuple[int, Opportunity]] = []
        self.decimals: dict[str, int] = {}
        self.claims: list[tuple[int, Tier, int]] = []

    async def claim_due(self, network_id: int, tier: Tier, limit: int) -> list[DueAccount]:
        self.claims.append((network_id, tier, limit))
        batch = self.due.get(tier, [])[:limit]
        self.due[tier] = self.due.get(tier, [])[limit:]
        return batch

    async def record_result(self, account_id: int, **kwargs) -> None:
        self.results.append({"account_id": account_id, **kwargs})

    async def record_opportunity(self, account_id: int, opportunity: Opportunity) -> None:
        self.opportunities.append((account_id, opportunity))

    async def get_asset_decimals(self, network_id: int, assets: list[str]) -> dict[str, int]:
        return {a.lower(): self.decimals[a.lower()] for a in assets if a.lower() in self.decimals}


@pytest.fixture()
def fake_reader() -> FakeReader:
    return FakeReader()


@pytest.fixture()
def fake_store() -> FakeStore:
    return FakeStore()


# ---------------------------------------------------------------------------
# Sample on-chain data
# ---------------------------------------------------------------------------


@pytest.fixture()
def weth_reserve() -> ReserveConfig:
    return ReserveConfig(
        asset=WETH,
        ltv_bps=8000,
        liquidation_threshold_bps=8250,
        liquidation_bonus_bps=10500,
        decimals=18,
    )


@pytest.fixture()
def usdc_reserve() -> ReserveConfig:
    return ReserveConfig(
        asset=USDC,
        ltv_bps=8100,
        liquidation_threshold_bps=8600,
        liquidation_bonus_bps=10500,
        decimals=6,
    )


@pytest.fixture()
def sample_prices() -> dict[str, int]:
    # 8-decimal USD base currency
    return {WETH: 2_000 * BASE_UNIT, USDC: 1 * BASE_UNIT, WBTC: 40_000 * BASE_UNIT}
