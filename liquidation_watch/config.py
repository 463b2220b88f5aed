"""Configuration loader: reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .constants import DEFAULT_CHAIN_ID, MULTICALL3_ADDRESS, WAD
from .errors import ConfigError
from .models import Tier

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NetworkConfig:
    chain_id: int = DEFAULT_CHAIN_ID
    name: str = "arbitrum"


@dataclass(frozen=True)
class RpcConfig:
    endpoints: tuple[str, ...] = ()
    timeout: int = 30
    slot_interval_ms: int = 250
    rotation_depth: int | None = None


@dataclass(frozen=True)
class ContractsConfig:
    pool: str = ""
    pool_data_provider: str = ""
    oracle: str = ""
    multicall3: str = MULTICALL3_ADDRESS


@dataclass(frozen=True)
class ThresholdsConfig:
    """Health-measure boundaries as 18-decimal fixed-point integers."""

    liquidation: int = WAD
    high_freq: int = 1_010_000_000_000_000_000
    normal: int = 1_050_000_000_000_000_000


@dataclass(frozen=True)
class ProfitConfig:
    min_profit_usd: float = 100.0
    close_factor_bps: int = 5_000
    full_close_factor_bps: int = 10_000
    full_close_factor_below: int = 950_000_000_000_000_000
    dex_fee_bps: int = 30
    extra_cost_base: int = 0


@dataclass(frozen=True)
class WorkerConfig:
    name: str = ""
    tiers: tuple[Tier, ...] = ()
    interval_seconds: float = 60.0
    batch_size: int = 100
    retry_seconds: float = 60.0


def _default_recheck() -> dict[Tier, float]:
    return {
        Tier.LIQUIDATABLE: 30.0,
        Tier.HIGH_FREQ_WATCH: 30.0,
        Tier.NORMAL_WATCH: 300.0,
        Tier.HEALTHY: 3600.0,
    }


def _default_workers() -> dict[str, WorkerConfig]:
    return {
        "highfreq": WorkerConfig(
            name="highfreq",
            tiers=(Tier.LIQUIDATABLE, Tier.HIGH_FREQ_WATCH),
            interval_seconds=30.0,
            batch_size=100,
            retry_seconds=30.0,
        ),
        "normal": WorkerConfig(
            name="normal",
            tiers=(Tier.NORMAL_WATCH, Tier.HEALTHY),
            interval_seconds=300.0,
            batch_size=100,
            retry_seconds=300.0,
        ),
    }


@dataclass(frozen=True)
class SchedulerConfig:
    tier_recheck_seconds: dict[Tier, float] = field(default_factory=_default_recheck)
    claim_lease_seconds: float = 60.0
    evaluation_concurrency: int = 8
    workers: dict[str, WorkerConfig] = field(default_factory=_default_workers)


@dataclass(frozen=True)
class StorageConfig:
    sqlite_path: str = "data/monitor.db"


@dataclass(frozen=True)
class DiscoveryConfig:
    subgraph_url: str = ""
    api_key: str = ""
    page_size: int = 1000
    min_principal: str = "10000000"
    batch_size: int = 100


@dataclass(frozen=True)
class AppConfig:
    network: NetworkConfig = field(default_factory=NetworkConfig)
    rpc: RpcConfig = field(default_factory=RpcConfig)
    contracts: ContractsConfig = field(default_factory=ContractsConfig)
    thresholds: ThresholdsConfig = field(default_factory=ThresholdsConfig)
    profit: ProfitConfig = field(default_factory=ProfitConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------


def to_wad(value: Any) -> int:
    """Convert a decimal like ``1.05`` or ``"1.05"`` to an exact 1e18 integer.

    Goes through ``str`` so a YAML float such as 1.01 is not widened to its
    binary approximation.
    """
    try:
        return int(Decimal(str(value)) * WAD)
    except (InvalidOperation, ValueError) as e:
        raise ConfigError(f"Invalid fixed-point value: {value!r}") from e


def _split_endpoints(raw: Any) -> tuple[str, ...]:
    """Accept a YAML list or a comma-separated string (RPC_URLS style)."""
    if isinstance(raw, str):
        items = raw.split(",")
    else:
        items = list(raw or [])
    return tuple(s.strip() for s in items if s and str(s).strip())


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_network(raw: dict[str, Any]) -> NetworkConfig:
    return NetworkConfig(
        chain_id=int(raw.get("chain_id", DEFAULT_CHAIN_ID)),
        name=raw.get("name", "arbitrum"),
    )


def _build_rpc(raw: dict[str, Any]) -> RpcConfig:
    depth = raw.get("rotation_depth")
    return RpcConfig(
        endpoints=_split_endpoints(raw.get("endpoints", [])),
        timeout=int(raw.get("timeout", 30)),
        slot_interval_ms=int(raw.get("slot_interval_ms", 250)),
        rotation_depth=int(depth) if depth not in (None, "") else None,
    )


def _build_contracts(raw: dict[str, Any]) -> ContractsConfig:
    return ContractsConfig(
        pool=raw.get("pool", "") or "",
        pool_data_provider=raw.get("pool_data_provider", "") or "",
        oracle=raw.get("oracle", "") or "",
        multicall3=raw.get("multicall3") or MULTICALL3_ADDRESS,
    )


def _build_thresholds(raw: dict[str, Any]) -> ThresholdsConfig:
    return ThresholdsConfig(
        liquidation=to_wad(raw.get("liquidation", "1.0")),
        high_freq=to_wad(raw.get("high_freq", "1.01")),
        normal=to_wad(raw.get("normal", "1.05")),
    )


def _build_profit(raw: dict[str, Any]) -> ProfitConfig:
    return ProfitConfig(
        min_profit_usd=float(raw.get("min_profit_usd", 100.0)),
        close_factor_bps=int(raw.get("close_factor_bps", 5_000)),
        full_close_factor_bps=int(raw.get("full_close_factor_bps", 10_000)),
        full_close_factor_below=to_wad(raw.get("full_close_factor_below", "0.95")),
        dex_fee_bps=int(raw.get("dex_fee_bps", 30)),
        extra_cost_base=int(raw.get("extra_cost_base", 0)),
    )


def _build_worker(name: str, raw: dict[str, Any], default: WorkerConfig | None) -> WorkerConfig:
    base = default or WorkerConfig(name=name)
    tiers_raw = raw.get("tiers")
    try:
        tiers = (
            tuple(Tier.parse(t) for t in tiers_raw)
            if tiers_raw is not None
            else base.tiers
        )
    except ValueError as e:
        raise ConfigError(f"Worker '{name}': {e}") from e
    interval = float(raw.get("interval_seconds", base.interval_seconds))
    return WorkerConfig(
        name=name,
        tiers=tiers,
        interval_seconds=interval,
        batch_size=int(raw.get("batch_size", base.batch_size)),
        retry_seconds=float(raw.get("retry_seconds", base.retry_seconds)),
    )


def _build_scheduler(raw: dict[str, Any]) -> SchedulerConfig:
    recheck = _default_recheck()
    for tier_name, seconds in (raw.get("tier_recheck_seconds") or {}).items():
        try:
            recheck[Tier.parse(tier_name)] = float(seconds)
        except ValueError as e:
            raise ConfigError(f"tier_recheck_seconds: {e}") from e

    defaults = _default_workers()
    workers_raw = raw.get("workers")
    if workers_raw is None:
        workers = defaults
    else:
        workers = {
            name: _build_worker(name, cfg or {}, defaults.get(name))
            for name, cfg in workers_raw.items()
        }

    return SchedulerConfig(
        tier_recheck_seconds=recheck,
        claim_lease_seconds=float(raw.get("claim_lease_seconds", 60.0)),
        evaluation_concurrency=int(raw.get("evaluation_concurrency", 8)),
        workers=workers,
    )


def _build_storage(raw: dict[str, Any]) -> StorageConfig:
    return StorageConfig(sqlite_path=raw.get("sqlite_path", "data/monitor.db"))


def _build_discovery(raw: dict[str, Any]) -> DiscoveryConfig:
    return DiscoveryConfig(
        subgraph_url=raw.get("subgraph_url", "") or "",
        api_key=raw.get("api_key", "") or "",
        page_size=int(raw.get("page_size", 1000)),
        min_principal=str(raw.get("min_principal", "10000000")),
        batch_size=int(raw.get("batch_size", 100)),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from this package).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        network=_build_network(raw.get("network") or {}),
        rpc=_build_rpc(raw.get("rpc") or {}),
        contracts=_build_contracts(raw.get("contracts") or {}),
        thresholds=_build_thresholds(raw.get("thresholds") or {}),
        profit=_build_profit(raw.get("profit") or {}),
        scheduler=_build_scheduler(raw.get("scheduler") or {}),
        storage=_build_storage(raw.get("storage") or {}),
        discovery=_build_discovery(raw.get("discovery") or {}),
    )

    validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def validate(cfg: AppConfig) -> None:
    """Raise ``ConfigError`` on invalid configuration."""
    if not cfg.rpc.endpoints:
        raise ConfigError("At least one RPC endpoint must be configured")
    if cfg.rpc.rotation_depth is not None and cfg.rpc.rotation_depth < 1:
        raise ConfigError("rpc.rotation_depth must be positive")

    for name in ("pool", "pool_data_provider", "oracle", "multicall3"):
        if not getattr(cfg.contracts, name):
            raise ConfigError(f"Missing contract address: contracts.{name}")

    t = cfg.thresholds
    if not (0 < t.liquidation < t.high_freq < t.normal):
        raise ConfigError(
            "Thresholds must satisfy 0 < liquidation < high_freq < normal"
        )

    p = cfg.profit
    for name in ("close_factor_bps", "full_close_factor_bps"):
        value = getattr(p, name)
        if not 0 < value <= 10_000:
            raise ConfigError(f"profit.{name} must be in (0, 10000]")
    if p.dex_fee_bps < 0 or p.extra_cost_base < 0:
        raise ConfigError("profit fee and cost parameters must not be negative")

    s = cfg.scheduler
    if s.evaluation_concurrency < 1:
        raise ConfigError("scheduler.evaluation_concurrency must be positive")
    if s.claim_lease_seconds < 0:
        raise ConfigError("scheduler.claim_lease_seconds must not be negative")
    for tier, seconds in s.tier_recheck_seconds.items():
        if seconds <= 0:
            raise ConfigError(f"Recheck interval for '{tier.value}' must be positive")
    if not s.workers:
        raise ConfigError("At least one worker must be configured")
    for worker in s.workers.values():
        if not worker.tiers:
            raise ConfigError(f"Worker '{worker.name}' has no tiers")
        if worker.batch_size <= 0:
            raise ConfigError(f"Worker '{worker.name}' batch_size must be positive")
        if worker.interval_seconds <= 0 or worker.retry_seconds <= 0:
            raise ConfigError(f"Worker '{worker.name}' intervals must be positive")

    if cfg.discovery.page_size <= 0 or cfg.discovery.batch_size <= 0:
        raise ConfigError("discovery page_size and batch_size must be positive")
