"""
SQLite persistence for the liquidation watcher
==============================================

Tables:
- accounts                   monitored borrowers, never deleted
- account_monitor_state      tier, schedule and last observation per account
- assets                     reserve reference data (decimals, symbol)
- liquidation_opportunities  append-only evaluation results

Fixed-point integers (health measure, amounts) can exceed SQLite's 64-bit
INTEGER range and are stored as decimal TEXT. Timestamps are UTC epoch
seconds (REAL).
"""
from __future__ import annotations

import asyncio
import logging
import sqlite3
from contextlib import closing, contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Iterable, Iterator

from ..models import AccountState, DueAccount, Opportunity, Tier, UsdApprox

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path("data") / "monitor.db"

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS accounts (
        id            INTEGER PRIMARY KEY AUTOINCREMENT,
        network_id    INTEGER NOT NULL,
        address       TEXT NOT NULL,
        first_seen_at REAL NOT NULL,
        last_seen_at  REAL,
        is_active     INTEGER NOT NULL DEFAULT 1,
        UNIQUE (network_id, address)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS account_monitor_state (
        account_id          INTEGER PRIMARY KEY REFERENCES accounts(id),
        tier                TEXT NOT NULL,
        next_check_at       REAL NOT NULL,
        last_check_at       REAL,
        last_health_measure TEXT,
        last_error          TEXT
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_monitor_state_tier_next
    ON account_monitor_state(tier, next_check_at)
    """,
    """
    CREATE TABLE IF NOT EXISTS assets (
        network_id INTEGER NOT NULL,
        address    TEXT NOT NULL,
        symbol     TEXT,
        decimals   INTEGER,
        PRIMARY KEY (network_id, address)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS liquidation_opportunities (
        id                    INTEGER PRIMARY KEY AUTOINCREMENT,
        account_id            INTEGER NOT NULL REFERENCES accounts(id),
        observed_at           REAL NOT NULL,
        health_measure        TEXT,
        debt_asset            TEXT,
        collateral_asset      TEXT,
        repay_amount          TEXT,
        profit_base           TEXT,
        profit_usd_approx     REAL,
        total_collateral_base TEXT,
        total_debt_base       TEXT,
        notes                 TEXT
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_opportunities_account_time
    ON liquidation_opportunities(account_id, observed_at)
    """,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_ts(value: datetime) -> float:
    return value.timestamp()


def _from_ts(value: float | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _int_to_text(value: int | None) -> str | None:
    return None if value is None else str(value)


def _text_to_int(value: str | None) -> int | None:
    return None if value is None else int(value)


class SqliteStateStore:
    """
    Monitoring state store and asset reference data on a local SQLite file.

    Blocking sqlite3 work runs in a worker thread; every public coroutine is
    one transaction. ``claim_due`` takes a write lock up front and pushes the
    claimed rows' ``next_check_at`` forward by ``claim_lease_seconds`` so a
    second worker process never receives the same accounts while the first
    one is still evaluating them.
    """

    def __init__(
        self,
        db_path: str | Path = DEFAULT_DB_PATH,
        *,
        claim_lease_seconds: float = 60.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.db_path = Path(db_path)
        self._lease = timedelta(seconds=claim_lease_seconds)
        self._clock = clock

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=30, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _get_connection(self, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """One transaction; commits on success, rolls back on any error."""
        with closing(self._connect()) as conn:
            conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            try:
                yield conn
                conn.execute("COMMIT")
            except Exception:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def _init_schema(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with closing(self._connect()) as conn:
            # journal mode cannot change inside a transaction
            conn.execute("PRAGMA journal_mode=WAL")
        with self._get_connection() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)
        logger.info("Database initialized: %s", self.db_path)

    async def init_schema(self) -> None:
        await asyncio.to_thread(self._init_schema)

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def _seed_accounts(
        self, network_id: int, addresses: Iterable[str], tier: Tier
    ) -> list[DueAccount]:
        now = _to_ts(self._clock())
        seeded: list[DueAccount] = []
        created = 0
        with self._get_connection(immediate=True) as conn:
            for address in dict.fromkeys(a.lower() for a in addresses):
                conn.execute(
                    """
                    INSERT INTO accounts (network_id, address, first_seen_at, last_seen_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT (network_id, address) DO UPDATE SET last_seen_at = excluded.last_seen_at
                    """,
                    (network_id, address, now, now),
                )
                row = conn.execute(
                    "SELECT id FROM accounts WHERE network_id = ? AND address = ?",
                    (network_id, address),
                ).fetchone()
                cur = conn.execute(
                    """
                    INSERT OR IGNORE INTO account_monitor_state (account_id, tier, next_check_at)
                    VALUES (?, ?, ?)
                    """,
                    (row["id"], tier.value, now),
                )
                created += cur.rowcount
                seeded.append(DueAccount(account_id=row["id"], address=address))
        if created:
            logger.info("Seeded %d new accounts on network %d", created, network_id)
        return seeded

    async def seed_accounts(
        self,
        network_id: int,
        addresses: Iterable[str],
        tier: Tier = Tier.NORMAL_WATCH,
    ) -> list[DueAccount]:
        """Register addresses; new ones are due immediately in ``tier``."""
        return await asyncio.to_thread(
            self._seed_accounts, network_id, list(addresses), tier
        )

    def _set_active(self, account_id: int, active: bool) -> None:
        with self._get_connection() as conn:
            conn.execute(
                "UPDATE accounts SET is_active = ? WHERE id = ?",
                (1 if active else 0, account_id),
            )

    async def deactivate_account(self, account_id: int) -> None:
        await asyncio.to_thread(self._set_active, account_id, False)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _claim_due(self, network_id: int, tier: Tier, limit: int) -> list[DueAccount]:
        now = self._clock()
        with self._get_connection(immediate=True) as conn:
            rows = conn.execute(
                """
                SELECT a.id, a.address
                FROM account_monitor_state s
                JOIN accounts a ON a.id = s.account_id
                WHERE a.network_id = ?
                  AND a.is_active = 1
                  AND s.tier = ?
                  AND s.next_check_at <= ?
                ORDER BY s.next_check_at ASC, a.id ASC
                LIMIT ?
                """,
                (network_id, tier.value, _to_ts(now), limit),
            ).fetchall()
            if rows and self._lease:
                conn.executemany(
                    "UPDATE account_monitor_state SET next_check_at = ? WHERE account_id = ?",
                    [(_to_ts(now + self._lease), row["id"]) for row in rows],
                )
        return [DueAccount(account_id=row["id"], address=row["address"]) for row in rows]

    async def claim_due(self, network_id: int, tier: Tier, limit: int) -> list[DueAccount]:
        if limit <= 0:
            return []
        return await asyncio.to_thread(self._claim_due, network_id, tier, limit)

    def _record_result(
        self,
        account_id: int,
        next_check_at: datetime,
        health_measure: int | None,
        tier: Tier | None,
        error: str | None,
    ) -> None:
        with self._get_connection() as conn:
            conn.execute(
                """
                UPDATE account_monitor_state SET
                    last_check_at = ?,
                    last_health_measure = COALESCE(?, last_health_measure),
                    tier = COALESCE(?, tier),
                    last_error = ?,
                    next_check_at = ?
                WHERE account_id = ?
                """,
                (
                    _to_ts(self._clock()),
                    _int_to_text(health_measure),
                    tier.value if tier is not None else None,
                    error,
                    _to_ts(next_check_at),
                    account_id,
                ),
            )

    async def record_result(
        self,
        account_id: int,
        *,
        next_check_at: datetime,
        health_measure: int | None = None,
        tier: Tier | None = None,
        error: str | None = None,
    ) -> None:
        await asyncio.to_thread(
            self._record_result, account_id, next_check_at, health_measure, tier, error
        )

    def _get_account_state(self, account_id: int) -> AccountState | None:
        with self._get_connection() as conn:
            row = conn.execute(
                """
                SELECT a.id, a.network_id, a.address, a.is_active, s.tier,
                       s.next_check_at, s.last_check_at, s.last_health_measure, s.last_error
                FROM accounts a
                JOIN account_monitor_state s ON s.account_id = a.id
                WHERE a.id = ?
                """,
                (account_id,),
            ).fetchone()
        if row is None:
            return None
        return AccountState(
            account_id=row["id"],
            network_id=row["network_id"],
            address=row["address"],
            tier=Tier(row["tier"]),
            next_check_at=_from_ts(row["next_check_at"]),
            last_check_at=_from_ts(row["last_check_at"]),
            last_health_measure=_text_to_int(row["last_health_measure"]),
            last_error=row["last_error"],
            is_active=bool(row["is_active"]),
        )

    async def get_account_state(self, account_id: int) -> AccountState | None:
        return await asyncio.to_thread(self._get_account_state, account_id)

    # ------------------------------------------------------------------
    # Opportunities
    # ------------------------------------------------------------------

    def _record_opportunity(self, account_id: int, opp: Opportunity) -> None:
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO liquidation_opportunities (
                    account_id, observed_at, health_measure, debt_asset,
                    collateral_asset, repay_amount, profit_base, profit_usd_approx,
                    total_collateral_base, total_debt_base, notes
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    account_id,
                    _to_ts(self._clock()),
                    _int_to_text(opp.health_measure),
                    opp.debt_asset,
                    opp.collateral_asset,
                    _int_to_text(opp.repay_amount),
                    _int_to_text(opp.profit_base),
                    opp.profit_usd_approx,
                    _int_to_text(opp.total_collateral_base),
                    _int_to_text(opp.total_debt_base),
                    opp.notes,
                ),
            )

    async def record_opportunity(self, account_id: int, opportunity: Opportunity) -> None:
        await asyncio.to_thread(self._record_opportunity, account_id, opportunity)

    def _list_opportunities(self, account_id: int) -> list[Opportunity]:
        with self._get_connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM liquidation_opportunities
                WHERE account_id = ?
                ORDER BY observed_at ASC, id ASC
                """,
                (account_id,),
            ).fetchall()
        return [
            Opportunity(
                health_measure=_text_to_int(row["health_measure"]),
                debt_asset=row["debt_asset"],
                collateral_asset=row["collateral_asset"],
                repay_amount=_text_to_int(row["repay_amount"]),
                profit_base=_text_to_int(row["profit_base"]),
                profit_usd_approx=(
                    UsdApprox(row["profit_usd_approx"])
                    if row["profit_usd_approx"] is not None
                    else None
                ),
                total_collateral_base=_text_to_int(row["total_collateral_base"]),
                total_debt_base=_text_to_int(row["total_debt_base"]),
                notes=row["notes"],
            )
            for row in rows
        ]

    async def list_opportunities(self, account_id: int) -> list[Opportunity]:
        return await asyncio.to_thread(self._list_opportunities, account_id)

    # ------------------------------------------------------------------
    # Asset reference data
    # ------------------------------------------------------------------

    def _upsert_asset(
        self, network_id: int, address: str, symbol: str | None, decimals: int | None
    ) -> None:
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO assets (network_id, address, symbol, decimals)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (network_id, address) DO UPDATE SET
                    symbol = COALESCE(excluded.symbol, assets.symbol),
                    decimals = COALESCE(excluded.decimals, assets.decimals)
                """,
                (network_id, address.lower(), symbol, decimals),
            )

    async def upsert_asset(
        self,
        network_id: int,
        address: str,
        *,
        symbol: str | None = None,
        decimals: int | None = None,
    ) -> None:
        await asyncio.to_thread(self._upsert_asset, network_id, address, symbol, decimals)

    def _get_asset_decimals(self, network_id: int, assets: list[str]) -> dict[str, int]:
        if not assets:
            return {}
        keys = [a.lower() for a in assets]
        placeholders = ",".join("?" for _ in keys)
        with self._get_connection() as conn:
            rows = conn.execute(
                f"""
                SELECT address, decimals FROM assets
                WHERE network_id = ? AND decimals IS NOT NULL
                  AND address IN ({placeholders})
                """,
                (network_id, *keys),
            ).fetchall()
        return {row["address"]: row["decimals"] for row in rows}

    async def get_asset_decimals(self, network_id: int, assets: list[str]) -> dict[str, int]:
        return await asyncio.to_thread(self._get_asset_decimals, network_id, list(assets))
