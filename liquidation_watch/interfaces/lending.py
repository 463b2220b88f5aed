"""Lending protocol reader: account, reserve and price reads."""
from typing import Protocol

from ..models import AccountSnapshot, ReserveConfig, UserPositions


class LendingReader(Protocol):
    """Abstract interface for reading lending-pool state."""

    async def get_account_snapshots(
        self, addresses: list[str]
    ) -> list[AccountSnapshot | None]: ...

    async def get_user_positions(self, user: str) -> UserPositions: ...

    async def get_reserve_config(self, asset: str) -> ReserveConfig: ...

    async def get_prices(self, assets: list[str]) -> dict[str, int]: ...

    async def get_base_unit(self) -> int: ...
