"""Account source protocol: external discovery of candidate borrowers."""
from typing import AsyncIterator, Protocol


class AccountSource(Protocol):
    """Yields pages of borrower addresses, consumed once per discovery run."""

    def iter_borrowers(self) -> AsyncIterator[list[str]]: ...
