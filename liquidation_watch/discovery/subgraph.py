"""Borrower discovery from an Aave V3 positions subgraph."""
from __future__ import annotations

import logging
import ssl
from typing import Any, AsyncIterator

import aiohttp
import certifi

from ..config import DiscoveryConfig
from ..errors import SubgraphError

logger = logging.getLogger(__name__)

POSITIONS_QUERY = """
query ($lastId: String!, $first: Int!, $minPrincipal: BigInt!) {
    positions(
        first: $first,
        orderBy: id,
        orderDirection: asc,
        where: {
            id_gt: $lastId,
            side: BORROWER,
            principal_gt: $minPrincipal
        }
    ) {
        id
        account { id }
        principal
    }
}
"""


class SubgraphDiscovery:
    """Page through borrower positions ordered by id.

    Pagination uses the last position id as an ``id_gt`` cursor; the run
    ends at the first empty page.
    """

    def __init__(self, config: DiscoveryConfig, timeout: float = 30) -> None:
        self.url = config.subgraph_url
        self.api_key = config.api_key
        self.page_size = config.page_size
        self.min_principal = config.min_principal
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _fetch_page(
        self, session: aiohttp.ClientSession, last_id: str
    ) -> list[dict[str, Any]]:
        payload = {
            "query": POSITIONS_QUERY,
            "variables": {
                "lastId": last_id,
                "first": self.page_size,
                "minPrincipal": self.min_principal,
            },
        }
        async with session.post(
            self.url,
            json=payload,
            headers=self._headers(),
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        ) as response:
            if response.status != 200:
                text = await response.text()
                raise SubgraphError(f"Subgraph HTTP {response.status}: {text[:200]}")
            body = await response.json()

        if body.get("errors"):
            raise SubgraphError(f"Subgraph query failed: {body['errors']}")
        return (body.get("data") or {}).get("positions") or []

    async def iter_borrowers(self) -> AsyncIterator[list[str]]:
        """Yield one list of new lower-cased borrower addresses per page."""
        if not self.url:
            raise SubgraphError("discovery.subgraph_url is not configured")

        seen: set[str] = set()
        last_id = ""
        pages = 0

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        async with aiohttp.ClientSession(connector=connector) as session:
            while True:
                positions = await self._fetch_page(session, last_id)
                if not positions:
                    break
                pages += 1

                fresh: list[str] = []
                for position in positions:
                    address = position["account"]["id"].lower()
                    if address not in seen:
                        seen.add(address)
                        fresh.append(address)
                last_id = positions[-1]["id"]

                logger.debug("Subgraph page %d: %d positions, %d new borrowers",
                             pages, len(positions), len(fresh))
                if fresh:
                    yield fresh

        logger.info("Found %d borrowers in %d pages", len(seen), pages)
