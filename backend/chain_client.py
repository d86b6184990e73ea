"""
Chain gateway REST client.

Adapter for the capability set the engine needs from the network: account
read, fee stats, latest ledger close time, envelope submission and status
by hash. Account ids are algosdk-format addresses; envelopes are posted in
the canonical JSON wire form of services/transaction_builder.py. Each
method is one network read or write and returns decoded JSON.
Classification of submission responses lives in services/submitter.py;
this module only raises for transport problems and for answers that are
not part of the normal contract.
"""
import logging
from datetime import datetime
from typing import Optional

import httpx

from exceptions import AccountNotFound, ChainUnavailable

logger = logging.getLogger(__name__)


class ChainClient:
    """Async client for one blockchain API endpoint."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        submit_timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.submit_timeout = submit_timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the shared httpx client, created on first use."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get_json(self, path: str, **params) -> dict:
        try:
            response = await self.client.get(path, params=params or None)
        except httpx.HTTPError as e:
            logger.warning(f"Chain read {path} failed: {type(e).__name__}: {e}")
            raise ChainUnavailable(f"GET {path} failed: {type(e).__name__}") from e
        if response.status_code == 404:
            response.raise_for_status()
        if response.status_code >= 400:
            raise ChainUnavailable(f"GET {path} returned {response.status_code}")
        try:
            return response.json()
        except ValueError as e:
            raise ChainUnavailable(f"GET {path} returned a body that is not JSON") from e

    # ── Reads ───────────────────────────────────────────────────────

    async def load_account(self, account_id: str) -> dict:
        """Fetch the account record. Raises AccountNotFound on 404."""
        try:
            return await self._get_json(f"/accounts/{account_id}")
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise AccountNotFound(account_id) from e
            raise

    async def fetch_base_fee(self) -> int:
        """Base fee per operation charged in the last closed ledger."""
        data = await self._get_json("/fee_stats")
        return int(data["last_ledger_base_fee"])

    async def fetch_network_time(self) -> int:
        """Close time (unix seconds) of the latest ledger."""
        data = await self._get_json("/ledgers", order="desc", limit=1)
        records = data.get("_embedded", {}).get("records", [])
        if not records:
            raise ChainUnavailable("No ledgers returned by the network")
        closed_at = records[0]["closed_at"].replace("Z", "+00:00")
        return int(datetime.fromisoformat(closed_at).timestamp())

    async def get_transaction(self, tx_hash: str) -> Optional[dict]:
        """Fetch a transaction by hash; None when the network does not know it."""
        try:
            return await self._get_json(f"/transactions/{tx_hash}")
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return None
            raise

    # ── Writes ──────────────────────────────────────────────────────

    async def submit_transaction(self, envelope_b64: str) -> httpx.Response:
        """
        Post a signed envelope.

        Returns the raw response for classification. Timeouts and transport
        errors propagate as httpx exceptions so the caller can tell an
        unsent request from an unanswered one.
        """
        logger.info(f"Submitting envelope: {len(envelope_b64)} chars")
        return await self.client.post(
            "/transactions",
            data={"tx": envelope_b64},
            timeout=self.submit_timeout,
        )
