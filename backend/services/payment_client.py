"""
Payment service client — the backend ledger of record for A2U payments.

Endpoints:
    POST /v2/payments                               create (auto-approved for A2U)
    GET  /v2/payments/{id}                          fetch one record
    POST /v2/payments/{id}/complete                 {txid}; idempotent per identifier
    POST /v2/payments/{id}/cancel                   abandon before submission
    GET  /v2/payments/incomplete_server_payments    A2U payments not yet closed

The API key travels in the Authorization header and is never logged.
"""
import logging
from typing import Any, Optional

import httpx

from exceptions import BackendRejected, BackendUnavailable
from models import PaymentIntent, PaymentRecord

logger = logging.getLogger(__name__)


def parse_payment(data: dict) -> PaymentRecord:
    """Map a payment-service payload onto a PaymentRecord."""
    status = data.get("status") or {}
    transaction = data.get("transaction") or {}
    if isinstance(status, dict):
        if status.get("cancelled") or status.get("user_cancelled"):
            state = "cancelled"
        elif status.get("developer_completed"):
            state = "completed"
        elif status.get("transaction_verified") or transaction.get("txid"):
            state = "submitted"
        else:
            state = "created"
    else:
        state = str(status)

    return PaymentRecord(
        identifier=data["identifier"],
        recipient=data.get("recipient") or data.get("to_address") or "",
        amount=int(data.get("amount", 0)),
        memo=data.get("memo") or "",
        metadata=data.get("metadata") or {},
        uid=data.get("user_uid") or data.get("uid") or "",
        status=state,
        tx_hash=transaction.get("txid"),
    )


class PaymentServiceClient:
    """Async client for the payment service API."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def __repr__(self) -> str:
        return f"PaymentServiceClient(base_url={self.base_url!r})"

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={"Authorization": f"Key {self._api_key}"},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, json: Any = None) -> dict:
        try:
            response = await self.client.request(method, path, json=json)
        except httpx.HTTPError as e:
            logger.warning(f"Payment service {method} {path} failed: {type(e).__name__}")
            raise BackendUnavailable(f"{method} {path}: {type(e).__name__}") from e

        if response.status_code >= 500:
            raise BackendUnavailable(f"{method} {path} returned {response.status_code}")
        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {"raw": response.text[:200]}
            raise BackendRejected(
                f"{method} {path} rejected with {response.status_code}",
                status_code=response.status_code,
                body=body if isinstance(body, dict) else {"detail": body},
            )
        return response.json()

    async def create_payment(self, intent: PaymentIntent, uid: str) -> PaymentRecord:
        payload = {
            "amount": intent.amount,
            "memo": intent.memo_text,
            "metadata": intent.metadata,
            "uid": uid,
        }
        data = await self._request("POST", "/v2/payments", json=payload)
        record = parse_payment(data)
        logger.info(f"Payment record created: {record.identifier} (amount={record.amount})")
        return record

    async def get_payment(self, identifier: str) -> PaymentRecord:
        return parse_payment(await self._request("GET", f"/v2/payments/{identifier}"))

    async def complete_payment(self, identifier: str, txid: str) -> PaymentRecord:
        data = await self._request(
            "POST", f"/v2/payments/{identifier}/complete", json={"txid": txid}
        )
        logger.info(f"Payment {identifier} completed with tx {txid[:12]}...")
        return parse_payment(data)

    async def cancel_payment(self, identifier: str) -> PaymentRecord:
        data = await self._request("POST", f"/v2/payments/{identifier}/cancel")
        logger.info(f"Payment {identifier} cancelled")
        return parse_payment(data)

    async def incomplete_server_payments(self) -> list[PaymentRecord]:
        data = await self._request("GET", "/v2/payments/incomplete_server_payments")
        return [parse_payment(p) for p in data.get("incomplete_server_payments", [])]
