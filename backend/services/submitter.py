"""
Submitter — sends signed envelopes and classifies the network's answer.

Buckets:
    Accepted            — included; carries the transaction hash
    Rejected(retryable) — stale sequence, low fee, window miss, rate limit;
                          rebuild from a fresh snapshot and resubmit
    Rejected(terminal)  — malformed, underfunded, bad auth; never retried
    TimedOut            — no definitive answer; the transaction may still
                          land, the controller must re-check before acting
"""
import logging
from typing import Optional

import httpx

from domain.constants import (
    CODE_NETWORK_UNREACHABLE,
    CODE_RATE_LIMITED,
    RETRYABLE_RESULT_CODES,
    TX_FAILED,
)
from models import Accepted, Rejected, SubmissionResult, TimedOut, TransactionEnvelope
from services.transaction_builder import encode_envelope, transaction_hash

logger = logging.getLogger(__name__)


def classify_result_codes(body: dict, tx_hash: Optional[str] = None) -> Rejected:
    """
    Classify a 400 response body into a Rejected result.

    The body carries extras.result_codes = {"transaction": ..., "operations": [...]}.
    For tx_failed the first failing operation code is reported and the fee
    counts as charged.
    """
    codes = (body.get("extras") or {}).get("result_codes") or {}
    tx_code = (codes.get("transaction") or "").lower()
    op_codes = [c.lower() for c in codes.get("operations") or [] if c and c.lower() != "op_success"]

    if tx_code == TX_FAILED:
        error_code = op_codes[0] if op_codes else TX_FAILED
        return Rejected(error_code=error_code, retryable=False, fee_charged=True, tx_hash=tx_hash)

    if not tx_code:
        return Rejected(error_code="tx_malformed", retryable=False, tx_hash=tx_hash)

    return Rejected(
        error_code=tx_code,
        retryable=tx_code in RETRYABLE_RESULT_CODES,
        fee_charged=False,
        tx_hash=tx_hash,
    )


class Submitter:
    def __init__(self, chain, network_passphrase: str):
        self.chain = chain
        self.network_passphrase = network_passphrase

    def hash_of(self, envelope: TransactionEnvelope) -> str:
        return transaction_hash(envelope, self.network_passphrase)

    async def submit(self, envelope: TransactionEnvelope) -> SubmissionResult:
        """Submit one signed envelope. Never raises for network outcomes."""
        tx_hash = self.hash_of(envelope)
        try:
            response = await self.chain.submit_transaction(encode_envelope(envelope))
        except httpx.ConnectError as e:
            # Request never left this host: nothing can have landed
            logger.warning(f"Submission of {tx_hash[:12]} not sent: {e}")
            return Rejected(error_code=CODE_NETWORK_UNREACHABLE, retryable=True, tx_hash=tx_hash)
        except httpx.HTTPError as e:
            logger.warning(f"Submission of {tx_hash[:12]} got no answer: {type(e).__name__}")
            return TimedOut(tx_hash=tx_hash)

        if response.status_code == 200:
            accepted_hash = _json_or_empty(response).get("hash") or tx_hash
            logger.info(f"Transaction accepted: {accepted_hash}")
            return Accepted(tx_hash=accepted_hash)

        if response.status_code == 400:
            result = classify_result_codes(_json_or_empty(response), tx_hash)
            logger.warning(
                f"Transaction {tx_hash[:12]} rejected: {result.error_code} "
                f"(retryable={result.retryable})"
            )
            return result

        if response.status_code == 429:
            return Rejected(error_code=CODE_RATE_LIMITED, retryable=True, tx_hash=tx_hash)

        # 504 means the node gave up waiting for ingestion; other 5xx are just
        # as inconclusive about whether the envelope reached the network
        logger.warning(f"Submission of {tx_hash[:12]} inconclusive: HTTP {response.status_code}")
        return TimedOut(tx_hash=tx_hash)

    async def check_status(self, tx_hash: str) -> Optional[SubmissionResult]:
        """
        Look up a transaction by hash.

        Returns Accepted, a terminal Rejected (included but failed, fee
        charged), or None when the network has no record of it.
        """
        record = await self.chain.get_transaction(tx_hash)
        if record is None:
            return None
        if record.get("successful", True):
            return Accepted(tx_hash=record.get("hash") or tx_hash)
        return Rejected(
            error_code=record.get("result_code") or TX_FAILED,
            retryable=False,
            fee_charged=True,
            tx_hash=tx_hash,
        )


def _json_or_empty(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
