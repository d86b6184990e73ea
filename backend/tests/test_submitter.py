"""
Tests for submission and result classification.

Tests: classify_result_codes, Submitter.submit over the chain REST client,
Submitter.check_status
"""
from urllib.parse import parse_qs

import httpx
import pytest

from chain_client import ChainClient
from exceptions import ChainUnavailable
from models import AccountSnapshot, Accepted, PaymentIntent, Rejected, TimedOut
from services import signer
from services.submitter import Submitter, classify_result_codes
from services.transaction_builder import build, decode_envelope, transaction_hash

from conftest import PASSPHRASE, START_TIME


def _codes(tx: str, ops: list | None = None) -> dict:
    return {"extras": {"result_codes": {"transaction": tx, "operations": ops or []}}}


@pytest.fixture
def signed(app_account, user_wallet):
    snapshot = AccountSnapshot(account_id=app_account[1], sequence=5, base_fee=100)
    intent = PaymentIntent(recipient_account_id=user_wallet, amount=10)
    envelope = build(intent, snapshot, 100, (START_TIME, START_TIME + 180), "PAY1")
    return signer.sign(envelope, app_account[0], PASSPHRASE)


def _submitter(handler) -> Submitter:
    chain = ChainClient("https://chain.test", transport=httpx.MockTransport(handler))
    return Submitter(chain, PASSPHRASE)


class TestClassifyResultCodes:
    """Tests for classify_result_codes()."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "code", ["tx_bad_seq", "tx_insufficient_fee", "tx_too_late", "tx_too_early"]
    )
    def test_retryable_codes(self, code):
        result = classify_result_codes(_codes(code))
        assert result.retryable is True
        assert result.error_code == code
        assert result.fee_charged is False

    @pytest.mark.unit
    @pytest.mark.parametrize("code", ["tx_bad_auth", "tx_malformed", "tx_insufficient_balance"])
    def test_terminal_codes(self, code):
        result = classify_result_codes(_codes(code))
        assert result.retryable is False
        assert result.fee_charged is False

    @pytest.mark.unit
    def test_tx_failed_reports_first_failing_operation(self):
        result = classify_result_codes(_codes("tx_failed", ["op_success", "op_underfunded"]))
        assert result.error_code == "op_underfunded"
        assert result.retryable is False
        assert result.fee_charged is True

    @pytest.mark.unit
    def test_tx_failed_without_operations(self):
        result = classify_result_codes(_codes("tx_failed"))
        assert result.error_code == "tx_failed"
        assert result.fee_charged is True

    @pytest.mark.unit
    def test_missing_result_codes_is_terminal(self):
        result = classify_result_codes({"title": "Bad Request"})
        assert result.retryable is False
        assert result.error_code == "tx_malformed"


class TestSubmit:
    """Tests for Submitter.submit()."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_posts_envelope_and_accepts(self, signed):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["tx"] = parse_qs(request.content.decode())["tx"][0]
            return httpx.Response(200, json={"hash": transaction_hash(signed, PASSPHRASE)})

        result = await _submitter(handler).submit(signed)

        assert isinstance(result, Accepted)
        assert result.tx_hash == transaction_hash(signed, PASSPHRASE)
        assert seen["path"] == "/transactions"
        assert decode_envelope(seen["tx"]) == signed

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_accepted_without_json_body_uses_computed_hash(self, signed):
        result = await _submitter(lambda r: httpx.Response(200, text="ok")).submit(signed)

        assert result == Accepted(tx_hash=transaction_hash(signed, PASSPHRASE))

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_bad_seq_is_retryable(self, signed):
        result = await _submitter(lambda r: httpx.Response(400, json=_codes("tx_bad_seq"))).submit(signed)

        assert isinstance(result, Rejected)
        assert result.retryable is True
        assert result.tx_hash == transaction_hash(signed, PASSPHRASE)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_op_failure_is_terminal(self, signed):
        body = _codes("tx_failed", ["op_no_destination"])
        result = await _submitter(lambda r: httpx.Response(400, json=body)).submit(signed)

        assert result == Rejected(
            error_code="op_no_destination",
            retryable=False,
            fee_charged=True,
            tx_hash=transaction_hash(signed, PASSPHRASE),
        )

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rate_limited_is_retryable(self, signed):
        result = await _submitter(lambda r: httpx.Response(429)).submit(signed)

        assert isinstance(result, Rejected)
        assert result.error_code == "rate_limited"
        assert result.retryable is True

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [500, 502, 503, 504])
    async def test_server_errors_are_inconclusive(self, signed, status):
        result = await _submitter(lambda r: httpx.Response(status)).submit(signed)

        assert isinstance(result, TimedOut)
        assert result.tx_hash == transaction_hash(signed, PASSPHRASE)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_read_timeout_is_inconclusive(self, signed):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        result = await _submitter(handler).submit(signed)

        assert isinstance(result, TimedOut)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_connect_error_is_retryable(self, signed):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        result = await _submitter(handler).submit(signed)

        assert isinstance(result, Rejected)
        assert result.error_code == "network_unreachable"
        assert result.retryable is True
        assert result.fee_charged is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unparseable_400_is_terminal(self, signed):
        result = await _submitter(lambda r: httpx.Response(400, text="oops")).submit(signed)

        assert isinstance(result, Rejected)
        assert result.retryable is False


class TestCheckStatus:
    """Tests for Submitter.check_status()."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_hash(self):
        result = await _submitter(lambda r: httpx.Response(404, json={"status": 404})).check_status("ab" * 32)
        assert result is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_successful_transaction(self):
        tx_hash = "cd" * 32
        result = await _submitter(
            lambda r: httpx.Response(200, json={"hash": tx_hash, "successful": True})
        ).check_status(tx_hash)
        assert result == Accepted(tx_hash=tx_hash)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failed_transaction_charged_fee(self):
        tx_hash = "ef" * 32
        result = await _submitter(
            lambda r: httpx.Response(200, json={"hash": tx_hash, "successful": False})
        ).check_status(tx_hash)
        assert isinstance(result, Rejected)
        assert result.retryable is False
        assert result.fee_charged is True

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_network_down_raises(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        with pytest.raises(ChainUnavailable):
            await _submitter(handler).check_status("ab" * 32)
