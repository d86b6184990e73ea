"""
Pytest configuration and shared fixtures for the A2U payment engine tests.

Provides an in-memory SQLite session factory, a fake blockchain that
enforces sequence numbers like the real network, a fake payment service,
and a controller factory wired to all three.
"""
import asyncio
from typing import AsyncGenerator

import httpx
import pytest
from algosdk import account
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import db_models  # noqa: F401  (registers tables on Base.metadata)
from database import Base
from exceptions import AccountNotFound, BackendRejected, ChainUnavailable
from models import PaymentRecord
from services.attempt_store import AttemptStore
from services.payment_controller import PaymentController
from services.sequencer import AccountSequencer
from services.submitter import Submitter
from services.transaction_builder import decode_envelope, transaction_hash

PASSPHRASE = "Test A2U Network"
START_TIME = 1_700_000_000


# ── Database Fixtures ────────────────────────────────────────────────


@pytest.fixture(scope="function")
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """
    In-memory SQLite session factory, fresh for each test.

    Uses StaticPool to allow in-memory SQLite with async SQLAlchemy.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def store(session_factory) -> AttemptStore:
    return AttemptStore(session_factory)


# ── Accounts ─────────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app_account() -> tuple[str, str]:
    """(private_key, address) of the paying app wallet."""
    return account.generate_account()


@pytest.fixture(scope="session")
def user_wallet() -> str:
    """Recipient wallet address (valid account id)."""
    return account.generate_account()[1]


# ── Fake Blockchain ──────────────────────────────────────────────────


class FakeChain:
    """
    In-memory network with the ChainClient interface.

    Submissions are checked against the account sequence like the real
    network unless a scripted outcome is queued in `script`:
        "accept" | ("reject", code) | ("tx_failed", op_code)
        | "timeout_landed" | "timeout_lost" | "timeout_seq_only" | "timeout_then_down"
        | "out_of_band" (another transaction advances the account first)
        | ("http", status, body) | an exception instance to raise
    on_submit, when set, is awaited with each envelope before it is judged;
    lookup_error, when set, is raised by every transaction lookup.
    """

    def __init__(self, passphrase: str = PASSPHRASE):
        self.passphrase = passphrase
        self.sequences: dict[str, int] = {}
        self.base_fee = 100
        self.now = START_TIME
        self.transactions: dict[str, dict] = {}
        self.script: list = []
        self.submitted = []
        self.account_reads = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self.unreachable = False
        self.on_submit = None
        self.lookup_error: Exception | None = None

    def _check_reachable(self):
        if self.unreachable:
            raise ChainUnavailable("fake network down")

    async def load_account(self, account_id: str) -> dict:
        await asyncio.sleep(0)
        self._check_reachable()
        self.account_reads += 1
        if account_id not in self.sequences:
            raise AccountNotFound(account_id)
        return {"id": account_id, "sequence": str(self.sequences[account_id])}

    async def fetch_base_fee(self) -> int:
        self._check_reachable()
        return self.base_fee

    async def fetch_network_time(self) -> int:
        self._check_reachable()
        return self.now

    async def get_transaction(self, tx_hash: str):
        self._check_reachable()
        if self.lookup_error is not None:
            raise self.lookup_error
        return self.transactions.get(tx_hash)

    def _apply(self, envelope, successful: bool = True, result_code: str | None = None) -> str:
        tx_hash = transaction_hash(envelope, self.passphrase)
        self.sequences[envelope.source_account] = envelope.sequence
        self.transactions[tx_hash] = {
            "hash": tx_hash,
            "successful": successful,
            "memo": envelope.memo,
            "result_code": result_code,
        }
        return tx_hash

    async def submit_transaction(self, envelope_b64: str) -> httpx.Response:
        envelope = decode_envelope(envelope_b64)
        self.submitted.append(envelope)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.on_submit is not None:
                await self.on_submit(envelope)
            await asyncio.sleep(0)
            return self._outcome(envelope)
        finally:
            self.in_flight -= 1

    def _outcome(self, envelope) -> httpx.Response:
        step = self.script.pop(0) if self.script else None
        if isinstance(step, Exception):
            raise step
        if step == "timeout_landed":
            self._apply(envelope)
            raise httpx.ReadTimeout("read timed out")
        if step == "timeout_lost":
            raise httpx.ReadTimeout("read timed out")
        if step == "timeout_seq_only":
            # Landed, but the hash lookup does not see it yet
            self.sequences[envelope.source_account] = envelope.sequence
            raise httpx.ReadTimeout("read timed out")
        if step == "timeout_then_down":
            self.unreachable = True
            raise httpx.ReadTimeout("read timed out")
        if step == "out_of_band":
            self.sequences[envelope.source_account] += 1
        if isinstance(step, tuple) and step[0] == "reject":
            return _result_codes_error(step[1])
        if isinstance(step, tuple) and step[0] == "tx_failed":
            self._apply(envelope, successful=False, result_code=step[1])
            return _result_codes_error("tx_failed", [step[1]])
        if isinstance(step, tuple) and step[0] == "http":
            return httpx.Response(step[1], json=step[2])

        current = self.sequences.get(envelope.source_account)
        if current is None:
            return _result_codes_error("tx_no_source_account")
        if envelope.sequence != current + 1:
            return _result_codes_error("tx_bad_seq")
        tx_hash = self._apply(envelope)
        return httpx.Response(200, json={"hash": tx_hash, "successful": True})


def _result_codes_error(tx_code: str, op_codes: list | None = None) -> httpx.Response:
    return httpx.Response(
        400,
        json={
            "title": "Transaction Failed",
            "status": 400,
            "extras": {
                "result_codes": {
                    "transaction": tx_code,
                    "operations": op_codes or [],
                },
            },
        },
    )


# ── Fake Payment Service ─────────────────────────────────────────────


class FakePaymentService:
    """In-memory payment service with the PaymentServiceClient interface."""

    def __init__(self, recipient: str):
        self.recipient = recipient
        self.records: dict[str, PaymentRecord] = {}
        self.completed: dict[str, str] = {}
        self.complete_calls = 0
        self.cancelled: list[str] = []
        self.complete_failures: list[Exception] = []
        self.incomplete: list[PaymentRecord] = []
        self.id_prefix = "PAY"
        self._next = 100

    async def create_payment(self, intent, uid: str) -> PaymentRecord:
        self._next += 1
        record = PaymentRecord(
            identifier=f"{self.id_prefix}{self._next}",
            recipient=self.recipient,
            amount=intent.amount,
            memo=intent.memo_text,
            metadata=intent.metadata,
            uid=uid,
        )
        self.records[record.identifier] = record
        return record

    async def get_payment(self, identifier: str) -> PaymentRecord:
        return self.records[identifier]

    async def complete_payment(self, identifier: str, txid: str) -> PaymentRecord:
        self.complete_calls += 1
        if self.complete_failures:
            raise self.complete_failures.pop(0)
        previous = self.completed.get(identifier)
        if previous is not None and previous != txid:
            raise BackendRejected("already completed with another txid", status_code=400)
        self.completed[identifier] = txid
        record = self.records.get(identifier)
        if record is not None:
            record = record.model_copy(update={"status": "completed", "tx_hash": txid})
            self.records[identifier] = record
        return record

    async def cancel_payment(self, identifier: str) -> PaymentRecord:
        if identifier in self.completed:
            raise BackendRejected("cannot cancel a completed payment", status_code=400)
        self.cancelled.append(identifier)
        return self.records.get(identifier)

    async def incomplete_server_payments(self) -> list[PaymentRecord]:
        return list(self.incomplete)


# ── Controller Fixtures ──────────────────────────────────────────────


@pytest.fixture
def chain(app_account) -> FakeChain:
    fake = FakeChain()
    fake.sequences[app_account[1]] = 5
    return fake


@pytest.fixture
def backend(user_wallet) -> FakePaymentService:
    return FakePaymentService(recipient=user_wallet)


@pytest.fixture
def sleeps(chain) -> list:
    """Records every controller sleep; sleeping advances the fake network clock."""
    return []


@pytest.fixture
def make_controller(chain, backend, store, app_account, sleeps):
    """Factory for controllers wired to the fakes. Keyword args override defaults."""

    async def fake_sleep(seconds: float):
        sleeps.append(seconds)
        chain.now += int(seconds)

    def _make(**overrides) -> PaymentController:
        private_key, address = app_account
        options = dict(
            payments=backend,
            sequencer=AccountSequencer(chain),
            submitter=Submitter(chain, PASSPHRASE),
            store=store,
            keys={address: private_key},
            network_passphrase=PASSPHRASE,
            retry_limit=3,
            retry_backoff_seconds=1.0,
            complete_retry_limit=3,
            complete_backoff_seconds=1.0,
            validity_window_seconds=180,
            status_poll_seconds=60.0,
            status_check_max_polls=10,
            sleep=fake_sleep,
        )
        options.update(overrides)
        return PaymentController(**options)

    return _make


@pytest.fixture
def controller(make_controller) -> PaymentController:
    return make_controller()
