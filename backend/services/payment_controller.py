"""
Payment lifecycle controller — drives one A2U payment from backend record to
on-chain completion.

States:
    created → sequence_acquired → built → signed → submitted
        → completed | retry_pending | failed          (+ cancelled)

Rules:
    - One lifecycle at a time per source account (asyncio.Lock per account);
      independent accounts run in parallel.
    - Pipeline errors before submission (account missing, memo too long,
      bad recipient, bad key) fail immediately; the backend record stays
      created and no fee was spent.
    - Retryable rejections restart from a fresh snapshot; the retry_limit-th
      retryable rejection fails the payment.
    - A timed-out submission is never assumed either way: it is looked up by
      hash, then by account sequence, until it is found or its validity
      window has closed on the network.
    - Only a confirmed on-chain acceptance leads to a backend completion
      call; completion is retried with the same hash, the chain never is.
    - The submitted row is written before the envelope is sent, so a crash
      mid-submission is recovered by reconcile().
"""
import asyncio
import logging
from types import MappingProxyType
from typing import Mapping, Optional

from domain.constants import (
    CODE_COMPLETION_REJECTED,
    CODE_EXPIRED_UNSUBMITTED,
    CODE_RETRIES_EXHAUSTED,
    CODE_UNRESOLVED,
)
from domain.enums import (
    CANCELLABLE_STATES,
    IN_FLIGHT_STATES,
    TERMINAL_STATES,
    ErrorClass,
    LifecycleState,
)
from exceptions import (
    AccountBusy,
    AccountNotFound,
    BackendRejected,
    BackendUnavailable,
    CancellationNotAllowed,
    ChainUnavailable,
    InvalidKey,
    InvalidRecipient,
    MemoTooLong,
    PaymentNotFound,
)
from models import (
    Accepted,
    PaymentIntent,
    PaymentOutcome,
    PaymentRecord,
    ReconcileResponse,
    Rejected,
    SubmissionResult,
    TimedOut,
)
from services import signer, transaction_builder
from services.async_executor import run_blocking

logger = logging.getLogger(__name__)

# Sentinel returned by _confirm() when the network could not answer in time
_UNRESOLVED = object()


class PaymentController:
    def __init__(
        self,
        *,
        payments,
        sequencer,
        submitter,
        store,
        keys: Mapping[str, str],
        network_passphrase: str,
        default_source: Optional[str] = None,
        retry_limit: int = 3,
        retry_backoff_seconds: float = 1.0,
        complete_retry_limit: int = 5,
        complete_backoff_seconds: float = 2.0,
        validity_window_seconds: int = 180,
        status_poll_seconds: float = 5.0,
        status_check_max_polls: int = 60,
        sleep=asyncio.sleep,
    ):
        if retry_limit < 1:
            raise ValueError("retry_limit must be at least 1")
        self.payments = payments
        self.sequencer = sequencer
        self.submitter = submitter
        self.store = store
        self._keys = MappingProxyType(dict(keys))
        self.network_passphrase = network_passphrase
        self.default_source = default_source or (next(iter(self._keys)) if self._keys else None)
        self.retry_limit = retry_limit
        self.retry_backoff_seconds = retry_backoff_seconds
        self.complete_retry_limit = complete_retry_limit
        self.complete_backoff_seconds = complete_backoff_seconds
        self.validity_window_seconds = validity_window_seconds
        self.status_poll_seconds = status_poll_seconds
        self.status_check_max_polls = status_check_max_polls
        self._sleep = sleep

        self._locks: dict[str, asyncio.Lock] = {}
        self._blocked: set[str] = set()                 # accounts with an unresolved submission
        self._active: dict[str, LifecycleState] = {}    # identifier -> state, while executing here
        self._cancel_waiters: dict[str, asyncio.Future] = {}

    # ════════════════════════════════════════════════════════════════
    # Public API
    # ════════════════════════════════════════════════════════════════

    def is_blocked(self, account_id: str) -> bool:
        return account_id in self._blocked

    async def pay(self, intent: PaymentIntent, uid: str, source_account: Optional[str] = None) -> PaymentOutcome:
        """Create the backend record and drive it to a final state."""
        record = await self.create(intent, uid, source_account)
        return await self.execute(record.identifier)

    async def create(self, intent: PaymentIntent, uid: str, source_account: Optional[str] = None) -> PaymentRecord:
        """Create the backend payment record. No blockchain interaction."""
        source = source_account or self.default_source
        if not source or source not in self._keys:
            raise InvalidKey(f"No signing key configured for source account {str(source)[:8]}...")
        if source in self._blocked or await self._unresolved_rows(source):
            raise AccountBusy(f"Account {source[:8]}... has an unresolved submission")

        record = await self.payments.create_payment(intent, uid)
        if intent.recipient_account_id and intent.recipient_account_id != record.recipient:
            logger.warning(
                f"Payment {record.identifier}: backend resolved recipient "
                f"{record.recipient[:8]}..., ignoring caller's {intent.recipient_account_id[:8]}..."
            )
        await self.store.create(record, source)
        logger.info(f"Payment {record.identifier} created for uid={uid} amount={record.amount}")
        return record

    async def execute(self, identifier: str) -> PaymentOutcome:
        """Drive an existing payment until it completes, fails, or cannot be resolved."""
        row = await self.store.get(identifier)
        if row is None:
            raise PaymentNotFound(identifier)
        source = row.source_account

        if identifier in self._active:
            raise AccountBusy(f"Payment {identifier} is already executing")
        self._active[identifier] = LifecycleState(row.state)
        try:
            async with self._lock_for(source):
                row = await self.store.get(identifier)
                state = LifecycleState(row.state)
                self._active[identifier] = state

                if state in TERMINAL_STATES:
                    self._resolve_cancel_waiter(identifier, row)
                    return self._outcome(row)

                if state == LifecycleState.SUBMITTED and row.tx_hash:
                    confirmed = await self._confirm(source, row.tx_hash, row.sequence, row.max_time)
                    if confirmed is _UNRESOLVED:
                        return await self._unresolved(identifier, source, row.tx_hash)
                    self._blocked.discard(source)
                    if confirmed is not None:
                        return await self._settle(identifier, confirmed)
                    # Never landed: fall through to a fresh attempt

                await self._clear_pending(source, identifier)

                return await self._run(row)
        finally:
            self._active.pop(identifier, None)
            waiter = self._cancel_waiters.pop(identifier, None)
            if waiter is not None and not waiter.done():
                waiter.set_exception(CancellationNotAllowed(
                    f"Payment {identifier} left a cancellable state before the cancel was applied"
                ))

    async def cancel(self, identifier: str) -> PaymentOutcome:
        """
        Abandon a payment that has not reached the network.

        Allowed in created and retry_pending. A payment whose lifecycle is
        running is cancelled at its next stage boundary; this call waits for it.
        """
        if identifier in self._active:
            state = self._active[identifier]
            if state not in CANCELLABLE_STATES:
                raise CancellationNotAllowed(
                    f"Payment {identifier} is {state.value}; it must be resolved, not cancelled"
                )
            waiter = self._cancel_waiters.get(identifier)
            if waiter is None:
                waiter = asyncio.get_running_loop().create_future()
                self._cancel_waiters[identifier] = waiter
            logger.info(f"Cancellation requested for running payment {identifier}")
            return await waiter

        row = await self.store.get(identifier)
        if row is None:
            raise PaymentNotFound(identifier)
        async with self._lock_for(row.source_account):
            row = await self.store.get(identifier)
            state = LifecycleState(row.state)
            if state == LifecycleState.CANCELLED:
                return self._outcome(row)
            if state not in CANCELLABLE_STATES:
                raise CancellationNotAllowed(
                    f"Payment {identifier} is {state.value}; it cannot be cancelled"
                )
            return await self._cancel(identifier)

    async def reconcile(self) -> ReconcileResponse:
        """
        Resolve payments left open by a crash or an unreachable network.

        1. Local rows still marked submitted are confirmed on chain:
           landed → completed, expired → cancelled.
        2. Rows interrupted before submission are cancelled.
        3. The backend's incomplete A2U payments not handled above are
           completed if their transaction landed, cancelled otherwise.
        """
        report = ReconcileResponse()
        handled: set[str] = set()

        for row in await self.store.list_in_states([LifecycleState.SUBMITTED]):
            if row.identifier in self._active:
                continue
            handled.add(row.identifier)
            await self._reconcile_submitted(row, report)

        stale = [
            LifecycleState.SEQUENCE_ACQUIRED,
            LifecycleState.BUILT,
            LifecycleState.SIGNED,
        ]
        for row in await self.store.list_in_states(stale):
            if row.identifier in self._active:
                continue
            handled.add(row.identifier)
            async with self._lock_for(row.source_account):
                current = await self.store.get(row.identifier)
                if LifecycleState(current.state) in stale:
                    await self._cancel_quietly(row.identifier, report)

        try:
            incomplete = await self.payments.incomplete_server_payments()
        except (BackendUnavailable, BackendRejected) as e:
            logger.warning(f"Could not list incomplete server payments: {e}")
            incomplete = []

        for record in incomplete:
            if record.identifier in handled or record.identifier in self._active:
                continue
            handled.add(record.identifier)
            await self._reconcile_backend_record(record, report)

        logger.info(
            f"Reconcile done: completed={len(report.completed)} "
            f"cancelled={len(report.cancelled)} unresolved={len(report.unresolved)}"
        )
        return report

    # ════════════════════════════════════════════════════════════════
    # Lifecycle
    # ════════════════════════════════════════════════════════════════

    def _lock_for(self, account_id: str) -> asyncio.Lock:
        return self._locks.setdefault(account_id, asyncio.Lock())

    async def _run(self, row) -> PaymentOutcome:
        identifier = row.identifier
        source = row.source_account
        intent = PaymentIntent(
            recipient_account_id=row.recipient,
            amount=row.amount,
            memo_text=row.memo,
            metadata=row.metadata_json or {},
        )
        attempts = row.attempts
        retryable_failures = row.attempts  # every earlier attempt ended retryable
        last_code = row.last_error
        if retryable_failures >= self.retry_limit:
            return await self._fail(
                identifier, last_code or CODE_RETRIES_EXHAUSTED, ErrorClass.RETRIES_EXHAUSTED, attempts=attempts
            )

        while True:
            waiter = self._cancel_waiters.pop(identifier, None)
            if waiter is not None:
                try:
                    outcome = await self._cancel(identifier)
                except Exception as e:
                    waiter.set_exception(e)
                    raise
                waiter.set_result(outcome)
                return outcome

            # ── sequence_acquired ───────────────────────────────────
            try:
                snapshot = await self.sequencer.fetch_snapshot(source)
                window = await self.sequencer.fetch_validity_window(self.validity_window_seconds)
            except AccountNotFound as e:
                return await self._fail(identifier, e.code, ErrorClass.INPUT, attempts=attempts)
            except ChainUnavailable as e:
                # Nothing was sent; counts against the retry budget
                last_code = e.code
                retryable_failures += 1
                if retryable_failures >= self.retry_limit:
                    return await self._fail(identifier, last_code, ErrorClass.RETRIES_EXHAUSTED, attempts=attempts)
                await self._transition(identifier, LifecycleState.RETRY_PENDING, last_error=last_code)
                await self._sleep(self.retry_backoff_seconds * retryable_failures)
                continue
            await self._transition(identifier, LifecycleState.SEQUENCE_ACQUIRED)

            # ── built ───────────────────────────────────────────────
            try:
                envelope = transaction_builder.build(
                    intent, snapshot, snapshot.base_fee, window, identifier
                )
            except (MemoTooLong, InvalidRecipient) as e:
                return await self._fail(identifier, e.code, ErrorClass.INPUT, attempts=attempts)
            except ValueError as e:
                logger.error(f"Payment {identifier}: cannot build envelope: {e}")
                return await self._fail(identifier, "invalid_envelope", ErrorClass.INPUT, attempts=attempts)
            await self._transition(identifier, LifecycleState.BUILT, sequence=envelope.sequence)

            # ── signed ──────────────────────────────────────────────
            try:
                signed = await run_blocking(
                    signer.sign, envelope, self._keys.get(source, ""), self.network_passphrase
                )
            except InvalidKey as e:
                return await self._fail(identifier, e.code, ErrorClass.INPUT, attempts=attempts)
            await self._transition(identifier, LifecycleState.SIGNED)

            # ── submitted (persisted before the envelope leaves) ────
            tx_hash = self.submitter.hash_of(signed)
            attempts += 1
            await self._transition(
                identifier,
                LifecycleState.SUBMITTED,
                tx_hash=tx_hash,
                sequence=signed.sequence,
                max_time=signed.max_time,
                attempts=attempts,
            )
            logger.info(
                f"Payment {identifier}: attempt {attempts} seq={signed.sequence} tx={tx_hash[:12]}..."
            )
            try:
                result: Optional[SubmissionResult] = await self.submitter.submit(signed)
                if isinstance(result, TimedOut):
                    logger.warning(f"Payment {identifier}: submission timed out, confirming on chain")
                    result = await self._confirm(source, tx_hash, signed.sequence, signed.max_time)
            except Exception:
                # The envelope may be on the network; nothing else may use this sequence
                logger.error(f"Payment {identifier}: unexpected error after submission", exc_info=True)
                await self._unresolved(identifier, source, tx_hash)
                raise

            if result is _UNRESOLVED:
                return await self._unresolved(identifier, source, tx_hash)
            # result None means confirmed absent

            if isinstance(result, Accepted):
                return await self._complete(identifier, result.tx_hash)

            if isinstance(result, Rejected) and not result.retryable:
                logger.error(f"Payment {identifier}: terminal rejection {result.error_code}")
                return await self._fail(
                    identifier,
                    result.error_code,
                    ErrorClass.TERMINAL,
                    fee_possibly_spent=result.fee_charged,
                    attempts=attempts,
                )

            # ── retry_pending ───────────────────────────────────────
            last_code = result.error_code if isinstance(result, Rejected) else CODE_EXPIRED_UNSUBMITTED
            retryable_failures += 1
            if retryable_failures >= self.retry_limit:
                logger.error(
                    f"Payment {identifier}: giving up after {retryable_failures} retryable "
                    f"failures (last: {last_code})"
                )
                return await self._fail(identifier, last_code, ErrorClass.RETRIES_EXHAUSTED, attempts=attempts)

            await self._transition(identifier, LifecycleState.RETRY_PENDING, last_error=last_code)
            logger.warning(
                f"Payment {identifier}: retryable failure {last_code} "
                f"({retryable_failures}/{self.retry_limit}), rebuilding"
            )
            await self._sleep(self.retry_backoff_seconds * retryable_failures)

    async def _confirm(self, source: str, tx_hash: str, sequence: Optional[int], max_time: Optional[int]):
        """
        Resolve an ambiguous submission.

        Returns Accepted / terminal Rejected when the transaction is known,
        None once it provably can no longer land, or _UNRESOLVED when the
        network stayed unreachable for status_check_max_polls polls.
        """
        polls = 0
        while True:
            try:
                status = await self.submitter.check_status(tx_hash)
                if status is not None:
                    return status
                if sequence is not None:
                    current = await self.sequencer.fetch_sequence(source)
                    if current >= sequence:
                        logger.info(
                            f"Account {source[:8]}... sequence advanced to {current}; "
                            f"treating {tx_hash[:12]}... as accepted"
                        )
                        return Accepted(tx_hash=tx_hash)
                now = await self.sequencer.network_time()
                if max_time is None or now > max_time:
                    logger.info(f"Transaction {tx_hash[:12]}... confirmed absent (window closed)")
                    return None
            except ChainUnavailable as e:
                logger.warning(f"Status check for {tx_hash[:12]}... failed: {e}")

            polls += 1
            if polls >= self.status_check_max_polls:
                return _UNRESOLVED
            await self._sleep(self.status_poll_seconds)

    async def _settle(self, identifier: str, result: SubmissionResult) -> PaymentOutcome:
        """Apply a confirmed chain outcome (Accepted or terminal Rejected)."""
        if isinstance(result, Accepted):
            return await self._complete(identifier, result.tx_hash)
        row = await self.store.get(identifier)
        return await self._fail(
            identifier,
            result.error_code,
            ErrorClass.TERMINAL,
            fee_possibly_spent=result.fee_charged,
            attempts=row.attempts,
        )

    async def _complete(self, identifier: str, tx_hash: str) -> PaymentOutcome:
        """Tell the backend about a confirmed transaction, retrying only this call."""
        await self.store.update(identifier, tx_hash=tx_hash, fee_possibly_spent=True)
        for attempt in range(1, self.complete_retry_limit + 1):
            try:
                await self.payments.complete_payment(identifier, tx_hash)
            except BackendUnavailable as e:
                logger.warning(
                    f"Payment {identifier}: completion attempt {attempt}/"
                    f"{self.complete_retry_limit} failed: {e}"
                )
                if attempt < self.complete_retry_limit:
                    await self._sleep(self.complete_backoff_seconds * attempt)
                continue
            except BackendRejected as e:
                logger.error(
                    f"Payment {identifier}: backend refused completion with tx "
                    f"{tx_hash[:12]}... ({e.status_code})"
                )
                row = await self.store.get(identifier)
                return await self._fail(
                    identifier,
                    CODE_COMPLETION_REJECTED,
                    ErrorClass.COMPLETION,
                    fee_possibly_spent=True,
                    attempts=row.attempts,
                )
            row = await self._transition(
                identifier, LifecycleState.COMPLETED, last_error=None, error_class=None
            )
            logger.info(f"Payment {identifier} completed: tx={tx_hash}")
            return self._outcome(row)

        # On chain but not acknowledged by the backend; reconcile() finishes it
        row = await self.store.update(
            identifier,
            state=LifecycleState.SUBMITTED,
            last_error="completion_pending",
            error_class=ErrorClass.COMPLETION.value,
        )
        logger.error(f"Payment {identifier}: tx {tx_hash} landed but completion is still pending")
        return self._outcome(row)

    async def _unresolved(self, identifier: str, source: str, tx_hash: str) -> PaymentOutcome:
        self._blocked.add(source)
        row = await self.store.update(
            identifier,
            state=LifecycleState.SUBMITTED,
            last_error=CODE_UNRESOLVED,
            error_class=ErrorClass.UNRESOLVED.value,
            fee_possibly_spent=True,
        )
        logger.error(
            f"Payment {identifier}: outcome of {tx_hash[:12]}... unknown; "
            f"account {source[:8]}... blocked until reconciled"
        )
        return self._outcome(row)

    async def _fail(
        self,
        identifier: str,
        code: str,
        error_class: ErrorClass,
        *,
        fee_possibly_spent: bool = False,
        attempts: int = 0,
    ) -> PaymentOutcome:
        row = await self._transition(
            identifier,
            LifecycleState.FAILED,
            last_error=code,
            error_class=error_class.value,
            fee_possibly_spent=fee_possibly_spent,
            attempts=attempts,
        )
        logger.error(
            f"Payment {identifier} failed: {code} ({error_class.value}, "
            f"fee_possibly_spent={fee_possibly_spent})"
        )
        return self._outcome(row)

    async def _cancel(self, identifier: str) -> PaymentOutcome:
        await self.payments.cancel_payment(identifier)
        row = await self._transition(identifier, LifecycleState.CANCELLED)
        logger.info(f"Payment {identifier} cancelled")
        return self._outcome(row)

    async def _transition(self, identifier: str, state: LifecycleState, **fields):
        if identifier in self._active:
            self._active[identifier] = state
        logger.info(f"Payment {identifier} → {state.value}")
        return await self.store.update(identifier, state=state, **fields)

    def _resolve_cancel_waiter(self, identifier: str, row) -> None:
        waiter = self._cancel_waiters.pop(identifier, None)
        if waiter is not None and not waiter.done():
            if row.state == LifecycleState.CANCELLED.value:
                waiter.set_result(self._outcome(row))
            else:
                waiter.set_exception(CancellationNotAllowed(f"Payment {identifier} is {row.state}"))

    @staticmethod
    def _outcome(row) -> PaymentOutcome:
        return PaymentOutcome(
            identifier=row.identifier,
            state=LifecycleState(row.state),
            tx_hash=row.tx_hash,
            error_code=row.last_error if row.state != LifecycleState.COMPLETED.value else None,
            error_class=ErrorClass(row.error_class) if row.error_class else None,
            fee_possibly_spent=row.fee_possibly_spent,
            attempts=row.attempts,
        )

    # ════════════════════════════════════════════════════════════════
    # Reconciliation helpers
    # ════════════════════════════════════════════════════════════════

    async def _reconcile_submitted(self, row, report: ReconcileResponse) -> None:
        source = row.source_account
        async with self._lock_for(source):
            row = await self.store.get(row.identifier)
            if row.state != LifecycleState.SUBMITTED.value:
                return  # resolved by a lifecycle while waiting for the lock
            try:
                outcome = await self._resolve_submitted(row)
            except (BackendUnavailable, BackendRejected) as e:
                logger.warning(f"Reconcile of {row.identifier} incomplete: {e}")
                report.unresolved.append(row.identifier)
                return
            if outcome is _UNRESOLVED:
                report.unresolved.append(row.identifier)
                return
            await self._unblock_if_clear(source)
            if outcome.state == LifecycleState.COMPLETED:
                report.completed.append(row.identifier)
            elif outcome.state == LifecycleState.CANCELLED:
                report.cancelled.append(row.identifier)
            elif outcome.state == LifecycleState.FAILED:
                report.failed.append(row.identifier)
            else:
                report.unresolved.append(row.identifier)

    async def _reconcile_backend_record(self, record: PaymentRecord, report: ReconcileResponse) -> None:
        row = await self.store.get(record.identifier)
        tx_hash = record.tx_hash or (row.tx_hash if row is not None else None)
        try:
            if tx_hash:
                status = await self.submitter.check_status(tx_hash)
                if isinstance(status, Accepted):
                    await self.payments.complete_payment(record.identifier, status.tx_hash)
                    if row is not None:
                        await self.store.update(
                            record.identifier,
                            state=LifecycleState.COMPLETED,
                            tx_hash=status.tx_hash,
                            last_error=None,
                            error_class=None,
                        )
                    report.completed.append(record.identifier)
                    return
                if status is None and row is not None and row.max_time is not None:
                    now = await self.sequencer.network_time()
                    if now <= row.max_time:
                        report.unresolved.append(record.identifier)
                        return
            if row is not None and LifecycleState(row.state) in IN_FLIGHT_STATES | CANCELLABLE_STATES:
                async with self._lock_for(row.source_account):
                    await self._cancel_quietly(record.identifier, report)
                return
            await self.payments.cancel_payment(record.identifier)
            if row is not None and row.state != LifecycleState.FAILED.value:
                await self.store.update(record.identifier, state=LifecycleState.CANCELLED)
            report.cancelled.append(record.identifier)
        except (BackendUnavailable, BackendRejected, ChainUnavailable) as e:
            logger.warning(f"Reconcile of backend payment {record.identifier} incomplete: {e}")
            report.unresolved.append(record.identifier)

    async def _cancel_quietly(self, identifier: str, report: ReconcileResponse) -> None:
        try:
            await self._cancel(identifier)
        except (BackendUnavailable, BackendRejected) as e:
            logger.warning(f"Could not cancel {identifier}: {e}")
            report.unresolved.append(identifier)
            return
        report.cancelled.append(identifier)

    async def _unblock_if_clear(self, source: str) -> None:
        if not await self._unresolved_rows(source):
            self._blocked.discard(source)

    # ════════════════════════════════════════════════════════════════
    # Persisted submissions
    # ════════════════════════════════════════════════════════════════

    async def _unresolved_rows(self, source: str) -> list:
        """Submissions from this account whose outcome could not be determined."""
        rows = await self.store.list_in_states([LifecycleState.SUBMITTED], source_account=source)
        return [r for r in rows if r.error_class == ErrorClass.UNRESOLVED.value]

    async def _clear_pending(self, source: str, identifier: str) -> None:
        """
        Make sure no other envelope from this account may still land before
        a new one is built.

        The rows are read from the store, so submissions left open by an
        earlier process count too. A row marked unresolved waits for
        reconcile(); one left submitted by a crash is confirmed here. A row
        pending only its backend completion already landed on chain.

        Raises:
            AccountBusy: an earlier submission is still unresolved
        """
        rows = await self.store.list_in_states([LifecycleState.SUBMITTED], source_account=source)
        for row in rows:
            if row.identifier == identifier or row.error_class == ErrorClass.COMPLETION.value:
                continue
            if row.error_class == ErrorClass.UNRESOLVED.value:
                self._blocked.add(source)
                raise AccountBusy(
                    f"Account {source[:8]}... has an unresolved submission ({row.identifier}); reconcile first"
                )
            logger.warning(f"Payment {row.identifier} was left submitted; confirming before {identifier}")
            if await self._resolve_submitted(row) is _UNRESOLVED:
                await self._unresolved(row.identifier, source, row.tx_hash or "")
                raise AccountBusy(f"Account {source[:8]}... has an unresolved submission ({row.identifier})")
        self._blocked.discard(source)

    async def _resolve_submitted(self, row):
        """Confirm a persisted submission and apply the answer. Returns the outcome or _UNRESOLVED."""
        source = row.source_account
        confirmed = None
        if row.tx_hash:
            confirmed = await self._confirm(source, row.tx_hash, row.sequence, row.max_time)
        if confirmed is _UNRESOLVED:
            self._blocked.add(source)
            return _UNRESOLVED
        if confirmed is None:
            return await self._cancel(row.identifier)
        return await self._settle(row.identifier, confirmed)
