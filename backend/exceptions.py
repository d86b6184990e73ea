"""
Custom exception classes for A2U payment operations.

Pipeline errors (AccountNotFound, MemoTooLong, InvalidRecipient, InvalidKey)
are non-retryable input errors. Backend errors are split into transient
(BackendUnavailable) and definitive (BackendRejected).
"""


class A2UError(Exception):
    """Base class for every error raised by the payment engine."""

    code = "a2u_error"


class AccountNotFound(A2UError):
    """Raised when the source account does not exist on chain."""

    code = "account_not_found"

    def __init__(self, account_id: str):
        super().__init__(f"Account not found on chain: {account_id[:8]}...")
        self.account_id = account_id


class MemoTooLong(A2UError):
    """Raised when the payment identifier does not fit in the transaction memo."""

    code = "memo_too_long"

    def __init__(self, memo: str, limit: int):
        super().__init__(
            f"Memo is {len(memo.encode('utf-8'))} bytes, limit is {limit}"
        )
        self.memo = memo
        self.limit = limit


class InvalidRecipient(A2UError):
    """Raised when the destination is not a well-formed account id."""

    code = "invalid_recipient"


class InvalidKey(A2UError):
    """Raised when the signing key is malformed or belongs to another account."""

    code = "invalid_key"


class ChainUnavailable(A2UError):
    """Raised when the blockchain API cannot be reached or answers with 5xx."""

    code = "chain_unavailable"


class BackendError(A2UError):
    """Base class for payment-service errors."""

    code = "backend_error"


class BackendUnavailable(BackendError):
    """Transient payment-service failure (timeout, transport error, 5xx)."""

    code = "backend_unavailable"


class BackendRejected(BackendError):
    """The payment service answered with a definitive 4xx."""

    code = "backend_rejected"

    def __init__(self, message: str, status_code: int, body: dict | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body or {}


class PaymentNotFound(A2UError):
    """No payment with this identifier is tracked locally."""

    code = "payment_not_found"


class AccountBusy(A2UError):
    """The source account has a submission whose outcome is still unknown."""

    code = "account_busy"


class CancellationNotAllowed(A2UError):
    """The payment is past the point where it can be abandoned."""

    code = "cancellation_not_allowed"
