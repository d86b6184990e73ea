"""
Domain enums for payment records and the submission lifecycle.
"""

from enum import Enum


class PaymentStatus(str, Enum):
    """Status of the backend payment record."""
    CREATED = "created"
    SUBMITTED = "submitted"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class LifecycleState(str, Enum):
    """Controller state of one payment's blockchain submission."""
    CREATED = "created"
    SEQUENCE_ACQUIRED = "sequence_acquired"
    BUILT = "built"
    SIGNED = "signed"
    SUBMITTED = "submitted"
    RETRY_PENDING = "retry_pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


# States in which an envelope may be on its way to the network
IN_FLIGHT_STATES = frozenset({
    LifecycleState.SEQUENCE_ACQUIRED,
    LifecycleState.BUILT,
    LifecycleState.SIGNED,
    LifecycleState.SUBMITTED,
})

CANCELLABLE_STATES = frozenset({
    LifecycleState.CREATED,
    LifecycleState.RETRY_PENDING,
})

TERMINAL_STATES = frozenset({
    LifecycleState.COMPLETED,
    LifecycleState.FAILED,
    LifecycleState.CANCELLED,
})


class ErrorClass(str, Enum):
    """Classification reported with a Failed (or stuck) payment."""
    INPUT = "input"
    TERMINAL = "terminal"
    RETRIES_EXHAUSTED = "retries_exhausted"
    UNRESOLVED = "unresolved"
    COMPLETION = "completion"
