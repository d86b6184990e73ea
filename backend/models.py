"""
Pydantic models for the payment lifecycle and the operator API.

Engine models (PaymentIntent, AccountSnapshot, TransactionEnvelope,
SubmissionResult variants) are frozen; a signed envelope is a new copy with
one more signature.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, Literal, Optional, Tuple, Union

from domain.constants import MEMO_MAX_BYTES
from domain.enums import ErrorClass, LifecycleState, PaymentStatus


class V4Base(BaseModel):
    """Shared base for API models — allows construction by Python name or alias."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


# ── Payment Models ──────────────────────────────────────────────────

class PaymentIntent(FrozenModel):
    """What the caller wants paid. Created once, never mutated."""
    recipient_account_id: str = ""
    amount: int = Field(..., gt=0, description="Amount in the smallest unit")
    memo_text: str = Field(default="", description="User-facing memo (≤ 28 bytes)")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("memo_text")
    @classmethod
    def _memo_fits(cls, v: str) -> str:
        if len(v.encode("utf-8")) > MEMO_MAX_BYTES:
            raise ValueError(f"memo_text must be at most {MEMO_MAX_BYTES} bytes")
        return v


class PaymentRecord(V4Base):
    """Backend payment record as the controller tracks it."""
    identifier: str
    recipient: str
    amount: int
    memo: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)
    uid: str = ""
    status: PaymentStatus = PaymentStatus.CREATED
    tx_hash: Optional[str] = None


# ── Chain Models ────────────────────────────────────────────────────

class AccountSnapshot(FrozenModel):
    account_id: str
    sequence: int = Field(..., ge=0)
    base_fee: int = Field(..., ge=0)


class PaymentOperation(FrozenModel):
    """Native-asset payment operation."""
    type: Literal["payment"] = "payment"
    destination: str
    amount: int = Field(..., gt=0)


class Signature(FrozenModel):
    hint: str = Field(..., description="Hex of the last 4 bytes of the signer's public key")
    signature: str = Field(..., description="Base64 ed25519 signature")


class TransactionEnvelope(FrozenModel):
    source_account: str
    sequence: int
    operations: Tuple[PaymentOperation, ...]
    fee: int
    min_time: int
    max_time: int
    memo: str
    signatures: Tuple[Signature, ...] = ()

    def with_signature(self, signature: Signature) -> "TransactionEnvelope":
        return self.model_copy(update={"signatures": self.signatures + (signature,)})

    def body(self) -> dict:
        """Everything that is signed (all fields except the signatures)."""
        return self.model_dump(mode="json", exclude={"signatures"})


# ── Submission Results ──────────────────────────────────────────────

class Accepted(FrozenModel):
    kind: Literal["accepted"] = "accepted"
    tx_hash: str


class Rejected(FrozenModel):
    kind: Literal["rejected"] = "rejected"
    error_code: str
    retryable: bool
    fee_charged: bool = False
    tx_hash: Optional[str] = None


class TimedOut(FrozenModel):
    kind: Literal["timed_out"] = "timed_out"
    tx_hash: str


SubmissionResult = Union[Accepted, Rejected, TimedOut]


# ── Outcome ─────────────────────────────────────────────────────────

class PaymentOutcome(V4Base):
    """Final (or last known) result of driving one payment."""
    identifier: str
    state: LifecycleState
    tx_hash: Optional[str] = Field(None, alias="txHash")
    error_code: Optional[str] = Field(None, alias="errorCode")
    error_class: Optional[ErrorClass] = Field(None, alias="errorClass")
    fee_possibly_spent: bool = Field(False, alias="feePossiblySpent")
    attempts: int = 0


# ── Operator API Models ─────────────────────────────────────────────

class CreatePaymentRequest(V4Base):
    """Request an A2U payment to the user identified by uid."""
    uid: str = Field(..., min_length=1, description="App-scoped user id")
    amount: int = Field(..., gt=0, description="Amount in the smallest unit")
    memo: str = Field(default="", description="User-facing memo")
    metadata: Dict[str, Any] = Field(default_factory=dict)


class PaymentStatusResponse(V4Base):
    identifier: str
    uid: str
    recipient: str
    amount: int
    state: LifecycleState
    source_account: str = Field(..., alias="sourceAccount")
    sequence: Optional[int] = None
    tx_hash: Optional[str] = Field(None, alias="txHash")
    attempts: int = 0
    last_error: Optional[str] = Field(None, alias="lastError")
    fee_possibly_spent: bool = Field(False, alias="feePossiblySpent")


class ReconcileResponse(V4Base):
    completed: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    cancelled: list[str] = Field(default_factory=list)
    unresolved: list[str] = Field(default_factory=list)
