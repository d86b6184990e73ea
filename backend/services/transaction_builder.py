"""
Transaction builder — turns a payment intent into an unsigned envelope.

Pure functions only. The payment identifier is embedded as the memo: it is
the sole link between the backend record and the on-chain transaction, which
lets the payment service reconcile on its own even if our submission
response is lost.

Wire form: canonical JSON (sorted keys, no whitespace). The hash that
identifies a transaction is sha256(network_id + ENVELOPE_TYPE_TX + body),
where network_id = sha256(network passphrase).
"""
import base64
import hashlib
import json

from algosdk import encoding

from domain.constants import ENVELOPE_TYPE_TX, MEMO_MAX_BYTES
from exceptions import InvalidRecipient, MemoTooLong
from models import AccountSnapshot, PaymentIntent, PaymentOperation, TransactionEnvelope


def _canonical_json(data: dict) -> bytes:
    return json.dumps(data, sort_keys=True, separators=(",", ":")).encode("utf-8")


def build(
    intent: PaymentIntent,
    snapshot: AccountSnapshot,
    fee: int,
    validity_window: tuple[int, int],
    payment_identifier: str,
) -> TransactionEnvelope:
    """
    Build the envelope for one payment attempt.

    Args:
        intent: Payment to make (recipient already resolved)
        snapshot: Freshly fetched source account state
        fee: Base fee per operation
        validity_window: (min_time, max_time) in unix seconds
        payment_identifier: Backend identifier, carried as the memo

    Raises:
        MemoTooLong: identifier does not fit the wire memo
        InvalidRecipient: destination is not a valid account id
        ValueError: bad fee or validity window
    """
    if len(payment_identifier.encode("utf-8")) > MEMO_MAX_BYTES:
        raise MemoTooLong(payment_identifier, MEMO_MAX_BYTES)

    destination = intent.recipient_account_id
    if not destination or not encoding.is_valid_address(destination):
        raise InvalidRecipient(f"Invalid recipient account id: {destination[:12]!r}")

    if fee < 0:
        raise ValueError("Fee must not be negative")
    min_time, max_time = validity_window
    if max_time <= min_time:
        raise ValueError("Validity window must end after it starts")

    operations = (PaymentOperation(destination=destination, amount=intent.amount),)
    return TransactionEnvelope(
        source_account=snapshot.account_id,
        sequence=snapshot.sequence + 1,
        operations=operations,
        fee=fee * len(operations),
        min_time=min_time,
        max_time=max_time,
        memo=payment_identifier,
    )


def network_id(network_passphrase: str) -> bytes:
    return hashlib.sha256(network_passphrase.encode("utf-8")).digest()


def signing_payload(envelope: TransactionEnvelope, network_passphrase: str) -> bytes:
    """Bytes covered by every signature on the envelope."""
    return network_id(network_passphrase) + ENVELOPE_TYPE_TX + _canonical_json(envelope.body())


def transaction_hash(envelope: TransactionEnvelope, network_passphrase: str) -> str:
    """Hex hash the network uses to identify this transaction."""
    return hashlib.sha256(signing_payload(envelope, network_passphrase)).hexdigest()


def encode_envelope(envelope: TransactionEnvelope) -> str:
    """Base64 of the signed envelope, as posted to the network."""
    return base64.b64encode(_canonical_json(envelope.model_dump(mode="json"))).decode()


def decode_envelope(envelope_b64: str) -> TransactionEnvelope:
    return TransactionEnvelope.model_validate_json(base64.b64decode(envelope_b64))
