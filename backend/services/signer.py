"""
Signer — appends an ed25519 signature to an envelope.

Pure: (envelope, key) -> new envelope. Key material is only read, never
logged or stored. Keys use the algosdk format (base64 of the 64-byte
secret), accounts the algosdk address format.
"""
from algosdk import account, encoding, util

from exceptions import InvalidKey
from models import Signature, TransactionEnvelope
from services.transaction_builder import signing_payload


def _signature_hint(address: str) -> str:
    return encoding.decode_address(address)[-4:].hex()


def sign(envelope: TransactionEnvelope, private_key: str, network_passphrase: str) -> TransactionEnvelope:
    """
    Sign the envelope with the source account's key.

    Raises:
        InvalidKey: key is malformed or does not belong to envelope.source_account
    """
    try:
        address = account.address_from_private_key(private_key)
    except Exception as e:
        raise InvalidKey("Signing key is malformed") from e

    if address != envelope.source_account:
        raise InvalidKey(
            f"Signing key does not match source account {envelope.source_account[:8]}..."
        )

    signature = util.sign_bytes(signing_payload(envelope, network_passphrase), private_key)
    return envelope.with_signature(
        Signature(hint=_signature_hint(address), signature=signature)
    )


def verify(envelope: TransactionEnvelope, network_passphrase: str) -> bool:
    """True when at least one signature is a valid signature by the source account."""
    payload = signing_payload(envelope, network_passphrase)
    hint = _signature_hint(envelope.source_account)
    return any(
        sig.hint == hint and util.verify_bytes(payload, sig.signature, envelope.source_account)
        for sig in envelope.signatures
    )
