"""
Domain constants used across services.
"""

# Text memo limit on the wire (bytes, UTF-8)
MEMO_MAX_BYTES = 28

# Result codes that are safe to rebuild from a fresh snapshot and resubmit
RETRYABLE_RESULT_CODES = frozenset({
    "tx_bad_seq",
    "tx_insufficient_fee",
    "tx_too_late",
    "tx_too_early",
})

# Transaction-level code meaning "operations failed, fee was charged"
TX_FAILED = "tx_failed"

# Synthetic codes for transport-level outcomes
CODE_RATE_LIMITED = "rate_limited"
CODE_NETWORK_UNREACHABLE = "network_unreachable"
CODE_RETRIES_EXHAUSTED = "retries_exhausted"
CODE_UNRESOLVED = "submission_unresolved"
CODE_COMPLETION_REJECTED = "completion_rejected"
CODE_EXPIRED_UNSUBMITTED = "expired_before_inclusion"

# Prefix of the envelope hash input (network id is prepended)
ENVELOPE_TYPE_TX = b"ENVELOPE_TYPE_TX"
