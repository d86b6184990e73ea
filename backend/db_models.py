"""
SQLAlchemy ORM models for the A2U payment engine.

Tables:
    a2u_payments — one row per backend payment identifier, tracking the
                   controller's lifecycle state so an interrupted submission
                   can be resolved after a restart
"""
from datetime import datetime

from sqlalchemy import (
    Column, Integer, BigInteger, String, Boolean, DateTime, Text, JSON, Index,
)

from database import Base


class A2UPayment(Base):
    """
    Lifecycle state of one app-to-user payment.

    sequence and tx_hash describe the most recent envelope; they are
    overwritten on every retry, so a row in state 'submitted' always names
    the envelope whose outcome is still unknown.
    """

    __tablename__ = "a2u_payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    identifier = Column(String(128), unique=True, nullable=False, index=True)  # backend payment id
    uid = Column(String(128), nullable=False, default="")
    recipient = Column(String(64), nullable=False)
    amount = Column(BigInteger, nullable=False)  # smallest unit
    memo = Column(String(64), nullable=False, default="")
    metadata_json = Column(JSON, nullable=False, default=dict)
    source_account = Column(String(64), nullable=False, index=True)
    state = Column(String(32), nullable=False, default="created", index=True)
    sequence = Column(BigInteger, nullable=True)
    tx_hash = Column(String(64), nullable=True, index=True)
    max_time = Column(BigInteger, nullable=True)  # validity window end of the last envelope
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    error_class = Column(String(32), nullable=True)
    fee_possibly_spent = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_a2u_payments_source_state", "source_account", "state"),
    )
