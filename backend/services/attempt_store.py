"""
Attempt store — persists each payment's lifecycle state.

Every state transition is written before the controller moves on, so after
a crash the row says which envelope (sequence, hash, validity window) may
still be on its way to the network.
"""
import logging
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from db_models import A2UPayment
from domain.enums import LifecycleState
from models import PaymentRecord

logger = logging.getLogger(__name__)


class AttemptStore:
    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def create(self, record: PaymentRecord, source_account: str) -> A2UPayment:
        """Insert the row for a new payment; returns the existing row on a duplicate."""
        async with self.session_factory() as db:
            row = A2UPayment(
                identifier=record.identifier,
                uid=record.uid,
                recipient=record.recipient,
                amount=record.amount,
                memo=record.memo,
                metadata_json=record.metadata,
                source_account=source_account,
                state=LifecycleState.CREATED.value,
            )
            db.add(row)
            try:
                await db.commit()
            except IntegrityError:
                # Race: the identifier is already tracked. Keep the first row.
                await db.rollback()
                existing = await db.execute(
                    select(A2UPayment).where(A2UPayment.identifier == record.identifier)
                )
                existing_row = existing.scalar_one_or_none()
                if existing_row:
                    return existing_row
                raise
            await db.refresh(row)
            return row

    async def get(self, identifier: str) -> Optional[A2UPayment]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(A2UPayment).where(A2UPayment.identifier == identifier)
            )
            return result.scalar_one_or_none()

    async def update(self, identifier: str, **fields) -> A2UPayment:
        """Apply field updates to one row. LifecycleState values are stored by value."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(A2UPayment).where(A2UPayment.identifier == identifier)
            )
            row = result.scalar_one()
            for name, value in fields.items():
                if isinstance(value, LifecycleState):
                    value = value.value
                setattr(row, name, value)
            await db.commit()
            await db.refresh(row)
            return row

    async def list_in_states(
        self,
        states: Iterable[LifecycleState],
        source_account: Optional[str] = None,
    ) -> list[A2UPayment]:
        query = select(A2UPayment).where(A2UPayment.state.in_([s.value for s in states]))
        if source_account:
            query = query.where(A2UPayment.source_account == source_account)
        async with self.session_factory() as db:
            result = await db.execute(query.order_by(A2UPayment.id))
            return list(result.scalars().all())
