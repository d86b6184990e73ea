"""
Operator endpoints for A2U payments.

POST /a2u/payments                  create + drive a payment to a final state
GET  /a2u/payments/{identifier}     lifecycle state as persisted locally
POST /a2u/payments/{identifier}/cancel
POST /a2u/reconcile                 resolve interrupted submissions
"""
import logging

from fastapi import APIRouter, Depends

from deps import get_controller, require_operator_key
from domain.errors import NotFoundError, ValidationError, from_engine_error
from exceptions import A2UError
from models import (
    CreatePaymentRequest,
    PaymentIntent,
    PaymentOutcome,
    PaymentStatusResponse,
    ReconcileResponse,
)
from services.payment_controller import PaymentController

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/a2u",
    tags=["a2u"],
    dependencies=[Depends(require_operator_key)],
)


@router.post("/payments", response_model=PaymentOutcome)
async def create_payment(
    request: CreatePaymentRequest,
    controller: PaymentController = Depends(get_controller),
):
    """Create a backend payment for uid and submit it on chain."""
    try:
        intent = PaymentIntent(
            amount=request.amount,
            memo_text=request.memo,
            metadata=request.metadata,
        )
    except ValueError as e:
        raise ValidationError(str(e), field="memo")

    logger.info(f"A2U payment requested: uid={request.uid} amount={request.amount}")
    try:
        return await controller.pay(intent, request.uid)
    except A2UError as e:
        raise from_engine_error(e)


@router.get("/payments/{identifier}", response_model=PaymentStatusResponse)
async def get_payment(
    identifier: str,
    controller: PaymentController = Depends(get_controller),
):
    row = await controller.store.get(identifier)
    if row is None:
        raise NotFoundError("Payment", identifier)
    return PaymentStatusResponse(
        identifier=row.identifier,
        uid=row.uid,
        recipient=row.recipient,
        amount=row.amount,
        state=row.state,
        source_account=row.source_account,
        sequence=row.sequence,
        tx_hash=row.tx_hash,
        attempts=row.attempts,
        last_error=row.last_error,
        fee_possibly_spent=row.fee_possibly_spent,
    )


@router.post("/payments/{identifier}/cancel", response_model=PaymentOutcome)
async def cancel_payment(
    identifier: str,
    controller: PaymentController = Depends(get_controller),
):
    try:
        return await controller.cancel(identifier)
    except A2UError as e:
        raise from_engine_error(e)


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile(controller: PaymentController = Depends(get_controller)):
    """Resolve submitted-but-unconfirmed payments and the backend's incomplete ones."""
    return await controller.reconcile()
