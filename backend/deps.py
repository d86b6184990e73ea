"""
Shared FastAPI dependencies and controller wiring.

The controller and its collaborators are built once in the app lifespan
(build_controller) and stored on app.state; routers reach them through
get_controller. Secrets flow from Settings into constructors explicitly.
"""

from __future__ import annotations

import hmac
import logging

from fastapi import Header, Request

from chain_client import ChainClient
from config import Settings
from domain.errors import UnauthorizedError
from services.attempt_store import AttemptStore
from services.payment_client import PaymentServiceClient
from services.payment_controller import PaymentController
from services.sequencer import AccountSequencer
from services.submitter import Submitter

logger = logging.getLogger(__name__)


def build_controller(
    settings: Settings,
    session_factory,
    *,
    chain: ChainClient | None = None,
    payments: PaymentServiceClient | None = None,
) -> PaymentController:
    """Assemble the controller from settings (clients can be injected for tests)."""
    chain = chain or ChainClient(
        settings.chain_api_url,
        timeout=settings.chain_timeout_seconds,
        submit_timeout=settings.submit_timeout_seconds,
    )
    payments = payments or PaymentServiceClient(
        settings.payment_api_url,
        settings.payment_api_key,
        timeout=settings.backend_timeout_seconds,
    )
    keys = {}
    if settings.app_wallet and settings.app_wallet_mnemonic:
        keys[settings.app_wallet] = settings.app_private_key
    else:
        logger.warning("App wallet not configured; payments will fail with invalid_key")

    return PaymentController(
        payments=payments,
        sequencer=AccountSequencer(chain),
        submitter=Submitter(chain, settings.network_passphrase),
        store=AttemptStore(session_factory),
        keys=keys,
        network_passphrase=settings.network_passphrase,
        default_source=settings.app_wallet or None,
        retry_limit=settings.retry_limit,
        retry_backoff_seconds=settings.retry_backoff_seconds,
        complete_retry_limit=settings.complete_retry_limit,
        complete_backoff_seconds=settings.complete_backoff_seconds,
        validity_window_seconds=settings.validity_window_seconds,
        status_poll_seconds=settings.status_poll_seconds,
        status_check_max_polls=settings.status_check_max_polls,
    )


def get_controller(request: Request) -> PaymentController:
    return request.app.state.controller


def require_operator_key(
    request: Request,
    x_operator_key: str | None = Header(None, alias="X-Operator-Key"),
) -> None:
    """Guard operator endpoints. Open when no operator key is configured (dev only)."""
    expected = request.app.state.settings.operator_api_key
    if not expected:
        return
    if not x_operator_key or not hmac.compare_digest(x_operator_key, expected):
        raise UnauthorizedError("Missing or invalid X-Operator-Key")
