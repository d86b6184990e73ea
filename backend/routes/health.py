"""
Health check endpoint.
"""
from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from exceptions import ChainUnavailable

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check(request: Request):
    """Health check — verifies blockchain API connectivity."""
    controller = request.app.state.controller
    source = controller.default_source
    try:
        base_fee = await controller.sequencer.fetch_base_fee()
        return {
            "status": "healthy",
            "chain_connected": True,
            "base_fee": base_fee,
            "source_account_blocked": bool(source and controller.is_blocked(source)),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    except ChainUnavailable as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "unhealthy",
                "chain_connected": False,
                "error": str(e),
            },
        )
