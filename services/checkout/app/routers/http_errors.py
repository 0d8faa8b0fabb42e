from __future__ import annotations

import logging
from typing import NoReturn

from fastapi import HTTPException
from services.checkout.app.backend.base import BackendError
from services.checkout.app.services.errors import (
    InvalidTransition,
    NotFoundError,
    PricingError,
    SessionInitError,
    ValidationError,
    VerificationError,
    VerificationInFlight,
)
from services.checkout.app.services.gateway_base import GatewayError
from services.checkout.app.services.store import Runtime, get_runtime

logger = logging.getLogger(__name__)


def runtime() -> Runtime:
    try:
        return get_runtime()
    except (ValueError, GatewayError) as e:
        raise HTTPException(status_code=500, detail=str(e)) from e


def raise_checkout_http_error(e: Exception) -> NoReturn:
    if isinstance(e, ValidationError):
        raise HTTPException(
            status_code=422,
            detail={"message": str(e), "step": e.step, "fields": e.fields},
        ) from e

    if isinstance(e, PricingError):
        raise HTTPException(status_code=409, detail=str(e)) from e

    if isinstance(e, (InvalidTransition, VerificationInFlight)):
        raise HTTPException(status_code=409, detail=str(e)) from e

    if isinstance(e, NotFoundError):
        raise HTTPException(status_code=404, detail=str(e)) from e

    if isinstance(e, (SessionInitError, VerificationError)):
        raise HTTPException(status_code=502, detail=str(e)) from e

    if isinstance(e, BackendError):
        raise HTTPException(status_code=502, detail=e.message) from e

    logger.exception("Unhandled checkout error")
    raise HTTPException(status_code=500, detail="Internal Server Error") from e
