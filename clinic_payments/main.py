"""
Clinic Payments — FastAPI Application.

This is the entry point for the application.
All routers are registered here.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from clinic_payments.config import get_settings
from clinic_payments.api.health import router as health_router
from clinic_payments.api.inference import router as inference_router
from clinic_payments.api.ledger import router as ledger_router
from clinic_payments.api.payments import router as payments_router
from clinic_payments.services.inference_service import build_inference_service

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Payment links, gateway reconciliation and balances for the clinic",
)

app.state.inference_service = build_inference_service()


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors: 400, not 422."""
    logger.info(f"Rejected request to {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"detail": jsonable_encoder(exc.errors())},
    )


# Register routers
app.include_router(health_router)
app.include_router(payments_router)
app.include_router(ledger_router)
app.include_router(inference_router)
