"""
Payment API endpoints.

The gateway drives most of this router: it redirects payers to
/payments/cancel and posts outcomes to /payments/webhook. The
gateway retries a webhook until it gets a 2xx, so every answer
here is definitive: 2xx means "recorded", anything else means
"try again later" or "this will never work".
"""

import json
import logging
from urllib.parse import parse_qs

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_payments.exceptions import PaymentError, RecordedError
from clinic_payments.models.base import get_db
from clinic_payments.schemas.purchase import (
    PaymentLinkRequest,
    PurchaseResponse,
    ReconciliationResult,
)
from clinic_payments.services.gateway_client import (
    PaymentGatewayClient,
    get_gateway_client,
)
from clinic_payments.services.payment_link_service import PaymentLinkService
from clinic_payments.services.reconciliation_service import ReconciliationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])

# Embedding shells watch for these schemes to close the payment view
SUCCESS_PAGE = """<html>
  <body>
    <script>window.location = "success://payphone";</script>
    <h1>Payment completed</h1>
    <p>You can close this window.</p>
  </body>
</html>
"""

CANCEL_PAGE = """<html>
  <body>
    <script>window.location = "cancel://payphone";</script>
    <h1>Payment canceled or failed</h1>
    <p>You can close this window.</p>
  </body>
</html>
"""

# A lost race on the ledger_credits unique constraint is replayed
# once; the replay sees the winner's credit and only updates status.
MAX_RECONCILE_ATTEMPTS = 2


async def notification_payload(request: Request) -> dict:
    """Read a webhook body sent as JSON or as a url-encoded form."""
    body = await request.body()
    content_type = request.headers.get("content-type", "")

    if "application/x-www-form-urlencoded" in content_type:
        try:
            parsed = parse_qs(body.decode("utf-8"), keep_blank_values=True)
        except ValueError:
            raise HTTPException(
                status_code=400, detail="Body must be JSON or form-encoded"
            )
        return {key: values[-1] for key, values in parsed.items()}

    if not body.strip():
        return {}
    try:
        data = json.loads(body)
    except ValueError:
        raise HTTPException(
            status_code=400, detail="Body must be JSON or form-encoded"
        )
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Body must be an object")
    return data


def reconcile_notification(db: Session, payload: dict) -> ReconciliationResult:
    """Run one reconciliation and own its transaction boundary."""
    for attempt in range(1, MAX_RECONCILE_ATTEMPTS + 1):
        service = ReconciliationService(db)
        try:
            result = service.reconcile(payload)
            db.commit()
            return result
        except IntegrityError:
            db.rollback()
            logger.warning(
                f"Concurrent credit detected (attempt {attempt}), replaying"
            )
        except RecordedError as e:
            # Keep what the gateway reported; the purchase is fixed
            # by hand from the audit log.
            db.commit()
            logger.error(f"Notification recorded but not applied: {e} {e.context}")
            raise HTTPException(status_code=e.status_code, detail=str(e))
        except PaymentError as e:
            db.rollback()
            logger.warning(f"Notification rejected: {e} {e.context}")
            raise HTTPException(status_code=e.status_code, detail=str(e))
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Store error while reconciling notification")
            raise HTTPException(status_code=500, detail="Store unavailable")

    raise HTTPException(
        status_code=500, detail="Could not reconcile notification, retry later"
    )


@router.post("/link", status_code=303)
def create_payment_link(
    request: PaymentLinkRequest,
    db: Session = Depends(get_db),
    gateway: PaymentGatewayClient = Depends(get_gateway_client),
):
    """
    Create a pending purchase and redirect to the gateway.

    The purchase is committed only after the gateway returned a
    payment URL.
    """
    service = PaymentLinkService(db, gateway)
    try:
        purchase, url = service.create_link(request)
        db.commit()
    except PaymentError as e:
        db.rollback()
        logger.warning(f"Payment link failed: {e} {e.context}")
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            f"Store error creating payment link {request.reference} "
            f"for {request.beneficiary_id}"
        )
        raise HTTPException(status_code=500, detail="Store unavailable")
    return RedirectResponse(url, status_code=303)


@router.post("/webhook", response_model=ReconciliationResult)
def payment_webhook(
    request: Request,
    payload: dict = Depends(notification_payload),
    db: Session = Depends(get_db),
):
    """
    Apply a gateway outcome to its purchase.

    Browsers (Accept: text/html) get a page that signals
    completion to the embedding shell instead of JSON.
    """
    result = reconcile_notification(db, payload)
    if "text/html" in request.headers.get("accept", ""):
        return HTMLResponse(SUCCESS_PAGE)
    return result


@router.api_route("/cancel", methods=["GET", "POST"], response_class=HTMLResponse)
def payment_cancel():
    """Landing page for canceled or failed payments. Touches nothing."""
    return HTMLResponse(CANCEL_PAGE)


@router.get("/purchases/{reference}", response_model=PurchaseResponse)
def get_purchase(
    reference: str,
    db: Session = Depends(get_db),
):
    """Get purchase details."""
    service = ReconciliationService(db)
    try:
        return service.get_purchase(reference)
    except PaymentError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
