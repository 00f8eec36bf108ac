"""
Payment link service — starts a purchase.

1. Validates the request (schema level: beneficiary, product,
   positive amount)
2. Creates or refreshes the PENDING purchase under its reference
3. Asks the gateway for a hosted payment URL

The purchase is only flushed, never committed. If the gateway
call fails the caller rolls back, so a failed link never leaves
a purchase behind.
"""

import logging
import time
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from clinic_payments.exceptions import PurchaseAlreadySettled, ValidationError
from clinic_payments.models.enums import AuditEvent, PurchaseStatus
from clinic_payments.models.purchase import Purchase
from clinic_payments.schemas.purchase import PaymentLinkRequest
from clinic_payments.services.audit import record_event
from clinic_payments.services.gateway_client import PaymentGatewayClient

logger = logging.getLogger(__name__)


def generate_reference() -> str:
    """Millisecond timestamp plus a random suffix."""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


class PaymentLinkService:

    def __init__(self, db: Session, gateway: PaymentGatewayClient):
        self.db = db
        self.gateway = gateway

    def create_link(self, request: PaymentLinkRequest) -> tuple[Purchase, str]:
        """
        Create (or refresh) a pending purchase and return it with
        the gateway URL the payer should be redirected to.
        """
        if request.amount <= 0:
            raise ValidationError("amount must be positive")

        reference = request.reference or generate_reference()

        purchase = self.db.execute(
            select(Purchase)
            .where(Purchase.reference == reference)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if purchase and purchase.status.is_terminal:
            raise PurchaseAlreadySettled(
                f"Purchase {reference} is already {purchase.status.value}",
                reference=reference,
            )

        if purchase is None:
            purchase = Purchase(reference=reference)
            self.db.add(purchase)

        # Merge: a retried link request refreshes the pending record
        purchase.client_transaction_id = reference
        purchase.beneficiary_id = request.beneficiary_id
        purchase.product_id = request.product_id
        purchase.amount = request.amount
        purchase.status = PurchaseStatus.PENDING
        self.db.flush()

        url = self.gateway.prepare(request.amount, reference)

        record_event(
            self.db,
            AuditEvent.LINK_CREATED,
            f"Payment link prepared for {request.amount}",
            purchase_reference=reference,
            person_id=request.beneficiary_id,
        )
        self.db.flush()
        logger.info(
            f"Payment link created for purchase {reference} "
            f"(beneficiary {request.beneficiary_id}, amount {request.amount})"
        )
        return purchase, url

