"""
Reconciliation service — applies gateway callbacks to purchases.

Each notification:
1. Is canonicalized (correlation key and outcome aliases)
2. Is matched to its purchase, which is locked for the rest
   of the transaction
3. Updates the purchase status and stores the raw payload
4. If the outcome is Approved and the purchase has no credit
   yet, credits the beneficiary's balance through LedgerService

Steps 3 and 4 happen in the caller's transaction. A failure in
step 4 raises a CreditError after step 3 was flushed; the caller
commits the status anyway and the balance is fixed by hand. An
unknown outcome is stored and audited the same way, without
touching the status.
"""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from clinic_payments.exceptions import (
    CreditError,
    IncompleteLedgerTarget,
    MissingCorrelationKey,
    PurchaseNotFound,
    UnknownOutcome,
)
from clinic_payments.models.enums import AuditEvent, PurchaseStatus
from clinic_payments.models.purchase import Purchase
from clinic_payments.schemas.purchase import GatewayNotification, ReconciliationResult
from clinic_payments.services.audit import record_event
from clinic_payments.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)


# Field paths the gateway has used over time, in priority order.
CORRELATION_KEY_ALIASES = (
    ("clientTransactionId",),
    ("ClientTransactionId",),
    ("transactionId",),
    ("transaction", "clientTransactionId"),
    ("reference",),
)

OUTCOME_ALIASES = (
    ("transactionStatus",),
    ("TransactionStatus",),
    ("status",),
    ("transaction", "transactionStatus"),
)

OUTCOMES = {
    "pending": PurchaseStatus.PENDING,
    "approved": PurchaseStatus.APPROVED,
    "paid": PurchaseStatus.APPROVED,
    "failed": PurchaseStatus.FAILED,
    "rejected": PurchaseStatus.FAILED,
    "declined": PurchaseStatus.FAILED,
    "canceled": PurchaseStatus.CANCELED,
    "cancelled": PurchaseStatus.CANCELED,
}


def _lookup(payload: dict[str, Any], path: tuple[str, ...]) -> Any:
    value: Any = payload
    for key in path:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def _first_value(payload: dict[str, Any], aliases) -> str | None:
    for path in aliases:
        value = _lookup(payload, path)
        if value is None or isinstance(value, (dict, list)):
            continue
        value = str(value).strip()
        if value:
            return value
    return None


def correlation_key(payload: dict[str, Any]) -> str:
    """Return the transaction id of a callback or raise MissingCorrelationKey."""
    key = _first_value(payload, CORRELATION_KEY_ALIASES)
    if key is None:
        raise MissingCorrelationKey("Notification has no transaction id")
    return key


def canonicalize_notification(payload: dict[str, Any]) -> GatewayNotification:
    """
    Map a raw gateway callback onto the internal notification.

    Raises MissingCorrelationKey when no alias carries a key and
    UnknownOutcome for a status outside the known vocabulary. A
    missing status means the payment is still pending.
    """
    key = correlation_key(payload)

    raw_outcome = _first_value(payload, OUTCOME_ALIASES)
    if raw_outcome is None:
        outcome = PurchaseStatus.PENDING
    else:
        outcome = OUTCOMES.get(raw_outcome.lower())
        if outcome is None:
            raise UnknownOutcome(
                f"Unknown transaction status '{raw_outcome}'",
                correlation_key=key,
            )

    return GatewayNotification(
        client_transaction_id=key, outcome=outcome, raw=payload
    )


class ReconciliationService:

    def __init__(self, db: Session):
        self.db = db
        self.ledger_service = LedgerService(db)

    def find_purchase(self, correlation_key: str) -> Purchase:
        """
        Find and lock the purchase a callback refers to.

        Matches the gateway transaction id first, then the
        internal reference.
        """
        purchase = self.db.execute(
            select(Purchase)
            .where(Purchase.client_transaction_id == correlation_key)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if purchase is None:
            purchase = self.db.execute(
                select(Purchase)
                .where(Purchase.reference == correlation_key)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        if purchase is None:
            raise PurchaseNotFound(
                f"No purchase for transaction '{correlation_key}'",
                correlation_key=correlation_key,
            )
        return purchase

    def get_purchase(self, reference: str) -> Purchase:
        """Get a purchase by its reference."""
        purchase = self.db.get(Purchase, reference)
        if not purchase:
            raise PurchaseNotFound(f"Purchase {reference} not found")
        return purchase

    def _apply_status(
        self, purchase: Purchase, outcome: PurchaseStatus, credited: bool
    ) -> None:
        """
        Write the gateway outcome onto the purchase.

        A credited purchase stays Approved, and a terminal
        purchase never goes back to pending. Both cases are
        audited instead of applied.
        """
        previous = purchase.status
        if (credited and outcome != PurchaseStatus.APPROVED) or (
            previous.is_terminal and not outcome.is_terminal
        ):
            logger.warning(
                f"Ignoring {outcome.value} for purchase {purchase.reference} "
                f"(currently {previous.value}, credited={credited})"
            )
            record_event(
                self.db,
                AuditEvent.STATUS_CHANGE_IGNORED,
                f"{previous.value} -> {outcome.value} ignored",
                purchase_reference=purchase.reference,
                person_id=purchase.beneficiary_id,
            )
            return

        purchase.status = outcome
        record_event(
            self.db,
            AuditEvent.STATUS_UPDATED,
            f"{previous.value} -> {outcome.value}",
            purchase_reference=purchase.reference,
            person_id=purchase.beneficiary_id,
        )

    def _record_unknown_outcome(
        self, purchase: Purchase, payload: dict[str, Any], error: UnknownOutcome
    ) -> None:
        """Keep the raw callback and audit it; the status is left alone."""
        logger.error(
            f"Purchase {purchase.reference} (beneficiary "
            f"{purchase.beneficiary_id}): {error}"
        )
        purchase.gateway_payload = payload
        purchase.updated_at = datetime.utcnow()
        record_event(
            self.db,
            AuditEvent.UNKNOWN_OUTCOME,
            str(error),
            purchase_reference=purchase.reference,
            person_id=purchase.beneficiary_id,
        )
        self.db.flush()

    def _credit_target(self, purchase: Purchase) -> tuple[str, Decimal]:
        """Return (beneficiary, amount) or raise IncompleteLedgerTarget."""
        person_id = purchase.beneficiary_id
        try:
            amount = Decimal(str(purchase.amount)) if purchase.amount is not None else None
        except InvalidOperation:
            amount = None

        if not person_id or amount is None or not amount.is_finite() or amount <= 0:
            raise IncompleteLedgerTarget(
                f"Purchase {purchase.reference} is approved but has no "
                f"usable beneficiary/amount",
                correlation_key=purchase.client_transaction_id,
                person_id=person_id,
            )
        return person_id, amount

    def reconcile(self, payload: dict[str, Any]) -> ReconciliationResult:
        """
        Apply one gateway notification.

        Safe to call any number of times for the same
        notification: the credit is applied at most once.
        """
        key = correlation_key(payload)
        purchase = self.find_purchase(key)

        try:
            notification = canonicalize_notification(payload)
        except UnknownOutcome as e:
            self._record_unknown_outcome(purchase, payload, e)
            raise

        existing_credit = self.ledger_service.find_credit(purchase.reference)

        purchase.gateway_payload = notification.raw
        purchase.updated_at = datetime.utcnow()
        self._apply_status(purchase, notification.outcome, existing_credit is not None)
        self.db.flush()

        result = ReconciliationResult(
            reference=purchase.reference, status=purchase.status
        )

        if notification.outcome != PurchaseStatus.APPROVED:
            logger.info(
                f"Purchase {purchase.reference} updated to {purchase.status.value}"
            )
            return result

        if existing_credit is not None:
            logger.info(
                f"Purchase {purchase.reference} already credited, "
                f"skipping duplicate notification"
            )
            record_event(
                self.db,
                AuditEvent.DUPLICATE_CREDIT_SKIPPED,
                f"Already credited {existing_credit.amount}",
                purchase_reference=purchase.reference,
                person_id=existing_credit.person_id,
            )
            self.db.flush()
            result.duplicate = True
            return result

        try:
            person_id, amount = self._credit_target(purchase)
            credit = self.ledger_service.credit_purchase(purchase, person_id, amount)
        except CreditError as e:
            logger.error(
                f"Could not credit purchase {purchase.reference} "
                f"(transaction {key}, beneficiary {purchase.beneficiary_id}): {e}"
            )
            record_event(
                self.db,
                AuditEvent.CREDIT_FAILED,
                str(e),
                purchase_reference=purchase.reference,
                person_id=purchase.beneficiary_id,
            )
            self.db.flush()
            raise

        record_event(
            self.db,
            AuditEvent.BALANCE_CREDITED,
            f"+{credit.amount} -> {credit.balance_after}",
            purchase_reference=purchase.reference,
            person_id=person_id,
        )
        self.db.flush()

        result.credited = True
        result.balance = credit.balance_after
        return result
