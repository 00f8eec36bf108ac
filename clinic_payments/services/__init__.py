"""Business logic services."""

from clinic_payments.services.ledger_service import LedgerService
from clinic_payments.services.payment_link_service import PaymentLinkService
from clinic_payments.services.reconciliation_service import ReconciliationService
from clinic_payments.services.inference_service import InferenceService

__all__ = [
    "LedgerService",
    "PaymentLinkService",
    "ReconciliationService",
    "InferenceService",
]
