"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from clinic_payments.models.base import Base
from clinic_payments.models.enums import PurchaseStatus, AuditEvent
from clinic_payments.models.audit_log import AuditLog
from clinic_payments.models.purchase import Purchase
from clinic_payments.models.balance_ledger import BalanceLedger
from clinic_payments.models.ledger_credit import LedgerCredit

__all__ = [
    "Base",
    "PurchaseStatus",
    "AuditEvent",
    "AuditLog",
    "Purchase",
    "BalanceLedger",
    "LedgerCredit",
]
