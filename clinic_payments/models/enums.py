"""
Shared enumerations for database models.
"""

import enum


class PurchaseStatus(str, enum.Enum):
    """
    Lifecycle of a purchase.

    PENDING is the only non-terminal state. Only the transition
    PENDING -> APPROVED credits the beneficiary's balance.
    """
    PENDING = "pending"
    APPROVED = "Approved"
    FAILED = "Failed"
    CANCELED = "Canceled"

    @property
    def is_terminal(self) -> bool:
        return self is not PurchaseStatus.PENDING


class AuditEvent(str, enum.Enum):
    """Kinds of reconciliation events written to the audit log."""
    LINK_CREATED = "LINK_CREATED"
    STATUS_UPDATED = "STATUS_UPDATED"
    BALANCE_CREDITED = "BALANCE_CREDITED"
    DUPLICATE_CREDIT_SKIPPED = "DUPLICATE_CREDIT_SKIPPED"
    STATUS_CHANGE_IGNORED = "STATUS_CHANGE_IGNORED"
    CREDIT_FAILED = "CREDIT_FAILED"
    UNKNOWN_OUTCOME = "UNKNOWN_OUTCOME"
