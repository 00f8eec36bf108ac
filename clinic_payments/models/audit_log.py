"""
Audit log model.

Records every reconciliation outcome, including the failures
that have to be fixed by hand (approved payment, no ledger).
"""

from datetime import datetime

from sqlalchemy import String, DateTime, Text, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from clinic_payments.models.base import Base
from clinic_payments.models.enums import AuditEvent


class AuditLog(Base):
    """
    Immutable record of a reconciliation event.

    Audit records are append-only: never updated or deleted.
    """

    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(primary_key=True)
    event_type: Mapped[AuditEvent] = mapped_column(
        SAEnum(AuditEvent, name="audit_event_enum"), nullable=False
    )
    purchase_reference: Mapped[str | None] = mapped_column(
        String(100), nullable=True, index=True
    )
    person_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    details: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
