"""Append-only audit trail for reconciliation events."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from clinic_payments.models.audit_log import AuditLog
from clinic_payments.models.enums import AuditEvent


def record_event(
    db: Session,
    event_type: AuditEvent,
    details: str,
    purchase_reference: str | None = None,
    person_id: str | None = None,
) -> AuditLog:
    entry = AuditLog(
        event_type=event_type,
        purchase_reference=purchase_reference,
        person_id=person_id,
        details=details,
    )
    db.add(entry)
    return entry


def events_for_purchase(db: Session, purchase_reference: str) -> list[AuditLog]:
    """Audit entries of a purchase, oldest first."""
    return list(db.execute(
        select(AuditLog)
        .where(AuditLog.purchase_reference == purchase_reference)
        .order_by(AuditLog.id)
    ).scalars().all())
