"""
Purchase model.

One intent to pay. The internal reference is the primary key;
the gateway's clientTransactionId is stored separately and
indexed, since webhooks correlate on it.

A purchase is never deleted. Its status moves out of PENDING
when the gateway calls back.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    String, DateTime, Numeric, JSON,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic_payments.models.base import Base
from clinic_payments.models.enums import PurchaseStatus


class Purchase(Base):
    __tablename__ = "purchases"

    reference: Mapped[str] = mapped_column(String(100), primary_key=True)
    client_transaction_id: Mapped[str | None] = mapped_column(
        String(100), unique=True, nullable=True, index=True
    )
    beneficiary_id: Mapped[str | None] = mapped_column(
        String(100), nullable=True, index=True
    )
    product_id: Mapped[str | None] = mapped_column(
        String(100), nullable=True
    )
    amount: Mapped[Decimal | None] = mapped_column(
        Numeric(19, 4), nullable=True
    )
    status: Mapped[PurchaseStatus] = mapped_column(
        SAEnum(
            PurchaseStatus,
            name="purchase_status_enum",
            create_constraint=True,
        ),
        nullable=False,
        default=PurchaseStatus.PENDING,
    )
    # Last raw notification from the gateway, kept for audit
    gateway_payload: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    credit: Mapped[Optional["LedgerCredit"]] = relationship(
        back_populates="purchase", uselist=False
    )

    @property
    def is_credited(self) -> bool:
        return self.credit is not None

    def __repr__(self) -> str:
        return (
            f"<Purchase {self.reference} "
            f"{self.amount} ({self.status.value})>"
        )
