"""
Ledger credit model.

Records that a purchase's amount was added to a beneficiary's
balance. The unique constraint on purchase_reference is what
guarantees a purchase is credited at most once: a second insert
for the same purchase fails at the database, even when two
webhook deliveries race each other.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic_payments.models.base import Base


class LedgerCredit(Base):
    """
    An immutable credit applied to a balance ledger.

    Credits are append-only. They are written in the same
    transaction as the balance update they describe.
    """

    __tablename__ = "ledger_credits"

    id: Mapped[int] = mapped_column(primary_key=True)
    purchase_reference: Mapped[str] = mapped_column(
        ForeignKey("purchases.reference"), unique=True, nullable=False
    )
    person_id: Mapped[str] = mapped_column(
        ForeignKey("balance_ledger.person_id"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False
    )
    balance_after: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    purchase: Mapped["Purchase"] = relationship(back_populates="credit")
    ledger: Mapped["BalanceLedger"] = relationship(back_populates="credits")

    def __repr__(self) -> str:
        return (
            f"<LedgerCredit {self.purchase_reference} "
            f"+{self.amount} -> {self.person_id}>"
        )
