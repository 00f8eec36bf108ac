"""
Balance ledger model.

One row per beneficiary holding the running deposited balance.
Rows are opened out-of-band; reconciliation only credits them.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, DateTime, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic_payments.models.base import Base


class BalanceLedger(Base):
    """
    Running balance of a beneficiary.

    deposited_balance only ever grows, and only through
    LedgerService.credit_purchase.
    """

    __tablename__ = "balance_ledger"

    person_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    deposited_balance: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    credits: Mapped[list["LedgerCredit"]] = relationship(
        back_populates="ledger"
    )

    def __repr__(self) -> str:
        return f"<BalanceLedger {self.person_id} {self.deposited_balance}>"
