"""
Ledger service — beneficiary balances.

This service enforces the balance rules:
1. A balance only grows through a confirmed purchase
2. Each purchase contributes its amount at most once
3. Every credit is recorded next to the balance it changed

No other service writes deposited_balance directly.
"""

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from clinic_payments.exceptions import LedgerExists, LedgerTargetNotFound
from clinic_payments.models.balance_ledger import BalanceLedger
from clinic_payments.models.ledger_credit import LedgerCredit
from clinic_payments.models.purchase import Purchase
from clinic_payments.schemas.ledger import LedgerOpenRequest

logger = logging.getLogger(__name__)


class LedgerService:
    """
    All balance ledger operations pass through this service.

    The caller owns the session and decides when to commit
    or roll back.
    """

    def __init__(self, db: Session):
        self.db = db

    def open_ledger(self, request: LedgerOpenRequest) -> BalanceLedger:
        """
        Open a balance ledger for a beneficiary.

        Raises LedgerExists if the beneficiary already has one.
        """
        if self.db.get(BalanceLedger, request.person_id):
            raise LedgerExists(
                f"Ledger for '{request.person_id}' already exists",
                person_id=request.person_id,
            )

        ledger = BalanceLedger(
            person_id=request.person_id,
            deposited_balance=request.deposited_balance,
        )
        self.db.add(ledger)
        self.db.flush()
        logger.info(f"Opened ledger for {request.person_id}")
        return ledger

    def get_ledger(self, person_id: str, for_update: bool = False) -> BalanceLedger:
        """
        Return a beneficiary's ledger.

        With for_update=True the row is locked until the
        surrounding transaction ends.
        """
        stmt = select(BalanceLedger).where(BalanceLedger.person_id == person_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        ledger = self.db.execute(stmt).scalar_one_or_none()
        if not ledger:
            raise LedgerTargetNotFound(
                f"No balance ledger for beneficiary '{person_id}'",
                person_id=person_id,
            )
        return ledger

    def find_credit(self, purchase_reference: str) -> LedgerCredit | None:
        """Return the credit already applied for a purchase, if any."""
        return self.db.execute(
            select(LedgerCredit).where(
                LedgerCredit.purchase_reference == purchase_reference
            )
        ).scalar_one_or_none()

    def credit_purchase(
        self, purchase: Purchase, person_id: str, amount: Decimal
    ) -> LedgerCredit:
        """
        Add a purchase's amount to the beneficiary's balance.

        The balance update and the LedgerCredit row are flushed
        together. If another transaction already credited this
        purchase, the flush fails on the unique constraint and
        the caller must roll back; nothing is double counted.
        """
        ledger = self.get_ledger(person_id, for_update=True)

        current = ledger.deposited_balance or Decimal("0")
        new_balance = current + amount

        credit = LedgerCredit(
            purchase_reference=purchase.reference,
            ledger=ledger,
            amount=amount,
            balance_after=new_balance,
        )
        self.db.add(credit)
        ledger.deposited_balance = new_balance
        ledger.updated_at = datetime.utcnow()
        self.db.flush()

        logger.info(
            f"Credited {amount} to {person_id} for purchase "
            f"{purchase.reference} (balance {current} -> {new_balance})"
        )
        return credit

    def get_credits(self, person_id: str) -> list[LedgerCredit]:
        """Return all credits for a beneficiary, newest first."""
        credits = self.db.execute(
            select(LedgerCredit)
            .where(LedgerCredit.person_id == person_id)
            .order_by(LedgerCredit.created_at.desc(), LedgerCredit.id.desc())
        ).scalars().all()
        return list(credits)
