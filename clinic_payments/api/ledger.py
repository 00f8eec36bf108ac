"""
Ledger API endpoints.

Ledgers are opened out-of-band (clinic staff, onboarding).
The API layer is thin: it maps errors to status codes and
delegates everything else to LedgerService.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from clinic_payments.exceptions import PaymentError
from clinic_payments.models.base import get_db
from clinic_payments.services.ledger_service import LedgerService
from clinic_payments.schemas.ledger import (
    LedgerOpenRequest,
    LedgerResponse,
    LedgerCreditResponse,
)

router = APIRouter(prefix="/ledger", tags=["Ledger"])


@router.post("", response_model=LedgerResponse, status_code=201)
def open_ledger(
    request: LedgerOpenRequest,
    db: Session = Depends(get_db),
):
    """Open a balance ledger for a beneficiary."""
    service = LedgerService(db)
    try:
        ledger = service.open_ledger(request)
        db.commit()
        return ledger
    except PaymentError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/{person_id}", response_model=LedgerResponse)
def get_ledger(
    person_id: str,
    db: Session = Depends(get_db),
):
    """Get a beneficiary's current balance."""
    service = LedgerService(db)
    try:
        return service.get_ledger(person_id)
    except PaymentError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/{person_id}/credits", response_model=list[LedgerCreditResponse])
def get_ledger_credits(
    person_id: str,
    db: Session = Depends(get_db),
):
    """
    Get the credits applied to a beneficiary, newest first.
    """
    service = LedgerService(db)
    try:
        service.get_ledger(person_id)
    except PaymentError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return service.get_credits(person_id)
