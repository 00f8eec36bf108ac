"""
Pydantic schemas for the balance ledger.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import AliasChoices, BaseModel, Field


class LedgerOpenRequest(BaseModel):
    """Open a balance ledger for a beneficiary."""
    person_id: str = Field(
        min_length=1,
        max_length=100,
        validation_alias=AliasChoices("personId", "person_id"),
    )
    deposited_balance: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        validation_alias=AliasChoices("depositedBalance", "deposited_balance"),
    )


class LedgerResponse(BaseModel):
    person_id: str
    deposited_balance: Decimal
    updated_at: datetime

    model_config = {"from_attributes": True}


class LedgerCreditResponse(BaseModel):
    purchase_reference: str
    person_id: str
    amount: Decimal
    balance_after: Decimal
    created_at: datetime

    model_config = {"from_attributes": True}
