"""
Pydantic schemas for payment links, gateway notifications
and purchase lookups.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from clinic_payments.models.enums import PurchaseStatus


class PaymentLinkRequest(BaseModel):
    """
    Request for a gateway payment link.

    The beneficiary has been called userId and childId by
    different clients; all three names are accepted.
    """
    model_config = ConfigDict(populate_by_name=True)

    beneficiary_id: str = Field(
        min_length=1,
        max_length=100,
        validation_alias=AliasChoices("beneficiaryId", "userId", "childId", "beneficiary_id"),
    )
    product_id: str = Field(
        min_length=1,
        max_length=100,
        validation_alias=AliasChoices("productId", "product_id"),
    )
    amount: Decimal = Field(gt=0, max_digits=15, decimal_places=2)
    reference: str | None = Field(default=None, min_length=1, max_length=100)


class GatewayNotification(BaseModel):
    """A gateway callback after alias canonicalization."""
    client_transaction_id: str
    outcome: PurchaseStatus
    raw: dict[str, Any]


class PurchaseResponse(BaseModel):
    reference: str
    client_transaction_id: str | None
    beneficiary_id: str | None
    product_id: str | None
    amount: Decimal | None
    status: PurchaseStatus
    is_credited: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ReconciliationResult(BaseModel):
    """What the webhook did with a notification."""
    success: bool = True
    reference: str
    status: PurchaseStatus
    credited: bool = False
    duplicate: bool = False
    balance: Decimal | None = None
