"""
Tests for the PaymentLinkService.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError as SchemaValidationError

from clinic_payments.exceptions import GatewayUnavailable, PurchaseAlreadySettled
from clinic_payments.models import AuditEvent, Purchase, PurchaseStatus
from clinic_payments.schemas.purchase import PaymentLinkRequest
from clinic_payments.services.audit import events_for_purchase
from clinic_payments.services.payment_link_service import PaymentLinkService


def link_request(**overrides):
    data = {"beneficiaryId": "p1", "productId": "cleaning", "amount": 25, "reference": "ref-1"}
    data.update(overrides)
    return PaymentLinkRequest(**data)


class TestCreateLink:

    def test_creates_pending_purchase(self, db_session, gateway):
        service = PaymentLinkService(db_session, gateway)

        purchase, url = service.create_link(link_request())
        db_session.commit()

        assert url == gateway.url
        assert purchase.status == PurchaseStatus.PENDING
        assert purchase.client_transaction_id == "ref-1"
        assert purchase.amount == Decimal("25")
        assert gateway.calls == [(Decimal("25"), "ref-1")]

    def test_generates_reference_when_absent(self, db_session, gateway):
        service = PaymentLinkService(db_session, gateway)

        purchase, _ = service.create_link(link_request(reference=None))

        assert purchase.reference
        assert gateway.calls[0][1] == purchase.reference

    def test_accepts_legacy_beneficiary_names(self):
        assert PaymentLinkRequest(
            userId="u1", productId="x", amount=1
        ).beneficiary_id == "u1"
        assert PaymentLinkRequest(
            childId="c1", productId="x", amount=1
        ).beneficiary_id == "c1"

    def test_refreshes_pending_purchase(self, db_session, gateway, make_purchase):
        make_purchase(amount="10")
        service = PaymentLinkService(db_session, gateway)

        purchase, _ = service.create_link(link_request(amount=30))
        db_session.commit()

        assert purchase.amount == Decimal("30")
        assert db_session.query(Purchase).count() == 1

    def test_settled_purchase_rejected(self, db_session, gateway, make_purchase):
        make_purchase(status=PurchaseStatus.APPROVED)
        service = PaymentLinkService(db_session, gateway)

        with pytest.raises(PurchaseAlreadySettled):
            service.create_link(link_request())
        assert gateway.calls == []

    def test_gateway_failure_leaves_no_purchase(self, db_session, gateway):
        gateway.fail = True
        service = PaymentLinkService(db_session, gateway)

        with pytest.raises(GatewayUnavailable):
            service.create_link(link_request())
        db_session.rollback()

        assert db_session.get(Purchase, "ref-1") is None

    def test_link_is_audited(self, db_session, gateway):
        PaymentLinkService(db_session, gateway).create_link(link_request())
        db_session.commit()

        events = events_for_purchase(db_session, "ref-1")
        assert [e.event_type for e in events] == [AuditEvent.LINK_CREATED]


class TestLinkValidation:

    @pytest.mark.parametrize("amount", [0, -5, "abc", None])
    def test_bad_amount_rejected_before_any_write(self, db_session, amount):
        with pytest.raises(SchemaValidationError):
            link_request(amount=amount)
        assert db_session.query(Purchase).count() == 0

    @pytest.mark.parametrize("missing", ["beneficiaryId", "productId", "amount"])
    def test_required_fields(self, missing):
        data = {"beneficiaryId": "p1", "productId": "cleaning", "amount": 25}
        del data[missing]
        with pytest.raises(SchemaValidationError):
            PaymentLinkRequest(**data)
