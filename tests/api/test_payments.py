"""
Tests for the payment endpoints.

These test the HTTP layer: status codes, body formats and the
commit/rollback decisions. Reconciliation rules themselves are
covered in test_reconciliation_service.py.
"""

from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from clinic_payments.models import BalanceLedger, Purchase, PurchaseStatus
from clinic_payments.services.ledger_service import LedgerService
from clinic_payments.services.payment_link_service import PaymentLinkService


def balance_of(db_session, person_id="p1"):
    db_session.expire_all()
    return db_session.get(BalanceLedger, person_id).deposited_balance


class TestPaymentLink:

    def test_redirects_to_gateway(self, client, gateway, db_session):
        response = client.post("/payments/link", json={
            "userId": "p1",
            "productId": "cleaning",
            "amount": 25,
            "reference": "ref-1",
        }, follow_redirects=False)

        assert response.status_code == 303
        assert response.headers["location"] == gateway.url
        assert db_session.get(Purchase, "ref-1").status == PurchaseStatus.PENDING

    def test_negative_amount_returns_400(self, client, gateway, db_session):
        response = client.post("/payments/link", json={
            "userId": "p1", "productId": "cleaning", "amount": -3,
        }, follow_redirects=False)

        assert response.status_code == 400
        assert gateway.calls == []
        assert db_session.query(Purchase).count() == 0

    def test_missing_field_returns_400(self, client):
        response = client.post("/payments/link", json={
            "productId": "cleaning", "amount": 10,
        }, follow_redirects=False)
        assert response.status_code == 400

    def test_gateway_failure_returns_500_without_purchase(self, client, gateway, db_session):
        gateway.fail = True
        response = client.post("/payments/link", json={
            "userId": "p1", "productId": "cleaning", "amount": 25, "reference": "ref-1",
        }, follow_redirects=False)

        assert response.status_code == 500
        assert db_session.get(Purchase, "ref-1") is None

    def test_store_failure_returns_500_without_purchase(
        self, client, gateway, db_session, monkeypatch
    ):
        def failing_create_link(self, request):
            raise IntegrityError("INSERT INTO purchases", {}, Exception("duplicate"))

        monkeypatch.setattr(PaymentLinkService, "create_link", failing_create_link)

        response = client.post("/payments/link", json={
            "userId": "p1", "productId": "cleaning", "amount": 25, "reference": "ref-1",
        }, follow_redirects=False)

        assert response.status_code == 500
        assert response.json()["detail"] == "Store unavailable"
        assert db_session.get(Purchase, "ref-1") is None


class TestWebhook:

    def test_approved_returns_success(self, client, make_purchase, make_ledger, db_session):
        make_purchase()
        make_ledger()

        response = client.post("/payments/webhook", json={
            "clientTransactionId": "ref-1", "transactionStatus": "Approved",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["credited"] is True
        assert balance_of(db_session) == Decimal("125")

    def test_duplicate_delivery_credits_once(self, client, make_purchase, make_ledger, db_session):
        make_purchase()
        make_ledger()
        body = {"clientTransactionId": "ref-1", "transactionStatus": "Approved"}

        first = client.post("/payments/webhook", json=body)
        second = client.post("/payments/webhook", json=body)

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json()["duplicate"] is True
        assert balance_of(db_session) == Decimal("125")

    def test_form_encoded_body(self, client, make_purchase, make_ledger, db_session):
        make_purchase()
        make_ledger()

        response = client.post("/payments/webhook", data={
            "ClientTransactionId": "ref-1", "TransactionStatus": "Approved",
        })

        assert response.status_code == 200
        assert balance_of(db_session) == Decimal("125")

    def test_html_acknowledgement(self, client, make_purchase):
        make_purchase()

        response = client.post(
            "/payments/webhook",
            json={"clientTransactionId": "ref-1", "transactionStatus": "Canceled"},
            headers={"Accept": "text/html"},
        )

        assert response.status_code == 200
        assert "success://payphone" in response.text

    def test_missing_key_returns_400(self, client):
        response = client.post("/payments/webhook", json={"transactionStatus": "Approved"})
        assert response.status_code == 400

    def test_invalid_json_returns_400(self, client):
        response = client.post(
            "/payments/webhook",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400

    def test_invalid_form_encoding_returns_400(self, client):
        response = client.post(
            "/payments/webhook",
            content=b"clientTransactionId=\xff\xfe&transactionStatus=Approved",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        assert response.status_code == 400

    def test_unknown_status_is_stored_and_returns_400(self, client, make_purchase, db_session):
        make_purchase()
        payload = {"clientTransactionId": "ref-1", "transactionStatus": "Reversed"}

        response = client.post("/payments/webhook", json=payload)

        assert response.status_code == 400
        db_session.expire_all()
        purchase = db_session.get(Purchase, "ref-1")
        assert purchase.status == PurchaseStatus.PENDING
        assert purchase.gateway_payload == payload

    def test_unknown_key_returns_404(self, client, make_purchase, make_ledger, db_session):
        make_purchase()
        make_ledger()

        response = client.post("/payments/webhook", json={
            "clientTransactionId": "ghost", "transactionStatus": "Approved",
        })

        assert response.status_code == 404
        assert balance_of(db_session) == Decimal("100")

    def test_get_not_allowed(self, client):
        assert client.get("/payments/webhook").status_code == 405

    def test_missing_ledger_commits_status(self, client, make_purchase, db_session):
        make_purchase()

        response = client.post("/payments/webhook", json={
            "clientTransactionId": "ref-1", "transactionStatus": "Approved",
        })

        assert response.status_code == 404
        db_session.expire_all()
        assert db_session.get(Purchase, "ref-1").status == PurchaseStatus.APPROVED

    def test_incomplete_target_returns_500(self, client, make_purchase, db_session):
        make_purchase(amount=None)

        response = client.post("/payments/webhook", json={
            "clientTransactionId": "ref-1", "transactionStatus": "Approved",
        })

        assert response.status_code == 500
        db_session.expire_all()
        assert db_session.get(Purchase, "ref-1").status == PurchaseStatus.APPROVED

    def test_lost_race_is_replayed_without_double_credit(
        self, client, make_purchase, make_ledger, db_session, monkeypatch
    ):
        """
        A concurrent delivery commits its credit between our
        duplicate check and our insert: the unique constraint
        fires, the request is replayed and sees the credit.
        """
        purchase = make_purchase()
        make_ledger()
        LedgerService(db_session).credit_purchase(purchase, "p1", Decimal("25"))
        db_session.commit()

        original = LedgerService.find_credit
        calls = []

        def racing_find_credit(self, reference):
            calls.append(reference)
            if len(calls) == 1:
                return None
            return original(self, reference)

        monkeypatch.setattr(LedgerService, "find_credit", racing_find_credit)

        response = client.post("/payments/webhook", json={
            "clientTransactionId": "ref-1", "transactionStatus": "Approved",
        })

        assert response.status_code == 200
        assert response.json()["duplicate"] is True
        assert len(calls) == 2
        assert balance_of(db_session) == Decimal("125")


class TestCancelAndLookup:

    def test_cancel_page(self, client):
        response = client.get("/payments/cancel")
        assert response.status_code == 200
        assert "cancel://payphone" in response.text

    def test_get_purchase(self, client, make_purchase):
        make_purchase()
        response = client.get("/payments/purchases/ref-1")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "pending"
        assert data["is_credited"] is False

    def test_get_unknown_purchase(self, client):
        assert client.get("/payments/purchases/ghost").status_code == 404
