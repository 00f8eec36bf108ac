"""
Shared test fixtures.

Sets up an isolated SQLite database so tests never touch the
real one, and replaces the payment gateway with a fake that
never leaves the process.
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from clinic_payments.exceptions import GatewayUnavailable
from clinic_payments.main import app
from clinic_payments.models import Base, BalanceLedger, Purchase, PurchaseStatus
from clinic_payments.models.base import get_db
from clinic_payments.services.gateway_client import get_gateway_client


TEST_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
)

TestSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


class FakeGateway:
    """Records prepare() calls and answers with a fixed URL."""

    def __init__(self, url="https://pay.example.test/checkout/abc"):
        self.url = url
        self.calls = []
        self.fail = False

    def prepare(self, amount, reference):
        self.calls.append((amount, reference))
        if self.fail:
            raise GatewayUnavailable("gateway down", reference=reference)
        return self.url


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop them after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    """Provide a database session for direct service testing."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(db_session, gateway):
    """
    Provide a test client wired to the test database and the
    fake gateway.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway_client] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_purchase(db_session):
    """Insert a committed purchase."""
    def _make(reference="ref-1", beneficiary_id="p1", amount="25",
              status=PurchaseStatus.PENDING, client_transaction_id=None):
        purchase = Purchase(
            reference=reference,
            client_transaction_id=client_transaction_id or reference,
            beneficiary_id=beneficiary_id,
            product_id="cleaning",
            amount=Decimal(amount) if amount is not None else None,
            status=status,
        )
        db_session.add(purchase)
        db_session.commit()
        return purchase
    return _make


@pytest.fixture
def make_ledger(db_session):
    """Insert a committed balance ledger."""
    def _make(person_id="p1", balance="100"):
        ledger = BalanceLedger(
            person_id=person_id, deposited_balance=Decimal(balance)
        )
        db_session.add(ledger)
        db_session.commit()
        return ledger
    return _make
