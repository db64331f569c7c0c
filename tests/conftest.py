"""Pytest fixtures for testing"""

import copy
import uuid
import pytest
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Generator, List
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session
from obligations_gateway.api.main import create_app
from obligations_gateway.infrastructure.database.models import Base
from obligations_gateway.infrastructure.database.session import build_engine, get_db
from obligations_gateway.domain.models import (
    BillingCycle,
    LedgerEntry,
    LoanAccount,
    LoanStatus,
    PaymentRecord,
    RecurringExpenseTemplate,
    SubscriptionAccount,
    SubscriptionStatus,
)


# Test database
TEST_DATABASE_URL = "sqlite:///./test_obligations.db"
engine = build_engine(TEST_DATABASE_URL)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


class InMemoryStorage:
    """ObligationStorage over plain dicts, with per-method failure injection"""

    def __init__(self):
        self.subscriptions: Dict[uuid.UUID, SubscriptionAccount] = {}
        self.loans: Dict[uuid.UUID, LoanAccount] = {}
        self.templates: Dict[uuid.UUID, RecurringExpenseTemplate] = {}
        self.ledger: List[LedgerEntry] = []
        self.payments: List[PaymentRecord] = []
        self.failures: Dict[str, Any] = {}  # method name -> exception or {entity_id: exception}

    def add(self, item):
        if isinstance(item, SubscriptionAccount):
            self.subscriptions[item.id] = item
        elif isinstance(item, LoanAccount):
            self.loans[item.id] = item
        else:
            self.templates[item.id] = item
        return item

    def _maybe_fail(self, method: str, entity_id=None) -> None:
        failure = self.failures.get(method)
        if isinstance(failure, dict):
            failure = failure.get(entity_id)
        if failure is not None:
            raise failure

    def list_due_subscriptions(self, today: date) -> List[SubscriptionAccount]:
        self._maybe_fail("list_due_subscriptions")
        return [
            copy.copy(s)
            for s in self.subscriptions.values()
            if s.status == SubscriptionStatus.ACTIVE and s.next_billing_date <= today
        ]

    def list_due_loans(self, today: date) -> List[LoanAccount]:
        self._maybe_fail("list_due_loans")
        return [
            copy.copy(loan)
            for loan in self.loans.values()
            if loan.status == LoanStatus.ACTIVE
            and loan.outstanding_balance > 0
            and loan.next_payment_date <= today
        ]

    def list_due_templates(self, day_of_month: int) -> List[RecurringExpenseTemplate]:
        self._maybe_fail("list_due_templates")
        return [copy.copy(t) for t in self.templates.values() if t.is_active and t.schedule_day == day_of_month]

    def _patch(self, collection: Dict, entity_id: uuid.UUID, patch: Dict[str, Any]) -> None:
        for field_name, value in patch.items():
            setattr(collection[entity_id], field_name, value)

    def update_subscription(self, subscription_id, patch):
        self._maybe_fail("update_subscription", subscription_id)
        self._patch(self.subscriptions, subscription_id, patch)

    def update_loan(self, loan_id, patch):
        self._maybe_fail("update_loan", loan_id)
        self._patch(self.loans, loan_id, patch)

    def update_template(self, template_id, patch):
        self._maybe_fail("update_template", template_id)
        self._patch(self.templates, template_id, patch)

    def insert_payment(self, record: PaymentRecord) -> None:
        self._maybe_fail("insert_payment", record.loan_id)
        self.payments.append(record)

    def insert_ledger_entry(self, entry: LedgerEntry) -> None:
        self._maybe_fail("insert_ledger_entry", entry.source_id)
        self.ledger.append(entry)


@pytest.fixture
def storage() -> InMemoryStorage:
    """Empty in-memory obligation storage"""
    return InMemoryStorage()


@pytest.fixture
def make_subscription():
    """Factory for active monthly subscriptions"""

    def _make(**overrides) -> SubscriptionAccount:
        fields = dict(
            id=uuid.uuid4(),
            user_id="user_1",
            service_name="Netflix",
            amount=Decimal("499.00"),
            billing_cycle=BillingCycle.MONTHLY,
            start_date=date(2023, 12, 1),
            next_billing_date=date(2024, 1, 1),
        )
        fields.update(overrides)
        return SubscriptionAccount(**fields)

    return _make


@pytest.fixture
def make_loan():
    """Factory for active EMI loans"""

    def _make(**overrides) -> LoanAccount:
        fields = dict(
            id=uuid.uuid4(),
            user_id="user_1",
            lender_name="HDFC Bank",
            principal=Decimal("100000.00"),
            annual_interest_rate_percent=Decimal("12"),
            tenure_months=12,
            start_date=date(2023, 12, 1),
            outstanding_balance=Decimal("5000.00"),
            monthly_payment_amount=Decimal("5000.00"),
            next_payment_date=date(2024, 1, 1),
        )
        fields.update(overrides)
        return LoanAccount(**fields)

    return _make


@pytest.fixture
def make_template():
    """Factory for active recurring expense templates"""

    def _make(**overrides) -> RecurringExpenseTemplate:
        fields = dict(
            id=uuid.uuid4(),
            user_id="user_1",
            name="Rent",
            amount=Decimal("15000.00"),
            category="Bills & Utilities",
            schedule_day=15,
        )
        fields.update(overrides)
        return RecurringExpenseTemplate(**fields)

    return _make
