"""Integration tests for API endpoints"""

import uuid
from unittest.mock import AsyncMock, patch
import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlalchemy.orm import Session
from obligations_gateway.domain.exceptions import StorageFetchError
from obligations_gateway.infrastructure.database.models import EMILoan, Expense, RecurringTemplate, Subscription

pytestmark = pytest.mark.integration


@pytest.fixture
def loan_id(client: TestClient) -> str:
    """Rs 1,00,000 at 8.5% over 60 months, first EMI on Jan 1 2024"""
    response = client.post(
        "/v1/loans",
        json={
            "user_id": "user_1",
            "lender_name": "HDFC Bank",
            "principal": "100000",
            "annual_interest_rate_percent": "8.5",
            "tenure_months": 60,
            "start_date": "2024-01-01",
        },
    )
    assert response.status_code == 201
    return response.json()["loan_id"]


def add_subscription(db: Session, **overrides) -> Subscription:
    fields = dict(
        user_id="user_1",
        service_name="Netflix",
        amount=Decimal("499.00"),
        billing_cycle="monthly",
        start_date=date(2023, 12, 1),
        next_billing_date=date(2024, 1, 1),
        status="active",
    )
    fields.update(overrides)
    row = Subscription(**fields)
    db.add(row)
    db.commit()
    return row


def add_loan(db: Session, **overrides) -> EMILoan:
    fields = dict(
        user_id="user_1",
        lender_name="SBI",
        loan_amount=Decimal("100000.00"),
        interest_rate=Decimal("12"),
        tenure_months=24,
        start_date=date(2022, 2, 1),
        emi_amount=Decimal("5000.00"),
        outstanding_amount=Decimal("5000.00"),
        next_payment_date=date(2024, 1, 1),
        status="active",
    )
    fields.update(overrides)
    row = EMILoan(**fields)
    db.add(row)
    db.commit()
    return row


def add_template(db: Session, **overrides) -> RecurringTemplate:
    fields = dict(
        user_id="user_1",
        name="Rent",
        amount=Decimal("15000.00"),
        category="Bills & Utilities",
        schedule_day=15,
        is_active=True,
    )
    fields.update(overrides)
    row = RecurringTemplate(**fields)
    db.add(row)
    db.commit()
    return row


def process(client: TestClient, today: str):
    return client.post("/v1/recurring/process", json={"today": today})


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "obligations_processed_items_total" in response.text


def test_request_id_propagated(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "cron-2024-03-15"})
    assert response.headers["X-Request-ID"] == "cron-2024-03-15"
    assert client.get("/health").headers["X-Request-ID"]


def test_create_loan_computes_emi_once(client: TestClient, loan_id: str):
    """Test POST /v1/loans and GET /v1/loans/{loan_id}"""
    data = client.get(f"/v1/loans/{loan_id}").json()

    assert Decimal(data["monthly_payment_amount"]) == Decimal("2051.65")
    assert Decimal(data["outstanding_balance"]) == Decimal("100000")
    assert data["next_payment_date"] == "2024-01-01"
    assert data["status"] == "active"
    assert data["progress_percent"] == 0.0


def test_create_loan_rejects_bad_input(client: TestClient):
    response = client.post(
        "/v1/loans",
        json={
            "user_id": "user_1",
            "lender_name": "HDFC Bank",
            "principal": "0",
            "annual_interest_rate_percent": "8.5",
            "tenure_months": 60,
            "start_date": "2024-01-01",
        },
    )
    assert response.status_code == 422


def test_loan_schedule_endpoint(client: TestClient, loan_id: str):
    """Test GET /v1/loans/{loan_id}/schedule"""
    response = client.get(f"/v1/loans/{loan_id}/schedule")

    assert response.status_code == 200
    entries = response.json()["entries"]
    assert len(entries) == 60
    assert Decimal(entries[0]["interest_component"]) == Decimal("708.33")
    assert entries[0]["due_date"] == "2024-02-01"
    assert Decimal(entries[-1]["remaining_balance_after_payment"]) == 0


def test_get_loan_not_found(client: TestClient):
    assert client.get(f"/v1/loans/{uuid.uuid4()}").status_code == 404
    assert client.get("/v1/loans/not-a-uuid").status_code == 400


def test_process_books_due_items(client: TestClient, db: Session):
    """Subscription, EMI and template all due on Jan 15"""
    add_subscription(db)
    loan = add_loan(db, next_payment_date=date(2024, 1, 10))
    add_template(db, schedule_day=15, name="Gym", amount=Decimal("1500.00"))

    response = process(client, "2024-01-15")

    assert response.status_code == 200
    data = response.json()
    assert data == {
        "success": True,
        "processed": 3,
        "subscriptions": 1,
        "emis": 1,
        "templates": 1,
        "userSummary": {
            "user_1": {
                "subscriptions": ["Netflix"],
                "emis": ["SBI"],
                "templates": ["Gym"],
                "total": 6999.0,
            }
        },
    }

    db.expire_all()
    loan = db.get(EMILoan, loan.id)
    assert loan.outstanding_amount == Decimal("50.00")
    assert loan.next_payment_date == date(2024, 2, 10)
    assert loan.status == "active"
    assert len(loan.payments) == 1
    assert loan.payments[0].notes == "Auto-recorded payment"

    ledger = client.get("/v1/ledger", params={"user_id": "user_1"}).json()["entries"]
    assert len(ledger) == 3
    assert {e["source_type"] for e in ledger} == {"subscription", "loan", "template"}
    assert all(e["occurred_on"] == "2024-01-15" for e in ledger)


def test_process_with_nothing_due(client: TestClient):
    data = client.post("/v1/recurring/process").json()

    assert data["success"] is True
    assert data["processed"] == 0
    assert data["userSummary"] == {}


def test_process_twice_books_template_once(client: TestClient, db: Session):
    template = add_template(db)

    first = process(client, "2024-03-15").json()
    second = process(client, "2024-03-15").json()

    assert first["templates"] == 1
    assert second["templates"] == 0
    assert db.query(Expense).filter(Expense.source_id == template.id).count() == 1

    db.expire_all()
    assert db.get(RecurringTemplate, template.id).last_processed_at is not None


def test_process_ignores_future_items(client: TestClient, db: Session):
    sub = add_subscription(db, next_billing_date=date(2024, 1, 16))
    loan = add_loan(db, next_payment_date=date(2024, 1, 16))

    data = process(client, "2024-01-15").json()

    assert data["processed"] == 0
    db.expire_all()
    assert db.get(Subscription, sub.id).next_billing_date == date(2024, 1, 16)
    assert db.get(EMILoan, loan.id).outstanding_amount == Decimal("5000.00")


def test_completed_loan_not_processed_again(client: TestClient, db: Session):
    loan = add_loan(db, outstanding_amount=Decimal("50.00"))

    assert process(client, "2024-01-01").json()["emis"] == 1
    db.expire_all()
    assert db.get(EMILoan, loan.id).status == "completed"
    assert db.get(EMILoan, loan.id).outstanding_amount == Decimal("0.00")

    assert process(client, "2024-02-01").json()["emis"] == 0
    assert process(client, "2024-06-01").json()["emis"] == 0


def test_paused_subscription_not_processed(client: TestClient, db: Session):
    sub = add_subscription(db)

    response = client.patch(f"/v1/subscriptions/{sub.id}/status", json={"status": "paused"})
    assert response.status_code == 200
    assert response.json()["status"] == "paused"

    assert process(client, "2024-01-05").json()["subscriptions"] == 0


def test_fatal_fetch_returns_error(client: TestClient, db: Session, monkeypatch):
    """A collection that cannot be listed aborts with 500 and an error body"""
    add_subscription(db)

    def broken(self, today):
        raise StorageFetchError("Could not list loans: connection reset")

    monkeypatch.setattr(
        "obligations_gateway.infrastructure.database.repositories.SqlObligationStorage.list_due_loans",
        broken,
    )

    response = process(client, "2024-01-05")

    assert response.status_code == 500
    assert "loans" in response.json()["error"]
    assert db.query(Expense).count() == 0


def test_subscription_create_and_list(client: TestClient):
    """Test POST /v1/subscriptions and GET /v1/subscriptions"""
    created = client.post(
        "/v1/subscriptions",
        json={
            "user_id": "user_1",
            "service_name": "Spotify",
            "amount": "119",
            "billing_cycle": "monthly",
            "start_date": "2024-01-31",
        },
    )
    assert created.status_code == 201
    assert created.json()["next_billing_date"] == "2024-02-29"

    client.post(
        "/v1/subscriptions",
        json={
            "user_id": "user_1",
            "service_name": "Prime",
            "amount": "1499",
            "billing_cycle": "yearly",
            "start_date": "2024-01-01",
        },
    )

    data = client.get("/v1/subscriptions", params={"user_id": "user_1"}).json()
    assert len(data["subscriptions"]) == 2
    assert Decimal(data["monthly_total"]) == Decimal("243.92")  # 119 + 1499/12


def test_template_create_and_deactivate(client: TestClient):
    created = client.post(
        "/v1/templates",
        json={
            "user_id": "user_1",
            "name": "Internet",
            "amount": "999",
            "category": "Bills & Utilities",
            "schedule_day": 5,
        },
    )
    assert created.status_code == 201
    template_id = created.json()["template_id"]

    assert process(client, "2024-03-05").json()["templates"] == 1

    response = client.patch(f"/v1/templates/{template_id}", json={"is_active": False})
    assert response.json()["is_active"] is False
    assert process(client, "2024-04-05").json()["templates"] == 0


def test_template_day_out_of_range(client: TestClient):
    response = client.post(
        "/v1/templates",
        json={"user_id": "user_1", "name": "X", "amount": "1", "category": "Other", "schedule_day": 32},
    )
    assert response.status_code == 422


def test_manual_payment_reduces_balance(client: TestClient, loan_id: str):
    """Test POST /v1/loans/{loan_id}/payments"""
    emi = Decimal(client.get(f"/v1/loans/{loan_id}").json()["monthly_payment_amount"])

    response = client.post(
        f"/v1/loans/{loan_id}/payments",
        json={"amount_paid": str(emi), "payment_date": "2024-01-01", "payment_method": "upi"},
    )

    assert response.status_code == 201
    payment = response.json()
    assert Decimal(payment["interest_component"]) == Decimal("708.33")
    assert Decimal(payment["principal_component"]) == emi - Decimal("708.33")

    loan = client.get(f"/v1/loans/{loan_id}").json()
    assert Decimal(loan["outstanding_balance"]) == Decimal("100000") - emi + Decimal("708.33")
    assert loan["next_payment_date"] == "2024-01-01"
    assert loan["progress_percent"] > 0

    history = client.get(f"/v1/loans/{loan_id}/payments").json()
    assert len(history["payments"]) == 1


def test_balance_correction_completes_loan(client: TestClient, loan_id: str):
    """Test PATCH /v1/loans/{loan_id}/balance"""
    response = client.patch(f"/v1/loans/{loan_id}/balance", json={"outstanding_balance": "0"})

    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert response.json()["progress_percent"] == 100.0

    rejected = client.post(
        f"/v1/loans/{loan_id}/payments",
        json={"amount_paid": "100", "payment_date": "2024-01-01"},
    )
    assert rejected.status_code == 409


def test_due_overview(client: TestClient, db: Session):
    """Test GET /v1/recurring/due"""
    add_subscription(db, next_billing_date=date(2024, 1, 14))
    add_subscription(db, service_name="Spotify", amount=Decimal("119.00"), next_billing_date=date(2024, 1, 16))
    add_loan(db, next_payment_date=date(2024, 1, 15))
    add_loan(db, lender_name="Closed", next_payment_date=date(2024, 1, 1), status="completed")

    data = client.get("/v1/recurring/due", params={"user_id": "user_1", "today": "2024-01-15"}).json()

    assert [item["name"] for item in data["due"]] == ["Netflix", "SBI"]
    assert [item["name"] for item in data["upcoming"]] == ["Spotify"]
    assert Decimal(data["total_due"]) == Decimal("5499.00")


def test_template_stamp_respects_processing_date(client: TestClient, db: Session):
    template = add_template(db, last_processed_at=datetime(2024, 2, 15, 6, 0, tzinfo=timezone.utc))

    assert process(client, "2024-03-15").json()["templates"] == 1

    db.expire_all()
    stamp = db.get(RecurringTemplate, template.id).last_processed_at
    assert stamp.date() == date(2024, 3, 15)


@patch("obligations_gateway.infrastructure.clients.notifications.SummaryWebhookClient.send_summary_event")
def test_summary_webhook_scheduled(mock_send: AsyncMock, client: TestClient, db: Session, monkeypatch):
    """Processed runs notify the summary webhook in the background"""
    monkeypatch.setattr("obligations_gateway.config.settings.summary_webhook_url", "http://notifier.test/hook")
    mock_send.return_value = None
    add_subscription(db)

    process(client, "2024-01-05")

    mock_send.assert_called_once()
    payload = mock_send.call_args.args[0]
    assert payload["event"] == "RECURRING_PROCESSED"
    assert payload["run_date"] == "2024-01-05"
    assert payload["userSummary"]["user_1"]["subscriptions"] == ["Netflix"]


@patch("obligations_gateway.infrastructure.clients.notifications.SummaryWebhookClient.send_summary_event")
def test_summary_webhook_skipped_when_nothing_processed(mock_send: AsyncMock, client: TestClient, monkeypatch):
    monkeypatch.setattr("obligations_gateway.config.settings.summary_webhook_url", "http://notifier.test/hook")

    process(client, "2024-01-05")

    mock_send.assert_not_called()


def test_process_date_from_query(client: TestClient, db: Session):
    """A replay for a past date can pass the date as a query parameter"""
    sub = add_subscription(db)

    response = client.post("/v1/recurring/process", params={"today": "2024-01-05"})

    assert response.status_code == 200
    assert response.json()["subscriptions"] == 1
    db.expire_all()
    assert db.get(Subscription, sub.id).next_billing_date == date(2024, 2, 1)
    assert db.query(Expense).one().expense_date == date(2024, 1, 5)


def test_failed_write_rolls_back_only_that_item(client: TestClient, db: Session):
    """A write rejected by the database is undone alone; the rest of the batch commits"""
    bad = add_subscription(db, service_name="Bad")
    good = add_subscription(db, service_name="Good")

    def null_category(mapper, connection, target):
        if target.description.startswith("Bad"):
            target.category = None

    event.listen(Expense, "before_insert", null_category)
    try:
        response = process(client, "2024-01-05")
    finally:
        event.remove(Expense, "before_insert", null_category)

    assert response.status_code == 200
    assert response.json()["processed"] == 1
    assert response.json()["userSummary"]["user_1"]["subscriptions"] == ["Good"]

    with Session(db.get_bind()) as fresh:
        assert fresh.get(Subscription, bad.id).next_billing_date == date(2024, 1, 1)
        assert fresh.get(Subscription, good.id).next_billing_date == date(2024, 2, 1)
        assert [e.description for e in fresh.query(Expense).all()] == ["Good - monthly subscription"]
