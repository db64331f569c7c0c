"""Data access layer for loans, subscriptions, recurring templates and the ledger"""

import uuid
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from obligations_gateway.infrastructure.database.models import (
    EMILoan,
    EMIPayment,
    Expense,
    RecurringTemplate,
    Subscription,
)
from obligations_gateway.domain.exceptions import EntityNotFoundError, StorageFetchError
from obligations_gateway.domain import models as domain


def _column_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def to_loan(row: EMILoan) -> domain.LoanAccount:
    return domain.LoanAccount(
        id=row.id,
        user_id=row.user_id,
        lender_name=row.lender_name,
        principal=Decimal(row.loan_amount),
        annual_interest_rate_percent=Decimal(row.interest_rate),
        tenure_months=row.tenure_months,
        start_date=row.start_date,
        outstanding_balance=Decimal(row.outstanding_amount),
        monthly_payment_amount=Decimal(row.emi_amount),
        next_payment_date=row.next_payment_date,
        status=domain.LoanStatus(row.status),
    )


def to_subscription(row: Subscription) -> domain.SubscriptionAccount:
    return domain.SubscriptionAccount(
        id=row.id,
        user_id=row.user_id,
        service_name=row.service_name,
        amount=Decimal(row.amount),
        billing_cycle=domain.BillingCycle(row.billing_cycle),
        start_date=row.start_date,
        next_billing_date=row.next_billing_date,
        status=domain.SubscriptionStatus(row.status),
        category=row.category,
        description=row.description,
    )


def to_template(row: RecurringTemplate) -> domain.RecurringExpenseTemplate:
    return domain.RecurringExpenseTemplate(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        amount=Decimal(row.amount),
        category=row.category,
        schedule_day=row.schedule_day,
        is_active=row.is_active,
        description=row.description,
        last_processed_at=row.last_processed_at,
    )


class SqlObligationStorage:
    """
    ObligationStorage backed by SQLAlchemy.

    Every write runs inside a SAVEPOINT so a failed record leaves the
    session usable for the rest of the batch. The caller owns the commit.
    """

    # Domain field name -> column name, per table
    LOAN_COLUMNS = {"outstanding_balance": "outstanding_amount"}

    def __init__(self, db: Session):
        self.db = db

    def _list(self, collection: str, stmt) -> list:
        try:
            return list(self.db.scalars(stmt).all())
        except SQLAlchemyError as e:
            raise StorageFetchError(f"Could not list {collection}: {e}") from e

    def list_due_subscriptions(self, today: date) -> List[domain.SubscriptionAccount]:
        stmt = (
            select(Subscription)
            .where(Subscription.status == domain.SubscriptionStatus.ACTIVE.value)
            .where(Subscription.next_billing_date <= today)
        )
        return [to_subscription(row) for row in self._list("subscriptions", stmt)]

    def list_due_loans(self, today: date) -> List[domain.LoanAccount]:
        stmt = (
            select(EMILoan)
            .where(EMILoan.status == domain.LoanStatus.ACTIVE.value)
            .where(EMILoan.next_payment_date <= today)
            .where(EMILoan.outstanding_amount > 0)
        )
        return [to_loan(row) for row in self._list("loans", stmt)]

    def list_due_templates(self, day_of_month: int) -> List[domain.RecurringExpenseTemplate]:
        stmt = (
            select(RecurringTemplate)
            .where(RecurringTemplate.is_active.is_(True))
            .where(RecurringTemplate.schedule_day == day_of_month)
        )
        return [to_template(row) for row in self._list("templates", stmt)]

    def _update(self, model, entity_id: uuid.UUID, patch: Dict[str, Any], columns: Dict[str, str]) -> None:
        with self.db.begin_nested():
            row = self.db.get(model, entity_id)
            if row is None:
                raise EntityNotFoundError(f"{model.__tablename__} {entity_id} not found")
            for field_name, value in patch.items():
                setattr(row, columns.get(field_name, field_name), _column_value(value))
            self.db.flush()

    def update_subscription(self, subscription_id: uuid.UUID, patch: Dict[str, Any]) -> None:
        self._update(Subscription, subscription_id, patch, {})

    def update_loan(self, loan_id: uuid.UUID, patch: Dict[str, Any]) -> None:
        self._update(EMILoan, loan_id, patch, self.LOAN_COLUMNS)

    def update_template(self, template_id: uuid.UUID, patch: Dict[str, Any]) -> None:
        self._update(RecurringTemplate, template_id, patch, {})

    def insert_payment(self, record: domain.PaymentRecord) -> None:
        with self.db.begin_nested():
            self.db.add(
                EMIPayment(
                    loan_id=record.loan_id,
                    amount_paid=record.amount_paid,
                    principal_component=record.principal_component,
                    interest_component=record.interest_component,
                    due_date=record.due_date,
                    payment_date=record.payment_date,
                    status=record.status,
                    payment_method=record.payment_method,
                    notes=record.notes,
                )
            )
            self.db.flush()

    def insert_ledger_entry(self, entry: domain.LedgerEntry) -> None:
        with self.db.begin_nested():
            self.db.add(
                Expense(
                    user_id=entry.user_id,
                    amount=entry.amount,
                    category=entry.category,
                    description=entry.description,
                    expense_date=entry.occurred_on,
                    type=entry.kind.value,
                    source_type=entry.source_type.value,
                    source_id=entry.source_id,
                )
            )
            self.db.flush()


class LoanRepository:
    """Repository for EMI loans and their payments"""

    def __init__(self, db: Session):
        self.db = db

    def create_loan(self, loan: domain.LoanAccount) -> EMILoan:
        """Persist a newly registered loan"""
        db_loan = EMILoan(
            id=loan.id,
            user_id=loan.user_id,
            lender_name=loan.lender_name,
            loan_amount=loan.principal,
            interest_rate=loan.annual_interest_rate_percent,
            tenure_months=loan.tenure_months,
            start_date=loan.start_date,
            emi_amount=loan.monthly_payment_amount,
            outstanding_amount=loan.outstanding_balance,
            next_payment_date=loan.next_payment_date,
            status=loan.status.value,
        )
        self.db.add(db_loan)
        self.db.flush()
        return db_loan

    def get_loan(self, loan_id: uuid.UUID) -> EMILoan:
        loan = self.db.get(EMILoan, loan_id)
        if loan is None:
            raise EntityNotFoundError(f"Loan {loan_id} not found")
        return loan

    def get_loans_due_by(self, user_id: str, on_or_before: date) -> List[EMILoan]:
        """Active loans with a balance whose next payment falls on or before the date"""
        return (
            self.db.query(EMILoan)
            .filter(EMILoan.user_id == user_id)
            .filter(EMILoan.status == domain.LoanStatus.ACTIVE.value)
            .filter(EMILoan.outstanding_amount > 0)
            .filter(EMILoan.next_payment_date <= on_or_before)
            .order_by(EMILoan.next_payment_date)
            .all()
        )

    def add_payment(self, record: domain.PaymentRecord) -> EMIPayment:
        db_payment = EMIPayment(
            loan_id=record.loan_id,
            amount_paid=record.amount_paid,
            principal_component=record.principal_component,
            interest_component=record.interest_component,
            due_date=record.due_date,
            payment_date=record.payment_date,
            status=record.status,
            payment_method=record.payment_method,
            notes=record.notes,
        )
        self.db.add(db_payment)
        self.db.flush()
        return db_payment

    def get_payments(self, loan_id: uuid.UUID) -> List[EMIPayment]:
        return (
            self.db.query(EMIPayment)
            .filter(EMIPayment.loan_id == loan_id)
            .order_by(EMIPayment.payment_date.desc())
            .all()
        )

    def set_balance(self, loan: EMILoan, outstanding: Decimal) -> EMILoan:
        """Set the outstanding balance; status follows it"""
        loan.outstanding_amount = outstanding
        loan.status = (domain.LoanStatus.COMPLETED if outstanding == 0 else domain.LoanStatus.ACTIVE).value
        self.db.flush()
        return loan


class SubscriptionRepository:
    """Repository for subscriptions"""

    def __init__(self, db: Session):
        self.db = db

    def create_subscription(self, subscription: domain.SubscriptionAccount) -> Subscription:
        db_subscription = Subscription(
            id=subscription.id,
            user_id=subscription.user_id,
            service_name=subscription.service_name,
            amount=subscription.amount,
            billing_cycle=subscription.billing_cycle.value,
            category=subscription.category,
            description=subscription.description,
            start_date=subscription.start_date,
            next_billing_date=subscription.next_billing_date,
            status=subscription.status.value,
        )
        self.db.add(db_subscription)
        self.db.flush()
        return db_subscription

    def get_subscription(self, subscription_id: uuid.UUID) -> Subscription:
        subscription = self.db.get(Subscription, subscription_id)
        if subscription is None:
            raise EntityNotFoundError(f"Subscription {subscription_id} not found")
        return subscription

    def get_subscriptions_by_user(self, user_id: str) -> List[Subscription]:
        return (
            self.db.query(Subscription)
            .filter(Subscription.user_id == user_id)
            .order_by(Subscription.next_billing_date)
            .all()
        )

    def get_subscriptions_due_by(self, user_id: str, on_or_before: date) -> List[Subscription]:
        return (
            self.db.query(Subscription)
            .filter(Subscription.user_id == user_id)
            .filter(Subscription.status == domain.SubscriptionStatus.ACTIVE.value)
            .filter(Subscription.next_billing_date <= on_or_before)
            .order_by(Subscription.next_billing_date)
            .all()
        )

    def set_status(self, subscription: Subscription, status: domain.SubscriptionStatus) -> Subscription:
        subscription.status = status.value
        self.db.flush()
        return subscription


class TemplateRepository:
    """Repository for recurring expense templates"""

    def __init__(self, db: Session):
        self.db = db

    def create_template(self, template: domain.RecurringExpenseTemplate) -> RecurringTemplate:
        db_template = RecurringTemplate(
            id=template.id,
            user_id=template.user_id,
            name=template.name,
            amount=template.amount,
            category=template.category,
            description=template.description,
            schedule_day=template.schedule_day,
            is_active=template.is_active,
        )
        self.db.add(db_template)
        self.db.flush()
        return db_template

    def get_template(self, template_id: uuid.UUID) -> RecurringTemplate:
        template = self.db.get(RecurringTemplate, template_id)
        if template is None:
            raise EntityNotFoundError(f"Template {template_id} not found")
        return template

    def set_active(self, template: RecurringTemplate, is_active: bool) -> RecurringTemplate:
        template.is_active = is_active
        self.db.flush()
        return template


class LedgerRepository:
    """Read access to ledger entries"""

    def __init__(self, db: Session):
        self.db = db

    def get_entries_by_user(self, user_id: str, limit: int = 50, source_type: Optional[str] = None) -> List[Expense]:
        """Fetch recent ledger entries for a user"""
        query = self.db.query(Expense).filter(Expense.user_id == user_id)
        if source_type is not None:
            query = query.filter(Expense.source_type == source_type)
        return query.order_by(Expense.expense_date.desc(), Expense.created_at.desc()).limit(limit).all()
