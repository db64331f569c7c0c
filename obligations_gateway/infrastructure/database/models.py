"""SQLAlchemy ORM models for loans, subscriptions, recurring templates and the ledger"""

import uuid
from sqlalchemy import Column, String, Boolean, DateTime, Date, Integer, ForeignKey, Text, Numeric
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

Money = Numeric(14, 2, asdecimal=True)


class EMILoan(Base):
    """EMI loan with its running outstanding balance"""

    __tablename__ = "emi_loan"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    lender_name = Column(Text, nullable=False)
    loan_amount = Column(Money, nullable=False)
    interest_rate = Column(Numeric(7, 4, asdecimal=True), nullable=False)
    tenure_months = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=False)
    emi_amount = Column(Money, nullable=False)
    outstanding_amount = Column(Money, nullable=False)
    next_payment_date = Column(Date, nullable=False, index=True)
    status = Column(String(16), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    payments = relationship("EMIPayment", back_populates="loan", cascade="all, delete-orphan")


class EMIPayment(Base):
    """Installment recorded against a loan"""

    __tablename__ = "emi_payment"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_id = Column(UUID(as_uuid=True), ForeignKey("emi_loan.id", ondelete="CASCADE"), nullable=False)
    amount_paid = Column(Money, nullable=False)
    principal_component = Column(Money, nullable=False)
    interest_component = Column(Money, nullable=False)
    due_date = Column(Date, nullable=False)
    payment_date = Column(Date, nullable=False)
    status = Column(String(16), nullable=False, default="paid")
    payment_method = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    loan = relationship("EMILoan", back_populates="payments")


class Subscription(Base):
    """Recurring subscription billed per cycle"""

    __tablename__ = "subscription"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    service_name = Column(Text, nullable=False)
    amount = Column(Money, nullable=False)
    billing_cycle = Column(String(16), nullable=False, default="monthly")
    category = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    start_date = Column(Date, nullable=False)
    next_billing_date = Column(Date, nullable=False, index=True)
    status = Column(String(16), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class RecurringTemplate(Base):
    """Expense booked on a fixed day of the month"""

    __tablename__ = "recurring_expense_template"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)
    amount = Column(Money, nullable=False)
    category = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    schedule_day = Column(Integer, nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Expense(Base):
    """Append-only ledger entry"""

    __tablename__ = "expense"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    amount = Column(Money, nullable=False)
    category = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    expense_date = Column(Date, nullable=False)
    type = Column(String(16), nullable=False, default="expense")
    source_type = Column(String(16), nullable=False, default="none")
    source_id = Column(UUID(as_uuid=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
