"""EMI loan endpoints: registration, schedule, payments, balance correction"""

import uuid
from decimal import Decimal
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from obligations_gateway.api.v1.schemas import (
    BalanceCorrectionRequest,
    LoanCreateRequest,
    LoanResponse,
    PaymentCreateRequest,
    PaymentHistoryResponse,
    PaymentSchema,
    ScheduleEntrySchema,
    ScheduleResponse,
)
from obligations_gateway.domain.amortization import compute_monthly_payment, generate_schedule, money, split_installment
from obligations_gateway.domain.exceptions import EntityNotFoundError, InvalidArgumentError
from obligations_gateway.domain.models import LoanAccount, LoanStatus, PaymentRecord
from obligations_gateway.infrastructure.database.models import EMILoan, EMIPayment
from obligations_gateway.infrastructure.database.repositories import LoanRepository
from obligations_gateway.infrastructure.database.session import get_db

router = APIRouter()


def _parse_id(loan_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(loan_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid loan ID format")


def _load(repo: LoanRepository, loan_id: str) -> EMILoan:
    try:
        return repo.get_loan(_parse_id(loan_id))
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Loan not found")


def _loan_response(loan: EMILoan) -> LoanResponse:
    principal = Decimal(loan.loan_amount)
    progress = (principal - Decimal(loan.outstanding_amount)) / principal * 100

    return LoanResponse(
        loan_id=str(loan.id),
        user_id=loan.user_id,
        lender_name=loan.lender_name,
        principal=principal,
        annual_interest_rate_percent=loan.interest_rate,
        tenure_months=loan.tenure_months,
        start_date=loan.start_date,
        monthly_payment_amount=loan.emi_amount,
        outstanding_balance=loan.outstanding_amount,
        next_payment_date=loan.next_payment_date,
        status=loan.status,
        progress_percent=round(float(progress), 2),
    )


def _payment_schema(payment: EMIPayment) -> PaymentSchema:
    return PaymentSchema(
        payment_id=str(payment.id),
        amount_paid=payment.amount_paid,
        principal_component=payment.principal_component,
        interest_component=payment.interest_component,
        due_date=payment.due_date,
        payment_date=payment.payment_date,
        status=payment.status,
        payment_method=payment.payment_method,
        notes=payment.notes,
    )


@router.post("/loans", response_model=LoanResponse, status_code=201)
def create_loan(request_body: LoanCreateRequest, db: Session = Depends(get_db)):
    """
    Register a loan. The EMI is computed once here and never recomputed.
    """
    try:
        emi = compute_monthly_payment(
            request_body.principal,
            request_body.annual_interest_rate_percent,
            request_body.tenure_months,
        )
    except InvalidArgumentError as e:
        raise HTTPException(status_code=422, detail=str(e))

    loan = LoanAccount(
        id=uuid.uuid4(),
        user_id=request_body.user_id,
        lender_name=request_body.lender_name,
        principal=money(request_body.principal),
        annual_interest_rate_percent=request_body.annual_interest_rate_percent,
        tenure_months=request_body.tenure_months,
        start_date=request_body.start_date,
        outstanding_balance=money(request_body.principal),
        monthly_payment_amount=emi,
        next_payment_date=request_body.next_payment_date or request_body.start_date,
    )
    db_loan = LoanRepository(db).create_loan(loan)
    db.commit()

    return _loan_response(db_loan)


@router.get("/loans/{loan_id}", response_model=LoanResponse)
def get_loan(loan_id: str, db: Session = Depends(get_db)):
    """Retrieve a loan with its repayment progress"""
    return _loan_response(_load(LoanRepository(db), loan_id))


@router.get("/loans/{loan_id}/schedule", response_model=ScheduleResponse)
def get_schedule(loan_id: str, db: Session = Depends(get_db)):
    """
    Recompute the amortization table from the loan's original parameters.

    Returns:
        One entry per month of tenure
    """
    loan = _load(LoanRepository(db), loan_id)
    entries = generate_schedule(loan.loan_amount, loan.interest_rate, loan.tenure_months, loan.start_date)

    return ScheduleResponse(
        loan_id=str(loan.id),
        monthly_payment_amount=loan.emi_amount,
        entries=[
            ScheduleEntrySchema(
                period_index=e.period_index,
                due_date=e.due_date,
                payment_amount=e.payment_amount,
                principal_component=e.principal_component,
                interest_component=e.interest_component,
                remaining_balance_after_payment=e.remaining_balance_after_payment,
            )
            for e in entries
        ],
    )


@router.post("/loans/{loan_id}/payments", response_model=PaymentSchema, status_code=201)
def record_payment(loan_id: str, request_body: PaymentCreateRequest, db: Session = Depends(get_db)):
    """
    Record a manual payment and reduce the balance by its principal component.

    Components default to the split of amount_paid against the current balance.
    """
    repo = LoanRepository(db)
    loan = _load(repo, loan_id)

    if loan.status == LoanStatus.COMPLETED.value:
        raise HTTPException(status_code=409, detail="Loan is already completed")

    outstanding = Decimal(loan.outstanding_amount)
    if request_body.principal_component is None:
        principal_part, interest, _ = split_installment(outstanding, loan.interest_rate, request_body.amount_paid)
    else:
        principal_part = money(request_body.principal_component)
        interest = request_body.interest_component
        if interest is None:
            interest = request_body.amount_paid - principal_part
        interest = money(interest)

    payment = repo.add_payment(
        PaymentRecord(
            loan_id=loan.id,
            amount_paid=money(request_body.amount_paid),
            principal_component=principal_part,
            interest_component=interest,
            due_date=request_body.due_date or loan.next_payment_date,
            payment_date=request_body.payment_date,
            status="paid",
            notes=request_body.notes,
            payment_method=request_body.payment_method,
        )
    )

    # Due date stays put; only the processor advances the installment calendar
    repo.set_balance(loan, max(Decimal("0"), outstanding - principal_part))
    db.commit()

    return _payment_schema(payment)


@router.get("/loans/{loan_id}/payments", response_model=PaymentHistoryResponse)
def get_payments(loan_id: str, db: Session = Depends(get_db)):
    """List payments recorded against a loan, newest first"""
    repo = LoanRepository(db)
    loan = _load(repo, loan_id)

    return PaymentHistoryResponse(
        loan_id=str(loan.id),
        payments=[_payment_schema(p) for p in repo.get_payments(loan.id)],
    )


@router.patch("/loans/{loan_id}/balance", response_model=LoanResponse)
def correct_balance(loan_id: str, request_body: BalanceCorrectionRequest, db: Session = Depends(get_db)):
    """Manual balance correction; a zero balance completes the loan"""
    repo = LoanRepository(db)
    loan = repo.set_balance(_load(repo, loan_id), money(request_body.outstanding_balance))
    db.commit()

    return _loan_response(loan)
