"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from obligations_gateway.domain.models import BillingCycle, SubscriptionStatus


class ProcessRequest(BaseModel):
    """Optional body for POST /v1/recurring/process"""

    today: Optional[date] = Field(None, description="Processing date; defaults to today in the configured timezone")


class UserSummarySchema(BaseModel):
    """What one run booked for a single user"""

    subscriptions: List[str]
    emis: List[str]
    templates: List[str]
    total: float


class ProcessResponse(BaseModel):
    """Response for POST /v1/recurring/process"""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    processed: int
    subscriptions: int
    emis: int
    templates: int
    user_summary: Dict[str, UserSummarySchema] = Field(..., alias="userSummary")


class DueItem(BaseModel):
    """Subscription or EMI due for payment"""

    id: str
    kind: str  # subscription | emi
    name: str
    amount: Decimal
    due_date: date


class DueOverviewResponse(BaseModel):
    """Response for GET /v1/recurring/due"""

    user_id: str
    today: date
    due: List[DueItem]
    upcoming: List[DueItem]
    total_due: Decimal


class LoanCreateRequest(BaseModel):
    """Request body for POST /v1/loans"""

    user_id: str = Field(..., min_length=1, description="User identifier")
    lender_name: str = Field(..., min_length=1)
    principal: Decimal = Field(..., gt=0)
    annual_interest_rate_percent: Decimal = Field(..., ge=0)
    tenure_months: int = Field(..., ge=1)
    start_date: date
    next_payment_date: Optional[date] = Field(None, description="Defaults to start_date")


class LoanResponse(BaseModel):
    """Loan with repayment progress"""

    loan_id: str
    user_id: str
    lender_name: str
    principal: Decimal
    annual_interest_rate_percent: Decimal
    tenure_months: int
    start_date: date
    monthly_payment_amount: Decimal
    outstanding_balance: Decimal
    next_payment_date: date
    status: str
    progress_percent: float


class ScheduleEntrySchema(BaseModel):
    """Single period of an amortization table"""

    period_index: int
    due_date: date
    payment_amount: Decimal
    principal_component: Decimal
    interest_component: Decimal
    remaining_balance_after_payment: Decimal


class ScheduleResponse(BaseModel):
    """Response for GET /v1/loans/{loan_id}/schedule"""

    loan_id: str
    monthly_payment_amount: Decimal
    entries: List[ScheduleEntrySchema]


class PaymentCreateRequest(BaseModel):
    """Request body for POST /v1/loans/{loan_id}/payments"""

    amount_paid: Decimal = Field(..., gt=0)
    payment_date: date
    due_date: Optional[date] = Field(None, description="Defaults to the loan's next payment date")
    principal_component: Optional[Decimal] = Field(None, description="Derived from the balance when omitted")
    interest_component: Optional[Decimal] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None


class PaymentSchema(BaseModel):
    """Installment recorded against a loan"""

    payment_id: str
    amount_paid: Decimal
    principal_component: Decimal
    interest_component: Decimal
    due_date: date
    payment_date: date
    status: str
    payment_method: Optional[str] = None
    notes: Optional[str] = None


class PaymentHistoryResponse(BaseModel):
    """Response for GET /v1/loans/{loan_id}/payments"""

    loan_id: str
    payments: List[PaymentSchema]


class BalanceCorrectionRequest(BaseModel):
    """Request body for PATCH /v1/loans/{loan_id}/balance"""

    outstanding_balance: Decimal = Field(..., ge=0)


class SubscriptionCreateRequest(BaseModel):
    """Request body for POST /v1/subscriptions"""

    user_id: str = Field(..., min_length=1, description="User identifier")
    service_name: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    start_date: date
    next_billing_date: Optional[date] = Field(None, description="Defaults to start_date plus one billing cycle")
    category: Optional[str] = None
    description: Optional[str] = None


class SubscriptionStatusRequest(BaseModel):
    """Request body for PATCH /v1/subscriptions/{subscription_id}/status"""

    status: SubscriptionStatus


class SubscriptionSchema(BaseModel):
    """Single subscription"""

    subscription_id: str
    user_id: str
    service_name: str
    amount: Decimal
    billing_cycle: str
    category: Optional[str] = None
    start_date: date
    next_billing_date: date
    status: str


class SubscriptionListResponse(BaseModel):
    """Response for GET /v1/subscriptions"""

    user_id: str
    subscriptions: List[SubscriptionSchema]
    monthly_total: Decimal


class TemplateCreateRequest(BaseModel):
    """Request body for POST /v1/templates"""

    user_id: str = Field(..., min_length=1, description="User identifier")
    name: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    category: str = Field(..., min_length=1)
    description: Optional[str] = None
    schedule_day: int = Field(..., ge=1, le=31)


class TemplateUpdateRequest(BaseModel):
    """Request body for PATCH /v1/templates/{template_id}"""

    is_active: bool


class TemplateSchema(BaseModel):
    """Single recurring expense template"""

    template_id: str
    user_id: str
    name: str
    amount: Decimal
    category: str
    description: Optional[str] = None
    schedule_day: int
    is_active: bool
    last_processed_at: Optional[datetime] = None


class LedgerEntrySchema(BaseModel):
    """Single ledger entry"""

    entry_id: str
    amount: Decimal
    category: str
    description: Optional[str] = None
    occurred_on: date
    kind: str
    source_type: str
    source_id: Optional[str] = None


class LedgerResponse(BaseModel):
    """Response for GET /v1/ledger"""

    user_id: str
    entries: List[LedgerEntrySchema]
