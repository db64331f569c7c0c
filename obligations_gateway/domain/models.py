"""Domain models - pure Python dataclasses representing business entities"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional
from obligations_gateway.domain.exceptions import ItemProcessingError


class LoanStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class BillingCycle(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"


class EntryKind(str, Enum):
    EXPENSE = "expense"
    INCOME = "income"


class SourceType(str, Enum):
    SUBSCRIPTION = "subscription"
    LOAN = "loan"
    TEMPLATE = "template"
    NONE = "none"


@dataclass
class LoanAccount:
    """EMI loan owned by a single user"""

    id: uuid.UUID
    user_id: str
    lender_name: str
    principal: Decimal
    annual_interest_rate_percent: Decimal
    tenure_months: int
    start_date: date
    outstanding_balance: Decimal
    monthly_payment_amount: Decimal  # Fixed at creation
    next_payment_date: date
    status: LoanStatus = LoanStatus.ACTIVE


@dataclass
class PaymentScheduleEntry:
    """One period of an amortization table (derived, never persisted)"""

    period_index: int
    due_date: date
    payment_amount: Decimal
    principal_component: Decimal
    interest_component: Decimal
    remaining_balance_after_payment: Decimal


@dataclass
class PaymentRecord:
    """Installment paid against a loan"""

    loan_id: uuid.UUID
    amount_paid: Decimal
    principal_component: Decimal
    interest_component: Decimal
    due_date: date
    payment_date: date
    status: str = "paid"
    notes: Optional[str] = None
    payment_method: Optional[str] = None


@dataclass
class SubscriptionAccount:
    """Recurring subscription billed every cycle"""

    id: uuid.UUID
    user_id: str
    service_name: str
    amount: Decimal
    billing_cycle: BillingCycle
    start_date: date
    next_billing_date: date
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    category: Optional[str] = None
    description: Optional[str] = None


@dataclass
class RecurringExpenseTemplate:
    """Expense booked on a fixed day of every month"""

    id: uuid.UUID
    user_id: str
    name: str
    amount: Decimal
    category: str
    schedule_day: int  # 1-31
    is_active: bool = True
    description: Optional[str] = None
    last_processed_at: Optional[datetime] = None


@dataclass
class LedgerEntry:
    """Append-only expense/income record"""

    user_id: str
    amount: Decimal
    category: str
    description: str
    occurred_on: date
    kind: EntryKind = EntryKind.EXPENSE
    source_type: SourceType = SourceType.NONE
    source_id: Optional[uuid.UUID] = None


@dataclass
class UserSummary:
    """What a processing run booked for one user"""

    subscriptions: List[str] = field(default_factory=list)
    emis: List[str] = field(default_factory=list)
    templates: List[str] = field(default_factory=list)
    total: Decimal = Decimal("0")


@dataclass
class ProcessingSummary:
    """Outcome of one recurring obligations run"""

    run_date: date
    subscriptions: int = 0
    emis: int = 0
    templates: int = 0
    failures: List[ItemProcessingError] = field(default_factory=list)
    user_summary: Dict[str, UserSummary] = field(default_factory=dict)

    @property
    def processed(self) -> int:
        return self.subscriptions + self.emis + self.templates

    def for_user(self, user_id: str) -> UserSummary:
        if user_id not in self.user_summary:
            self.user_summary[user_id] = UserSummary()
        return self.user_summary[user_id]
