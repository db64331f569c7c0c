"""EMI amortization: fixed monthly payment and period-by-period schedule"""

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Tuple

from obligations_gateway.domain.exceptions import InvalidArgumentError
from obligations_gateway.domain.models import PaymentScheduleEntry
from obligations_gateway.utils.date_utils import add_months

CENT = Decimal("0.01")
ZERO = Decimal("0")


def money(value) -> Decimal:
    """2-decimal Decimal with HALF_UP rounding"""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def monthly_rate(annual_rate_percent) -> Decimal:
    return Decimal(str(annual_rate_percent)) / Decimal("12") / Decimal("100")


def _validate(principal, annual_rate_percent, tenure_months) -> Tuple[Decimal, Decimal]:
    if isinstance(tenure_months, bool) or not isinstance(tenure_months, int) or tenure_months < 1:
        raise InvalidArgumentError(f"tenure_months must be a positive integer, got {tenure_months!r}")

    principal = Decimal(str(principal))
    rate = Decimal(str(annual_rate_percent))
    if principal <= 0:
        raise InvalidArgumentError(f"principal must be positive, got {principal}")
    if rate < 0:
        raise InvalidArgumentError(f"annual_rate_percent must not be negative, got {rate}")
    return principal, rate


def compute_monthly_payment(principal, annual_rate_percent, tenure_months: int) -> Decimal:
    """
    Fixed monthly installment that retires the loan over its tenure.

    Standard amortization formula P*r*(1+r)^n / ((1+r)^n - 1) with
    r = annual% / 12 / 100; straight-line P/n for zero-interest loans.

    Raises:
        InvalidArgumentError: principal <= 0, rate < 0 or tenure < 1

    Example:
        compute_monthly_payment(100000, 0, 4) -> 25000.00
    """
    principal, rate = _validate(principal, annual_rate_percent, tenure_months)

    r = monthly_rate(rate)
    if r == 0:
        return money(principal / tenure_months)

    growth = (1 + r) ** tenure_months
    return money(principal * r * growth / (growth - 1))


def generate_schedule(
    principal,
    annual_rate_percent,
    tenure_months: int,
    start_date: date,
) -> List[PaymentScheduleEntry]:
    """
    Generate the full amortization table for a loan.

    Requirements:
    - Exactly tenure_months entries, due start_date + i calendar months
    - Interest accrues on the running (unrounded) balance
    - Final period absorbs the rounding remainder so the balance ends at 0
    - Components and balance are rounded to cents independently

    Raises:
        InvalidArgumentError: on the same inputs compute_monthly_payment rejects
    """
    principal, rate = _validate(principal, annual_rate_percent, tenure_months)
    payment = compute_monthly_payment(principal, rate, tenure_months)
    r = monthly_rate(rate)

    schedule = []
    balance = principal
    for period in range(1, tenure_months + 1):
        interest = balance * r
        if period == tenure_months:
            principal_part = balance
            period_payment = money(balance + interest)
        else:
            principal_part = payment - interest
            period_payment = payment

        balance = max(ZERO, balance - principal_part)

        schedule.append(
            PaymentScheduleEntry(
                period_index=period,
                due_date=add_months(start_date, period),
                payment_amount=period_payment,
                principal_component=money(principal_part),
                interest_component=money(interest),
                remaining_balance_after_payment=money(balance),
            )
        )

    return schedule


def split_installment(outstanding, annual_rate_percent, payment) -> Tuple[Decimal, Decimal, Decimal]:
    """
    Split one installment against the current outstanding balance.

    Returns:
        (principal_component, interest_component, new_outstanding), where
        new_outstanding is clamped at zero
    """
    outstanding = money(outstanding)
    interest = money(outstanding * monthly_rate(annual_rate_percent))
    principal_part = money(Decimal(str(payment)) - interest)
    new_outstanding = max(ZERO, outstanding - principal_part)
    return principal_part, interest, money(new_outstanding)
