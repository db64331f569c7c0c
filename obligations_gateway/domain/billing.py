"""Subscription billing helpers"""

from decimal import Decimal
from typing import Iterable

from obligations_gateway.domain.amortization import money
from obligations_gateway.domain.models import BillingCycle, SubscriptionAccount, SubscriptionStatus

# Billing periods per year
CYCLES_PER_YEAR = {
    BillingCycle.WEEKLY: Decimal("52"),
    BillingCycle.MONTHLY: Decimal("12"),
    BillingCycle.QUARTERLY: Decimal("4"),
    BillingCycle.YEARLY: Decimal("1"),
}


def monthly_equivalent(amount: Decimal, cycle: BillingCycle) -> Decimal:
    """Unrounded monthly cost of a charge billed once per cycle"""
    return Decimal(amount) * CYCLES_PER_YEAR[cycle] / Decimal("12")


def monthly_spend(subscriptions: Iterable[SubscriptionAccount]) -> Decimal:
    """Total monthly-equivalent spend of active subscriptions, rounded to cents"""
    total = sum(
        (
            monthly_equivalent(sub.amount, sub.billing_cycle)
            for sub in subscriptions
            if sub.status == SubscriptionStatus.ACTIVE
        ),
        Decimal("0"),
    )
    return money(total)
