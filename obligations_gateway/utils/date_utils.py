"""Date manipulation utilities"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

from obligations_gateway.domain.models import BillingCycle


def add_months(from_date: date, months: int) -> date:
    """Calendar-month arithmetic; Jan 31 + 1 month -> Feb 28/29"""
    return from_date + relativedelta(months=months)


def advance_billing_date(from_date: date, cycle: BillingCycle) -> date:
    """Move a billing date forward by exactly one billing cycle"""
    if cycle == BillingCycle.WEEKLY:
        return from_date + timedelta(days=7)
    if cycle == BillingCycle.QUARTERLY:
        return add_months(from_date, 3)
    if cycle == BillingCycle.YEARLY:
        return from_date + relativedelta(years=1)
    return add_months(from_date, 1)


def local_date(moment: datetime, tz_name: str) -> date:
    """Calendar date of a timestamp in the given timezone (naive values are UTC)"""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(ZoneInfo(tz_name)).date()


def local_today(tz_name: str) -> date:
    """Current date in the given timezone"""
    return datetime.now(ZoneInfo(tz_name)).date()
