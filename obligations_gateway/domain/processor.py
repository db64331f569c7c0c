"""Recurring obligations processor: books due subscriptions, EMIs and recurring templates"""

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Protocol
from zoneinfo import ZoneInfo

from obligations_gateway.domain.amortization import split_installment
from obligations_gateway.domain.exceptions import FatalFetchError, ItemProcessingError
from obligations_gateway.domain.models import (
    EntryKind,
    LedgerEntry,
    LoanAccount,
    LoanStatus,
    PaymentRecord,
    ProcessingSummary,
    RecurringExpenseTemplate,
    SourceType,
    SubscriptionAccount,
)
from obligations_gateway.utils.date_utils import add_months, advance_billing_date, local_date

logger = logging.getLogger(__name__)

SUBSCRIPTIONS = "subscriptions"
LOANS = "loans"
TEMPLATES = "templates"

DEFAULT_SUBSCRIPTION_CATEGORY = "Subscriptions"
EMI_CATEGORY = "EMI Payments"


class ObligationStorage(Protocol):
    """CRUD access to recurring obligations and the ledger"""

    def list_due_subscriptions(self, today: date) -> List[SubscriptionAccount]:  # pragma: no cover - interface
        ...

    def list_due_loans(self, today: date) -> List[LoanAccount]:  # pragma: no cover - interface
        ...

    def list_due_templates(self, day_of_month: int) -> List[RecurringExpenseTemplate]:  # pragma: no cover - interface
        ...

    def update_subscription(self, subscription_id: uuid.UUID, patch: Dict[str, Any]) -> None:  # pragma: no cover - interface
        ...

    def update_loan(self, loan_id: uuid.UUID, patch: Dict[str, Any]) -> None:  # pragma: no cover - interface
        ...

    def update_template(self, template_id: uuid.UUID, patch: Dict[str, Any]) -> None:  # pragma: no cover - interface
        ...

    def insert_payment(self, record: PaymentRecord) -> None:  # pragma: no cover - interface
        ...

    def insert_ledger_entry(self, entry: LedgerEntry) -> None:  # pragma: no cover - interface
        ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RecurringObligationsProcessor:
    """
    Single sequential batch over every user's due recurring obligations.

    Each item is processed independently: a failure on one record is logged
    and the run continues. Failing to list a collection aborts the run with
    FatalFetchError before anything is written.
    """

    def __init__(
        self,
        storage: ObligationStorage,
        tz_name: str = "UTC",
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.storage = storage
        self.tz_name = tz_name
        self.clock = clock

    def run(self, today: date) -> ProcessingSummary:
        """
        Process everything due on or before `today`.

        Raises:
            FatalFetchError: a collection of due items could not be listed
        """
        logger.info("Starting recurring processing", extra={"run_date": today.isoformat()})

        subscriptions = self._fetch(SUBSCRIPTIONS, self.storage.list_due_subscriptions, today)
        loans = self._fetch(LOANS, self.storage.list_due_loans, today)
        templates = self._fetch(TEMPLATES, self.storage.list_due_templates, today.day)

        summary = ProcessingSummary(run_date=today)

        for sub in subscriptions:
            if self._attempt(summary, SUBSCRIPTIONS, sub.id, self._process_subscription, sub, today):
                summary.subscriptions += 1
                user = summary.for_user(sub.user_id)
                user.subscriptions.append(sub.service_name)
                user.total += sub.amount

        for loan in loans:
            if self._attempt(summary, LOANS, loan.id, self._process_loan, loan, today):
                summary.emis += 1
                user = summary.for_user(loan.user_id)
                user.emis.append(loan.lender_name)
                user.total += loan.monthly_payment_amount

        for template in templates:
            if self._already_processed(template, today):
                logger.info(
                    f"Template {template.name} already processed today, skipping",
                    extra={"entity_id": str(template.id), "collection": TEMPLATES},
                )
                continue
            if self._attempt(summary, TEMPLATES, template.id, self._process_template, template, today):
                summary.templates += 1
                user = summary.for_user(template.user_id)
                user.templates.append(template.name)
                user.total += template.amount

        logger.info(
            f"Completed. Processed {summary.processed} items for {len(summary.user_summary)} users",
            extra={"run_date": today.isoformat(), "failures": len(summary.failures)},
        )
        return summary

    def _fetch(self, collection: str, query: Callable, arg) -> list:
        try:
            items = query(arg)
        except Exception as e:
            logger.error(f"Error fetching due {collection}: {e}", extra={"collection": collection})
            raise FatalFetchError(collection, e) from e
        logger.info(f"Found {len(items)} due {collection}", extra={"collection": collection})
        return items

    def _attempt(self, summary: ProcessingSummary, collection: str, entity_id, handler: Callable, *args) -> bool:
        try:
            handler(*args)
        except Exception as e:
            error = ItemProcessingError(collection, entity_id, e)
            logger.error(str(error), extra={"entity_id": str(entity_id), "collection": collection})
            summary.failures.append(error)
            return False
        return True

    def _process_subscription(self, sub: SubscriptionAccount, today: date) -> None:
        self.storage.insert_ledger_entry(
            LedgerEntry(
                user_id=sub.user_id,
                amount=sub.amount,
                category=sub.category or DEFAULT_SUBSCRIPTION_CATEGORY,
                description=f"{sub.service_name} - {sub.billing_cycle.value} subscription",
                occurred_on=today,
                kind=EntryKind.EXPENSE,
                source_type=SourceType.SUBSCRIPTION,
                source_id=sub.id,
            )
        )

        # Advance from the anchor date, not from today, to keep the billing day
        next_date = advance_billing_date(sub.next_billing_date, sub.billing_cycle)
        self.storage.update_subscription(sub.id, {"next_billing_date": next_date})

        logger.info(
            f"Processed subscription: {sub.service_name} for user {sub.user_id}",
            extra={"entity_id": str(sub.id), "collection": SUBSCRIPTIONS},
        )

    def _process_loan(self, loan: LoanAccount, today: date) -> None:
        principal_part, interest, new_outstanding = split_installment(
            loan.outstanding_balance,
            loan.annual_interest_rate_percent,
            loan.monthly_payment_amount,
        )

        self.storage.insert_payment(
            PaymentRecord(
                loan_id=loan.id,
                amount_paid=loan.monthly_payment_amount,
                principal_component=principal_part,
                interest_component=interest,
                due_date=loan.next_payment_date,
                payment_date=today,
                status="paid",
                notes="Auto-recorded payment",
            )
        )
        self.storage.insert_ledger_entry(
            LedgerEntry(
                user_id=loan.user_id,
                amount=loan.monthly_payment_amount,
                category=EMI_CATEGORY,
                description=f"{loan.lender_name} - EMI Payment",
                occurred_on=today,
                kind=EntryKind.EXPENSE,
                source_type=SourceType.LOAN,
                source_id=loan.id,
            )
        )

        patch: Dict[str, Any] = {
            "outstanding_balance": new_outstanding,
            "next_payment_date": add_months(loan.next_payment_date, 1),
        }
        if new_outstanding == 0:
            patch["status"] = LoanStatus.COMPLETED
        self.storage.update_loan(loan.id, patch)

        logger.info(
            f"Processed EMI payment: {loan.lender_name} for user {loan.user_id}",
            extra={"entity_id": str(loan.id), "collection": LOANS},
        )

    def _already_processed(self, template: RecurringExpenseTemplate, today: date) -> bool:
        if template.last_processed_at is None:
            return False
        return local_date(template.last_processed_at, self.tz_name) == today

    def _process_template(self, template: RecurringExpenseTemplate, today: date) -> None:
        self.storage.insert_ledger_entry(
            LedgerEntry(
                user_id=template.user_id,
                amount=template.amount,
                category=template.category,
                description=template.description or template.name,
                occurred_on=today,
                kind=EntryKind.EXPENSE,
                source_type=SourceType.TEMPLATE,
                source_id=template.id,
            )
        )
        self.storage.update_template(template.id, {"last_processed_at": self._processed_at(today)})

        logger.info(
            f"Processed recurring template: {template.name} for user {template.user_id}",
            extra={"entity_id": str(template.id), "collection": TEMPLATES},
        )

    def _processed_at(self, today: date) -> datetime:
        # Stamp lands on `today` in the configured zone, stored as UTC
        wall = self.clock().astimezone(ZoneInfo(self.tz_name)).timetz()
        return datetime.combine(today, wall).astimezone(timezone.utc)
