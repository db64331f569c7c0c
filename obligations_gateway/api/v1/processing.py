"""POST /v1/recurring/process - run the recurring obligations batch; GET /v1/recurring/due"""

import time
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, Optional
import httpx
from fastapi import APIRouter, Body, Depends, BackgroundTasks, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from obligations_gateway.api.v1.schemas import (
    DueItem,
    DueOverviewResponse,
    ProcessRequest,
    ProcessResponse,
    UserSummarySchema,
)
from obligations_gateway.api.dependencies import get_processor, get_request_id, get_webhook_client
from obligations_gateway.config import settings
from obligations_gateway.domain.exceptions import FatalFetchError
from obligations_gateway.domain.models import ProcessingSummary
from obligations_gateway.domain.processor import RecurringObligationsProcessor
from obligations_gateway.infrastructure.clients.notifications import SummaryWebhookClient
from obligations_gateway.infrastructure.database.repositories import LoanRepository, SubscriptionRepository
from obligations_gateway.infrastructure.database.session import get_db
from obligations_gateway.infrastructure.observability.logging import log_run
from obligations_gateway.infrastructure.observability.metrics import fatal_runs_counter, record_run
from obligations_gateway.utils.date_utils import local_today

router = APIRouter()


def _to_response(summary: ProcessingSummary) -> ProcessResponse:
    return ProcessResponse(
        success=True,
        processed=summary.processed,
        subscriptions=summary.subscriptions,
        emis=summary.emis,
        templates=summary.templates,
        user_summary={
            user_id: UserSummarySchema(
                subscriptions=user.subscriptions,
                emis=user.emis,
                templates=user.templates,
                total=float(user.total),
            )
            for user_id, user in summary.user_summary.items()
        },
    )


async def _notify(client: SummaryWebhookClient, payload: Dict[str, Any]) -> None:
    try:
        await client.send_summary_event(payload)
    except (httpx.HTTPStatusError, httpx.RequestError) as e:
        logging.error(f"Summary webhook delivery failed: {e}", extra={"run_date": payload.get("run_date")})


@router.post("/recurring/process", response_model=ProcessResponse)
def process_recurring(
    request: Request,
    background_tasks: BackgroundTasks,
    body: Optional[ProcessRequest] = Body(None),
    today: Optional[date] = Query(None, description="Processing date when no body is sent"),
    db: Session = Depends(get_db),
    processor: RecurringObligationsProcessor = Depends(get_processor),
    webhook_client: SummaryWebhookClient = Depends(get_webhook_client),
):
    """
    Book every due subscription, EMI and recurring template.

    Flow:
    1. Resolve the processing date (body, then query, then today in the configured timezone)
    2. List due items; abort with 500 if any collection cannot be listed
    3. Process items one by one, skipping failures
    4. Commit, record metrics and logs
    5. Schedule the per-user summary webhook when configured
    """
    start_time = time.time()
    request_id = get_request_id(request)
    if body and body.today:
        today = body.today
    today = today or local_today(settings.timezone)

    try:
        summary = processor.run(today)
    except FatalFetchError as e:
        db.rollback()
        fatal_runs_counter.inc()
        logging.error(f"Fatal error: {e}", extra={"request_id": request_id, "collection": e.collection})
        return JSONResponse(status_code=500, content={"error": str(e)})

    db.commit()

    duration = time.time() - start_time
    record_run(summary, duration)
    log_run(request_id, summary, duration * 1000)

    response = _to_response(summary)

    if webhook_client.enabled and summary.processed > 0:
        background_tasks.add_task(
            _notify,
            webhook_client,
            {
                "event": "RECURRING_PROCESSED",
                "run_date": today.isoformat(),
                **response.model_dump(mode="json", by_alias=True),
            },
        )

    return response


@router.get("/recurring/due", response_model=DueOverviewResponse)
def get_due_overview(
    user_id: str = Query(..., description="User identifier"),
    today: Optional[date] = Query(None, description="Defaults to today in the configured timezone"),
    db: Session = Depends(get_db),
):
    """
    Subscriptions and EMIs due on or before today, plus those due tomorrow.
    """
    today = today or local_today(settings.timezone)
    tomorrow = today + timedelta(days=1)

    subscriptions = SubscriptionRepository(db).get_subscriptions_due_by(user_id, tomorrow)
    loans = LoanRepository(db).get_loans_due_by(user_id, tomorrow)

    items = [
        DueItem(
            id=str(s.id),
            kind="subscription",
            name=s.service_name,
            amount=s.amount,
            due_date=s.next_billing_date,
        )
        for s in subscriptions
    ] + [
        DueItem(
            id=str(loan.id),
            kind="emi",
            name=loan.lender_name,
            amount=loan.emi_amount,
            due_date=loan.next_payment_date,
        )
        for loan in loans
    ]

    due = [item for item in items if item.due_date <= today]
    upcoming = [item for item in items if item.due_date == tomorrow]

    return DueOverviewResponse(
        user_id=user_id,
        today=today,
        due=due,
        upcoming=upcoming,
        total_due=sum((item.amount for item in due), Decimal("0")),
    )
