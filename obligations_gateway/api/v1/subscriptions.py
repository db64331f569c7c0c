"""Subscription endpoints"""

import uuid
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from obligations_gateway.api.v1.schemas import (
    SubscriptionCreateRequest,
    SubscriptionListResponse,
    SubscriptionSchema,
    SubscriptionStatusRequest,
)
from obligations_gateway.domain.amortization import money
from obligations_gateway.domain.billing import monthly_spend
from obligations_gateway.domain.exceptions import EntityNotFoundError
from obligations_gateway.domain.models import SubscriptionAccount
from obligations_gateway.infrastructure.database.models import Subscription
from obligations_gateway.infrastructure.database.repositories import SubscriptionRepository, to_subscription
from obligations_gateway.infrastructure.database.session import get_db
from obligations_gateway.utils.date_utils import advance_billing_date

router = APIRouter()


def _schema(subscription: Subscription) -> SubscriptionSchema:
    return SubscriptionSchema(
        subscription_id=str(subscription.id),
        user_id=subscription.user_id,
        service_name=subscription.service_name,
        amount=subscription.amount,
        billing_cycle=subscription.billing_cycle,
        category=subscription.category,
        start_date=subscription.start_date,
        next_billing_date=subscription.next_billing_date,
        status=subscription.status,
    )


@router.post("/subscriptions", response_model=SubscriptionSchema, status_code=201)
def create_subscription(request_body: SubscriptionCreateRequest, db: Session = Depends(get_db)):
    """
    Register a subscription. The first charge falls one billing cycle after start_date
    unless next_billing_date is given.
    """
    subscription = SubscriptionAccount(
        id=uuid.uuid4(),
        user_id=request_body.user_id,
        service_name=request_body.service_name,
        amount=money(request_body.amount),
        billing_cycle=request_body.billing_cycle,
        start_date=request_body.start_date,
        next_billing_date=(
            request_body.next_billing_date
            or advance_billing_date(request_body.start_date, request_body.billing_cycle)
        ),
        category=request_body.category,
        description=request_body.description,
    )
    db_subscription = SubscriptionRepository(db).create_subscription(subscription)
    db.commit()

    return _schema(db_subscription)


@router.get("/subscriptions", response_model=SubscriptionListResponse)
def list_subscriptions(
    user_id: str = Query(..., description="User identifier"),
    db: Session = Depends(get_db),
):
    """List a user's subscriptions with the monthly-equivalent spend of active ones"""
    rows = SubscriptionRepository(db).get_subscriptions_by_user(user_id)

    return SubscriptionListResponse(
        user_id=user_id,
        subscriptions=[_schema(row) for row in rows],
        monthly_total=monthly_spend(to_subscription(row) for row in rows),
    )


@router.patch("/subscriptions/{subscription_id}/status", response_model=SubscriptionSchema)
def update_status(subscription_id: str, request_body: SubscriptionStatusRequest, db: Session = Depends(get_db)):
    """Pause, cancel or resume a subscription"""
    try:
        subscription_uuid = uuid.UUID(subscription_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid subscription ID format")

    repo = SubscriptionRepository(db)
    try:
        subscription = repo.get_subscription(subscription_uuid)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Subscription not found")

    repo.set_status(subscription, request_body.status)
    db.commit()

    return _schema(subscription)
