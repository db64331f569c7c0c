"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session
from obligations_gateway.config import settings
from obligations_gateway.domain.processor import RecurringObligationsProcessor
from obligations_gateway.infrastructure.clients.notifications import SummaryWebhookClient
from obligations_gateway.infrastructure.database.repositories import SqlObligationStorage
from obligations_gateway.infrastructure.database.session import get_db


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_processor(db: Session = Depends(get_db)) -> RecurringObligationsProcessor:
    """Provide a processor bound to the request's database session"""
    return RecurringObligationsProcessor(SqlObligationStorage(db), tz_name=settings.timezone)


def get_webhook_client() -> SummaryWebhookClient:
    """Provide summary webhook client instance"""
    return SummaryWebhookClient()
