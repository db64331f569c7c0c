"""Recurring expense template endpoints"""

import uuid
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from obligations_gateway.api.v1.schemas import TemplateCreateRequest, TemplateSchema, TemplateUpdateRequest
from obligations_gateway.domain.amortization import money
from obligations_gateway.domain.exceptions import EntityNotFoundError
from obligations_gateway.domain.models import RecurringExpenseTemplate
from obligations_gateway.infrastructure.database.models import RecurringTemplate
from obligations_gateway.infrastructure.database.repositories import TemplateRepository
from obligations_gateway.infrastructure.database.session import get_db

router = APIRouter()


def _schema(template: RecurringTemplate) -> TemplateSchema:
    return TemplateSchema(
        template_id=str(template.id),
        user_id=template.user_id,
        name=template.name,
        amount=template.amount,
        category=template.category,
        description=template.description,
        schedule_day=template.schedule_day,
        is_active=template.is_active,
        last_processed_at=template.last_processed_at,
    )


@router.post("/templates", response_model=TemplateSchema, status_code=201)
def create_template(request_body: TemplateCreateRequest, db: Session = Depends(get_db)):
    """Register an expense to be booked on schedule_day of every month"""
    template = RecurringExpenseTemplate(
        id=uuid.uuid4(),
        user_id=request_body.user_id,
        name=request_body.name,
        amount=money(request_body.amount),
        category=request_body.category,
        schedule_day=request_body.schedule_day,
        description=request_body.description,
    )
    db_template = TemplateRepository(db).create_template(template)
    db.commit()

    return _schema(db_template)


@router.patch("/templates/{template_id}", response_model=TemplateSchema)
def update_template(template_id: str, request_body: TemplateUpdateRequest, db: Session = Depends(get_db)):
    """Activate or deactivate a template"""
    try:
        template_uuid = uuid.UUID(template_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid template ID format")

    repo = TemplateRepository(db)
    try:
        template = repo.get_template(template_uuid)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Template not found")

    repo.set_active(template, request_body.is_active)
    db.commit()

    return _schema(template)
