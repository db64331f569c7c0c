"""GET /v1/ledger - Fetch a user's ledger entries"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from obligations_gateway.api.v1.schemas import LedgerEntrySchema, LedgerResponse
from obligations_gateway.infrastructure.database.session import get_db
from obligations_gateway.infrastructure.database.repositories import LedgerRepository

router = APIRouter()


@router.get("/ledger", response_model=LedgerResponse)
def get_ledger(
    user_id: str = Query(..., description="User identifier"),
    source_type: Optional[str] = Query(None, description="subscription | loan | template | none"),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """
    Retrieve recent ledger entries for a user.

    Returns:
        Entries newest first, optionally filtered by originating source
    """
    entries = LedgerRepository(db).get_entries_by_user(user_id, limit=limit, source_type=source_type)

    return LedgerResponse(
        user_id=user_id,
        entries=[
            LedgerEntrySchema(
                entry_id=str(e.id),
                amount=e.amount,
                category=e.category,
                description=e.description,
                occurred_on=e.expense_date,
                kind=e.type,
                source_type=e.source_type,
                source_id=str(e.source_id) if e.source_id else None,
            )
            for e in entries
        ],
    )
