# app/api/v1/ledger.py

from __future__ import annotations

import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.core.auth_deps import get_current_principal
from app.core.errors import ArchiveError, to_http
from app.schemas.ledger import TransactionListResponse, TransactionRecordResponse
from app.services.file_service import FileService
from app.services.ledger_service import TransactionLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ledger", tags=["ledger"])


def _iso(dt):
    return dt.isoformat() if dt else None


@router.get("/files/{file_id}", response_model=TransactionListResponse)
async def list_file_transactions(
    file_id: int,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    principal=Depends(get_current_principal),
):
    """
    Read-only ledger view for one file.
    """
    try:
        FileService().get_visible_file(db, file_id, principal=principal)
    except ArchiveError as e:
        raise to_http(e)

    entries = TransactionLedger().list_for_file(db, file_id=file_id, limit=limit)
    logger.info("[ledger] returning %d entries for file %s", len(entries), file_id)

    return TransactionListResponse(
        fileId=file_id,
        records=[
            TransactionRecordResponse(
                id=e.id,
                userId=e.user_id,
                fileId=e.file_id,
                usersDepartmentId=e.users_department_id,
                counterpartyId=e.counterparty_id,
                type=e.transaction_type,
                status=e.transaction_status,
                actionKind=e.action_kind,
                correlationId=e.correlation_id,
                description=e.description,
                timestampIso=_iso(e.transaction_time),
                statusChangedAtIso=_iso(e.status_changed_at),
            )
            for e in entries
        ],
    )
