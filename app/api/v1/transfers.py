# app/api/v1/transfers.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.auth_deps import get_current_principal
from app.core.errors import ArchiveError, to_http
from app.db.session import get_db
from app.schemas.transfers import (
    RespondRequest,
    RespondResponse,
    SendRequest,
    SendResponse,
    SendResult,
    TransferListResponse,
    TransferView,
)
from app.services.transfer_service import TransferStateMachine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transfers")


def _views(rows) -> TransferListResponse:
    return TransferListResponse(
        transfers=[
            TransferView(
                transactionId=r["transaction_id"],
                fileId=r["file_id"],
                fileName=r["file_name"],
                sender=r["sender"],
                recipient=r["recipient"],
                status=r["status"],
                timestampIso=r["timestamp"].isoformat(),
                description=r["description"],
            )
            for r in rows
        ]
    )


@router.post("/send", response_model=SendResponse)
async def send_files(
    req: SendRequest,
    db: Session = Depends(get_db),
    principal=Depends(get_current_principal),
):
    """
    All files go out in one scope; one bad file means nothing is sent.
    """
    try:
        sent = TransferStateMachine().send_many(
            db,
            file_ids=req.fileIds,
            sender=principal,
            recipients=req.recipients,
            message=req.message,
        )
    except (ArchiveError, ValueError) as e:
        logger.warning("[transfers/send] user=%s failed: %s", principal.user_id, e)
        raise to_http(e)
    return SendResponse(
        results=[
            SendResult(
                fileId=out["file_id"],
                recipientCount=out["recipient_count"],
                transactionIds=out["transaction_ids"],
            )
            for out in sent
        ]
    )


@router.post("/{transaction_id}/respond", response_model=RespondResponse)
async def respond_to_transfer(
    transaction_id: int,
    req: RespondRequest,
    db: Session = Depends(get_db),
    principal=Depends(get_current_principal),
):
    try:
        out = TransferStateMachine().respond(
            db,
            transaction_id=transaction_id,
            actor=principal,
            decision=req.action,
        )
    except (ArchiveError, ValueError) as e:
        raise to_http(e)

    return RespondResponse(
        transactionId=out["transaction_id"],
        fileId=out["file_id"],
        status=out["status"],
        coOwnershipId=out["co_ownership_id"],
    )


@router.get("/incoming", response_model=TransferListResponse)
async def incoming_transfers(
    status: Optional[str] = Query("pending"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    principal=Depends(get_current_principal),
):
    rows = TransferStateMachine().incoming(
        db, actor=principal, status=status or None, limit=limit, offset=offset
    )
    return _views(rows)


@router.get("/outgoing", response_model=TransferListResponse)
async def outgoing_transfers(
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    principal=Depends(get_current_principal),
):
    rows = TransferStateMachine().outgoing(
        db, actor=principal, status=status, limit=limit, offset=offset
    )
    return _views(rows)
