# app/api/v1/notifications.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.auth_deps import get_current_principal
from app.core.errors import ArchiveError, to_http
from app.db.session import get_db
from app.schemas.notifications import NotificationListResponse, NotificationView, UnreadCountResponse
from app.services.notification_service import NotificationProjector

router = APIRouter(prefix="/notifications")


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    limit: int = Query(5, ge=1, le=100),
    offset: int = Query(0, ge=0),
    markAsRead: bool = Query(False),
    onlyUnread: bool = Query(False),
    db: Session = Depends(get_db),
    principal=Depends(get_current_principal),
):
    try:
        rows = NotificationProjector().list_notifications(
            db,
            user_id=principal.user_id,
            limit=limit,
            offset=offset,
            mark_as_read=markAsRead,
            only_unread=onlyUnread,
        )
    except ArchiveError as e:
        raise to_http(e)

    return NotificationListResponse(
        notifications=[
            NotificationView(
                id=r["id"],
                fileId=r["file_id"],
                fileName=r["file_name"],
                status=r["status"],
                timestampIso=r["timestamp"].isoformat(),
                message=r["message"],
                type=r["type"],
                actionKind=r["action_kind"],
            )
            for r in rows
        ]
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    db: Session = Depends(get_db),
    principal=Depends(get_current_principal),
):
    return UnreadCountResponse(unread=NotificationProjector().unread_count(db, user_id=principal.user_id))
