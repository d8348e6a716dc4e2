# app/services/notification_service.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, or_, desc
from sqlalchemy.orm import Session, aliased

from app.core.config import get_settings
from app.models.archive_file import ArchiveFile
from app.models.department import Department
from app.models.enums import ActionKind, FileStatus, TransactionStatus, TransactionType
from app.models.transaction import Transaction
from app.models.user import User, UserDepartmentAssignment
from app.services.ledger_service import TransactionLedger, TransactionRecord

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "System"
UNKNOWN_ACTION = "Unknown action"


def _renamed_to(description: str) -> str:
    _, sep, rest = description.partition(":")
    name = rest.strip() if sep else ""
    return f"Renamed to '{name or 'Unknown'}'"


def classify_description(description: Optional[str], actor: str, target: Optional[str] = None) -> str:
    """
    Fallback labelling for rows written without an action_kind.
    Total: any input yields a label.
    """
    text = (description or "").strip()
    who = target or actor
    lowered = text.lower()

    if "sent" in lowered:
        return f"Sent to {who}"
    if "received" in lowered:
        return f"Received by {who}"
    if "copied" in lowered:
        return f"Copied by {who}"
    if "renamed" in lowered:
        return _renamed_to(text)
    return text or UNKNOWN_ACTION


_KIND_LABELS = {
    ActionKind.sent.value: "Sent to {who}",
    ActionKind.received.value: "Received by {who}",
    ActionKind.copied.value: "Copied by {who}",
    ActionKind.accepted.value: "Accepted by {actor}",
    ActionKind.denied.value: "Denied by {actor}",
    ActionKind.uploaded.value: "Uploaded by {actor}",
    ActionKind.relocated.value: "Relocated by {actor}",
    ActionKind.scanned.value: "Scanned by {actor}",
    ActionKind.deleted.value: "Deleted by {actor}",
    ActionKind.logged_in.value: "Logged in",
}


def action_label(
    action_kind: Optional[str],
    description: Optional[str],
    actor: str,
    target: Optional[str] = None,
) -> str:
    if action_kind == ActionKind.renamed.value:
        return _renamed_to(description or "")
    template = _KIND_LABELS.get(action_kind or "")
    if template is None:
        # legacy row or 'other'
        return classify_description(description, actor, target)
    return template.format(who=target or actor, actor=actor)


class NotificationProjector:
    """
    Read models over the ledger: notifications and per-file history.
    """

    def __init__(self, ledger: Optional[TransactionLedger] = None):
        self.ledger = ledger or TransactionLedger()

    # ─────────────────────────────────────────────
    # WRITES
    # ─────────────────────────────────────────────

    def notify(
        self,
        db: Session,
        *,
        user_id: int,
        file_id: Optional[int],
        message: str,
        action_kind: Optional[str] = None,
        correlation_id: Optional[str] = None,
        counterparty_id: Optional[int] = None,
    ) -> int:
        with self.ledger.atomic(db):
            row = self.ledger.stage(
                db,
                TransactionRecord(
                    transaction_type=TransactionType.notification.value,
                    transaction_status=TransactionStatus.pending.value,
                    user_id=user_id,
                    file_id=file_id,
                    counterparty_id=counterparty_id,
                    action_kind=action_kind,
                    correlation_id=correlation_id,
                    description=message,
                ),
            )
            notification_id = row.id
        return notification_id

    # ─────────────────────────────────────────────
    # NOTIFICATIONS
    # ─────────────────────────────────────────────

    def _notification_filter(self, user_id: int):
        return (
            Transaction.user_id == user_id,
            Transaction.transaction_type == TransactionType.notification.value,
            or_(ArchiveFile.id.is_(None), ArchiveFile.file_status != FileStatus.deleted.value),
        )

    def list_notifications(
        self,
        db: Session,
        *,
        user_id: int,
        limit: Optional[int] = None,
        offset: int = 0,
        mark_as_read: bool = False,
        only_unread: bool = False,
    ) -> List[Dict[str, Any]]:
        """
        Newest first. With mark_as_read, exactly the fetched page flips
        pending -> read; returned statuses are as read before the flip.
        """
        if limit is None:
            limit = get_settings().notifications_page_size

        stmt = (
            select(Transaction, ArchiveFile.file_name)
            .outerjoin(ArchiveFile, Transaction.file_id == ArchiveFile.id)
            .where(*self._notification_filter(user_id))
        )
        if only_unread:
            stmt = stmt.where(Transaction.transaction_status == TransactionStatus.pending.value)

        rows = db.execute(
            stmt.order_by(desc(Transaction.transaction_time), desc(Transaction.id))
            .limit(limit)
            .offset(offset)
        ).all()

        views = [
            {
                "id": t.id,
                "file_id": t.file_id,
                "file_name": file_name or "Unknown File",
                "status": t.transaction_status,
                "timestamp": t.transaction_time,
                "message": t.description,
                "type": t.transaction_type,
                "action_kind": t.action_kind,
            }
            for t, file_name in rows
        ]

        if mark_as_read and views:
            ids = [v["id"] for v in views]
            with self.ledger.atomic(db):
                changed = self.ledger.transition(
                    db,
                    where=(
                        Transaction.id.in_(ids),
                        Transaction.transaction_type == TransactionType.notification.value,
                    ),
                    from_statuses=[TransactionStatus.pending.value],
                    to_status=TransactionStatus.read.value,
                )
            logger.debug("[notifications] user=%s marked %d of %d as read", user_id, changed, len(ids))

        return views

    def unread_count(self, db: Session, *, user_id: int) -> int:
        return db.execute(
            select(func.count())
            .select_from(Transaction)
            .outerjoin(ArchiveFile, Transaction.file_id == ArchiveFile.id)
            .where(
                *self._notification_filter(user_id),
                Transaction.transaction_status == TransactionStatus.pending.value,
            )
        ).scalar_one()

    # ─────────────────────────────────────────────
    # HISTORY
    # ─────────────────────────────────────────────

    def file_activity_history(
        self,
        db: Session,
        *,
        file_id: int,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        if limit is None:
            limit = get_settings().history_limit
        target_dept = aliased(Department)

        rows = db.execute(
            select(
                Transaction.id,
                Transaction.transaction_type,
                Transaction.transaction_status,
                Transaction.transaction_time,
                Transaction.description,
                Transaction.action_kind,
                User.username,
                target_dept.name.label("target_department"),
            )
            .select_from(Transaction)
            .outerjoin(User, Transaction.user_id == User.id)
            .outerjoin(
                UserDepartmentAssignment,
                Transaction.users_department_id == UserDepartmentAssignment.id,
            )
            .outerjoin(target_dept, UserDepartmentAssignment.department_id == target_dept.id)
            .where(Transaction.file_id == file_id)
            .order_by(desc(Transaction.transaction_time), desc(Transaction.id))
            .limit(limit)
        ).all()

        history = []
        for r in rows:
            actor = r.username or SYSTEM_ACTOR
            history.append(
                {
                    "transaction_id": r.id,
                    "actor": actor,
                    "action": action_label(r.action_kind, r.description, actor, r.target_department),
                    "type": r.transaction_type,
                    "status": r.transaction_status,
                    "timestamp": r.transaction_time,
                }
            )
        return history
