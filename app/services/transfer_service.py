# app/services/transfer_service.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from sqlalchemy import select, or_, desc
from sqlalchemy.orm import Session, aliased

from app.core.errors import NotFoundError, UnauthorizedError
from app.models.archive_file import ArchiveFile
from app.models.department import Department
from app.models.enums import ActionKind, TransactionStatus, TransactionType, TransferDecision
from app.models.transaction import Transaction
from app.models.user import User, UserDepartmentAssignment
from app.policies.file_access import can_send
from app.policies.rbac import Principal
from app.services.ledger_service import TransactionLedger, TransactionRecord
from app.services.notification_service import NotificationProjector

logger = logging.getLogger(__name__)

RECIPIENT_KINDS = ("user", "department", "sub_department")


@dataclass(frozen=True)
class Recipient:
    kind: str
    id: int

    @classmethod
    def parse(cls, raw: Union[str, "Recipient"]) -> "Recipient":
        """
        "user:12", "department:3" or "sub_department:7".
        """
        if isinstance(raw, Recipient):
            return raw
        kind, sep, ident = str(raw).partition(":")
        if not sep or kind not in RECIPIENT_KINDS or not ident.isdigit():
            raise ValueError(f"Invalid recipient: {raw!r}")
        return cls(kind=kind, id=int(ident))


class TransferStateMachine:
    """
    File transfer lifecycle.

        NONE -> SENT(pending) -> ACCEPTED | DENIED

    ACCEPTED and DENIED are terminal. Every transition is one
    ledger scope: it commits in full or leaves the row pending.
    """

    def __init__(
        self,
        ledger: Optional[TransactionLedger] = None,
        notifications: Optional[NotificationProjector] = None,
    ):
        self.ledger = ledger or TransactionLedger()
        self.notifications = notifications or NotificationProjector(self.ledger)

    # ─────────────────────────────────────────────
    # INTERNAL HELPERS
    # ─────────────────────────────────────────────

    def _get_active_file(self, db: Session, file_id: int) -> ArchiveFile:
        file = db.get(ArchiveFile, file_id)
        if file is None or file.is_deleted:
            raise NotFoundError("File not found.")
        return file

    def _resolve_targets(
        self,
        db: Session,
        recipients: Sequence[Recipient],
        *,
        sender_id: int,
    ) -> List[Tuple[int, Optional[int]]]:
        """
        Expand recipients to (user_id, users_department_id) pairs, one per user.
        Departments fan out to every assigned member.
        """
        targets: List[Tuple[int, Optional[int]]] = []
        seen = set()

        for r in recipients:
            if r.kind == "user":
                if db.get(User, r.id) is None:
                    raise NotFoundError(f"Recipient user {r.id} not found.")
                members = [(r.id, None)]
            else:
                if db.get(Department, r.id) is None:
                    raise NotFoundError(f"Recipient department {r.id} not found.")
                members = [
                    (a.user_id, a.id)
                    for a in db.execute(
                        select(UserDepartmentAssignment)
                        .where(UserDepartmentAssignment.department_id == r.id)
                        .order_by(UserDepartmentAssignment.id)
                    ).scalars()
                ]

            for user_id, assignment_id in members:
                if user_id == sender_id or user_id in seen:
                    continue
                seen.add(user_id)
                targets.append((user_id, assignment_id))

        return targets

    def _scope_to_actor(self, actor: Principal):
        dept_assignments = select(UserDepartmentAssignment.id).where(
            UserDepartmentAssignment.department_id.in_(actor.department_ids or (-1,))
        )
        return or_(
            Transaction.user_id == actor.user_id,
            Transaction.users_department_id.in_(dept_assignments),
        )

    def _settle_department_siblings(
        self,
        db: Session,
        send_row: Transaction,
        new_status: str,
    ) -> List[Transaction]:
        """
        A department send is one transfer fanned out per member; answering any
        member's row answers the department. Moves the other pending rows of
        the same send (same file, sender and department) to new_status.
        """
        department_id = db.execute(
            select(UserDepartmentAssignment.department_id).where(
                UserDepartmentAssignment.id == send_row.users_department_id
            )
        ).scalar_one_or_none()
        if department_id is None:
            return []

        siblings = db.execute(
            select(Transaction)
            .where(
                Transaction.id != send_row.id,
                Transaction.file_id == send_row.file_id,
                Transaction.counterparty_id == send_row.counterparty_id,
                Transaction.transaction_type == TransactionType.send.value,
                Transaction.transaction_status == TransactionStatus.pending.value,
                Transaction.users_department_id.in_(
                    select(UserDepartmentAssignment.id).where(
                        UserDepartmentAssignment.department_id == department_id
                    )
                ),
            )
            .with_for_update()
        ).scalars().all()
        if not siblings:
            return []

        self.ledger.transition(
            db,
            where=(Transaction.id.in_([s.id for s in siblings]),),
            from_statuses=[TransactionStatus.pending.value],
            to_status=new_status,
        )
        logger.debug(
            "[transfer] send #%s settled %d sibling row(s) in department %s",
            send_row.id, len(siblings), department_id,
        )
        return list(siblings)

    def _settle_notification(self, db: Session, send_row: Transaction, new_status: str) -> int:
        if send_row.correlation_id:
            where = (Transaction.correlation_id == send_row.correlation_id,)
        else:
            # legacy rows: only the "received" notice from the same sender
            received = Transaction.action_kind == ActionKind.received.value
            where = (
                Transaction.file_id == send_row.file_id,
                Transaction.user_id == send_row.user_id,
                or_(received, Transaction.counterparty_id == send_row.counterparty_id)
                if send_row.counterparty_id
                else received,
            )
        return self.ledger.transition(
            db,
            where=(*where, Transaction.transaction_type == TransactionType.notification.value),
            from_statuses=[TransactionStatus.pending.value, TransactionStatus.read.value],
            to_status=new_status,
        )

    # ─────────────────────────────────────────────
    # SEND
    # ─────────────────────────────────────────────

    def send(
        self,
        db: Session,
        *,
        file_id: int,
        sender: Principal,
        recipients: Sequence[Union[str, Recipient]],
        message: str = "",
    ) -> Dict[str, Any]:
        """
        One send/pending row plus one notification/pending row per recipient,
        all written in a single scope.
        """
        parsed = [Recipient.parse(r) for r in recipients]
        if not parsed:
            raise ValueError("No recipients selected.")

        note = f" with message: {message}" if message else ""
        sent_ids: List[int] = []

        with self.ledger.atomic(db):
            file = self._get_active_file(db, file_id)
            if not can_send(db, sender, file):
                raise UnauthorizedError("Only the owner or a co-owner may send this file.")

            targets = self._resolve_targets(db, parsed, sender_id=sender.user_id)
            if not targets:
                raise ValueError("No valid recipients selected.")

            for user_id, assignment_id in targets:
                correlation_id = uuid.uuid4().hex
                row = self.ledger.stage(
                    db,
                    TransactionRecord(
                        transaction_type=TransactionType.send.value,
                        transaction_status=TransactionStatus.pending.value,
                        user_id=user_id,
                        file_id=file.id,
                        users_department_id=assignment_id,
                        counterparty_id=sender.user_id,
                        action_kind=ActionKind.sent.value,
                        correlation_id=correlation_id,
                        description=f"File '{file.file_name}' sent for review by {sender.username}{note}",
                    ),
                )
                sent_ids.append(row.id)
                self.notifications.notify(
                    db,
                    user_id=user_id,
                    file_id=file.id,
                    message=(
                        f"You have received a file '{file.file_name}' from {sender.username} for review."
                        + (f" Message: {message}" if message else "")
                    ),
                    action_kind=ActionKind.received.value,
                    correlation_id=correlation_id,
                    counterparty_id=sender.user_id,
                )

        logger.info(
            "[transfer] user=%s sent file=%s to %d recipient(s)",
            sender.user_id, file_id, len(sent_ids),
        )
        return {
            "file_id": file_id,
            "recipient_count": len(sent_ids),
            "transaction_ids": sent_ids,
        }

    def send_many(
        self,
        db: Session,
        *,
        file_ids: Sequence[int],
        sender: Principal,
        recipients: Sequence[Union[str, Recipient]],
        message: str = "",
    ) -> List[Dict[str, Any]]:
        """
        Send several files as one unit: every file's fan-out commits
        together, or none does.
        """
        with self.ledger.atomic(db):
            results = [
                self.send(db, file_id=file_id, sender=sender, recipients=recipients, message=message)
                for file_id in dict.fromkeys(file_ids)
            ]
        return results

    # ─────────────────────────────────────────────
    # RESPOND
    # ─────────────────────────────────────────────

    def respond(
        self,
        db: Session,
        *,
        transaction_id: int,
        actor: Principal,
        decision: Union[str, TransferDecision],
    ) -> Dict[str, Any]:
        """
        Accept or deny a pending transfer addressed to the actor (or to
        one of the actor's departments).

        The pending row is locked and moved with a conditional update, so of
        two concurrent calls exactly one transitions it; the other gets
        NotFoundError. Any failure leaves the row pending.

        Answering a department row answers the department: the other
        members' pending rows of the same send move with it.
        """
        decision = TransferDecision(getattr(decision, "value", decision))
        accepted = decision == TransferDecision.accept
        new_status = TransactionStatus.accepted.value if accepted else TransactionStatus.denied.value
        kind = ActionKind.accepted.value if accepted else ActionKind.denied.value
        verb = "accepted" if accepted else "denied"
        co_ownership_id = None

        with self.ledger.atomic(db):
            send_row = db.execute(
                select(Transaction)
                .where(
                    Transaction.id == transaction_id,
                    Transaction.transaction_type == TransactionType.send.value,
                    Transaction.transaction_status == TransactionStatus.pending.value,
                    self._scope_to_actor(actor),
                )
                .with_for_update()
            ).scalar_one_or_none()
            if send_row is None:
                raise NotFoundError("No pending transfer found.")

            changed = self.ledger.transition(
                db,
                where=(Transaction.id == send_row.id,),
                from_statuses=[TransactionStatus.pending.value],
                to_status=new_status,
            )
            if changed != 1:
                # another request resolved it between read and update
                raise NotFoundError("No pending transfer found.")

            settled = [send_row]
            if send_row.users_department_id:
                settled += self._settle_department_siblings(db, send_row, new_status)

            for row in settled:
                self._settle_notification(db, row, new_status)

            file = db.get(ArchiveFile, send_row.file_id) if send_row.file_id else None
            file_name = file.file_name if file else "Unknown File"

            if accepted:
                co_ownership_id = self.ledger.stage(
                    db,
                    TransactionRecord(
                        transaction_type=TransactionType.co_ownership.value,
                        transaction_status=TransactionStatus.completed.value,
                        user_id=actor.user_id,
                        file_id=send_row.file_id,
                        action_kind=ActionKind.other.value,
                        correlation_id=send_row.correlation_id,
                        description=f"Co-ownership granted to {actor.username} for file '{file_name}'",
                    ),
                ).id

            self.ledger.stage(
                db,
                TransactionRecord(
                    transaction_type=decision.value,
                    transaction_status=TransactionStatus.completed.value,
                    user_id=actor.user_id,
                    file_id=send_row.file_id,
                    users_department_id=send_row.users_department_id,
                    counterparty_id=send_row.counterparty_id,
                    action_kind=kind,
                    correlation_id=send_row.correlation_id,
                    description=f"{verb.capitalize()} file: {file_name}",
                ),
            )

            if send_row.counterparty_id:
                self.notifications.notify(
                    db,
                    user_id=send_row.counterparty_id,
                    file_id=send_row.file_id,
                    message=f"Your file '{file_name}' was {verb} by {actor.username}",
                    action_kind=kind,
                    correlation_id=send_row.correlation_id,
                    counterparty_id=actor.user_id,
                )

            file_id = send_row.file_id

        logger.info("[transfer] user=%s %s transfer #%s", actor.user_id, verb, transaction_id)
        return {
            "transaction_id": transaction_id,
            "file_id": file_id,
            "status": new_status,
            "co_ownership_id": co_ownership_id,
        }

    # ─────────────────────────────────────────────
    # READS
    # ─────────────────────────────────────────────

    def _list(self, db: Session, where, limit: int, offset: int) -> List[Dict[str, Any]]:
        sender = aliased(User)
        recipient = aliased(User)
        rows = db.execute(
            select(Transaction, ArchiveFile.file_name, sender.username, recipient.username)
            .outerjoin(ArchiveFile, Transaction.file_id == ArchiveFile.id)
            .outerjoin(sender, Transaction.counterparty_id == sender.id)
            .outerjoin(recipient, Transaction.user_id == recipient.id)
            .where(Transaction.transaction_type == TransactionType.send.value, *where)
            .order_by(desc(Transaction.transaction_time), desc(Transaction.id))
            .limit(limit)
            .offset(offset)
        ).all()
        return [
            {
                "transaction_id": t.id,
                "file_id": t.file_id,
                "file_name": file_name or "Unknown File",
                "sender": sender_name,
                "recipient": recipient_name,
                "status": t.transaction_status,
                "timestamp": t.transaction_time,
                "description": t.description,
            }
            for t, file_name, sender_name, recipient_name in rows
        ]

    def incoming(
        self,
        db: Session,
        *,
        actor: Principal,
        status: Optional[str] = TransactionStatus.pending.value,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        where = [self._scope_to_actor(actor)]
        if status:
            where.append(Transaction.transaction_status == status)
        return self._list(db, where, limit, offset)

    def outgoing(
        self,
        db: Session,
        *,
        actor: Principal,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        where = [Transaction.counterparty_id == actor.user_id]
        if status:
            where.append(Transaction.transaction_status == status)
        return self._list(db, where, limit, offset)
