#app/services/ledger_service.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Iterator, List, Optional, Sequence

from sqlalchemy import select, update, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import ArchiveError, IntegrityViolationError
from app.models.enums import TransactionStatus, TransactionType
from app.models.transaction import Transaction

logger = logging.getLogger(__name__)

_ATOMIC_DEPTH_KEY = "ledger_atomic_depth"

# Strings written by older call sites, mapped onto the canonical vocabulary.
TYPE_ALIASES = {
    "file_upload": TransactionType.upload.value,
    "file_sent": TransactionType.send.value,
    "file_send": TransactionType.send.value,
    "sent": TransactionType.send.value,
    "file_approve": TransactionType.accept.value,
    "approve": TransactionType.accept.value,
    "approved": TransactionType.accept.value,
    "file_reject": TransactionType.deny.value,
    "reject": TransactionType.deny.value,
    "rejected": TransactionType.deny.value,
    "file_request": TransactionType.request.value,
    "file_edit": TransactionType.edit.value,
    "file_delete": TransactionType.delete.value,
    "co-ownership": TransactionType.co_ownership.value,
}

STATUS_ALIASES = {
    "approved": TransactionStatus.accepted.value,
    "rejected": TransactionStatus.denied.value,
}

_TYPES = {t.value for t in TransactionType}
_STATUSES = {s.value for s in TransactionStatus}


def _now():
    return datetime.now(timezone.utc)


def normalize_type(raw) -> str:
    value = str(getattr(raw, "value", raw) or "").strip().lower()
    if value in _TYPES:
        return value
    if value in TYPE_ALIASES:
        return TYPE_ALIASES[value]
    logger.info("[ledger] unknown transaction type %r recorded as 'other'", raw)
    return TransactionType.other.value


def normalize_status(raw) -> str:
    value = str(getattr(raw, "value", raw) or "").strip().lower()
    value = STATUS_ALIASES.get(value, value)
    if value not in _STATUSES:
        raise ValueError(f"Unknown transaction status: {raw!r}")
    return value


@dataclass(frozen=True)
class TransactionRecord:
    """
    What a caller may say about a ledger row. The timestamp is not
    part of it: the ledger stamps every row at write time.
    """
    transaction_type: str
    transaction_status: str = TransactionStatus.completed.value
    user_id: Optional[int] = None
    file_id: Optional[int] = None
    users_department_id: Optional[int] = None
    counterparty_id: Optional[int] = None
    action_kind: Optional[str] = None
    correlation_id: Optional[str] = None
    description: str = ""


class TransactionLedger:
    """
    Append-only transaction ledger.
    Single write path for the audit trail, notifications and history.
    """

    # ─────────────────────────────────────────────
    # ATOMIC SCOPE
    # ─────────────────────────────────────────────

    @contextmanager
    def atomic(self, db: Session) -> Iterator[Session]:
        """
        All rows written inside the scope commit together or not at all.

        Nested scopes join the outermost one; only the outermost commits.
        Store errors surface as IntegrityViolationError after a full rollback.
        """
        depth = db.info.get(_ATOMIC_DEPTH_KEY, 0)
        db.info[_ATOMIC_DEPTH_KEY] = depth + 1
        try:
            yield db
            if depth == 0:
                db.commit()
        except ArchiveError:
            if depth == 0:
                db.rollback()
            raise
        except SQLAlchemyError as exc:
            if depth == 0:
                db.rollback()
                logger.error("[ledger] atomic scope rolled back: %s", exc, exc_info=True)
            raise IntegrityViolationError("Ledger write failed; no rows were recorded.") from exc
        except Exception:
            if depth == 0:
                db.rollback()
                logger.error("[ledger] atomic scope rolled back", exc_info=True)
            raise
        finally:
            db.info[_ATOMIC_DEPTH_KEY] = depth

    # ─────────────────────────────────────────────
    # WRITES
    # ─────────────────────────────────────────────

    def stage(self, db: Session, record: TransactionRecord) -> Transaction:
        """
        Add one row to the current unit of work (flushed, not committed).
        """
        row = Transaction(
            user_id=record.user_id,
            file_id=record.file_id,
            users_department_id=record.users_department_id,
            counterparty_id=record.counterparty_id,
            transaction_type=normalize_type(record.transaction_type),
            transaction_status=normalize_status(record.transaction_status),
            action_kind=getattr(record.action_kind, "value", record.action_kind),
            correlation_id=record.correlation_id,
            description=record.description or "",
            transaction_time=_now(),
        )
        db.add(row)
        db.flush()
        return row

    def append(self, db: Session, record: TransactionRecord) -> int:
        with self.atomic(db):
            row = self.stage(db, record)
            transaction_id = row.id
        logger.debug(
            "[ledger] appended #%s type=%s status=%s",
            transaction_id, record.transaction_type, record.transaction_status,
        )
        return transaction_id

    def append_many(self, db: Session, records: Iterable[TransactionRecord]) -> List[int]:
        with self.atomic(db):
            ids = [self.stage(db, r).id for r in records]
        return ids

    def transition(
        self,
        db: Session,
        *,
        where: Sequence,
        from_statuses: Sequence[str],
        to_status: str,
    ) -> int:
        """
        Conditional status update on existing rows. Only rows still in one of
        from_statuses are touched; returns the number of rows changed.
        """
        result = db.execute(
            update(Transaction)
            .where(
                *where,
                Transaction.transaction_status.in_([normalize_status(s) for s in from_statuses]),
            )
            .values(
                transaction_status=normalize_status(to_status),
                status_changed_at=_now(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    # ─────────────────────────────────────────────
    # READS
    # ─────────────────────────────────────────────

    def get(self, db: Session, transaction_id: int) -> Optional[Transaction]:
        return db.get(Transaction, transaction_id)

    def list_for_file(self, db: Session, *, file_id: int, limit: int = 50) -> List[Transaction]:
        return (
            db.execute(
                select(Transaction)
                .where(Transaction.file_id == file_id)
                .order_by(desc(Transaction.transaction_time), desc(Transaction.id))
                .limit(limit)
            )
            .scalars()
            .all()
        )

    def list_for_user(
        self,
        db: Session,
        *,
        user_id: int,
        types: Optional[Sequence[str]] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Transaction]:
        stmt = select(Transaction).where(Transaction.user_id == user_id)
        if types:
            stmt = stmt.where(Transaction.transaction_type.in_([normalize_type(t) for t in types]))
        return (
            db.execute(
                stmt.order_by(desc(Transaction.transaction_time), desc(Transaction.id))
                .limit(limit)
                .offset(offset)
            )
            .scalars()
            .all()
        )
