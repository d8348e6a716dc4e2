# app/policies/file_access.py
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.errors import UnauthorizedError
from app.models.archive_file import ArchiveFile
from app.models.enums import TransactionStatus, TransactionType
from app.models.transaction import Transaction
from app.policies.rbac import Principal


def is_owner(principal: Principal, file: ArchiveFile) -> bool:
    return file.user_id == principal.user_id


def is_co_owner(db: Session, principal: Principal, file: ArchiveFile) -> bool:
    return (
        db.execute(
            select(Transaction.id).where(
                Transaction.file_id == file.id,
                Transaction.user_id == principal.user_id,
                Transaction.transaction_type == TransactionType.co_ownership.value,
                Transaction.transaction_status == TransactionStatus.completed.value,
            ).limit(1)
        ).first()
        is not None
    )


def can_view(db: Session, principal: Principal, file: ArchiveFile) -> bool:
    """
    Row visibility: owner, co-owner, or member of the file's
    department / sub-department.
    """
    if is_owner(principal, file):
        return True
    if principal.in_department(file.department_id) or principal.in_department(file.sub_department_id):
        return True
    return is_co_owner(db, principal, file)


def can_send(db: Session, principal: Principal, file: ArchiveFile) -> bool:
    return is_owner(principal, file) or is_co_owner(db, principal, file)


def require_view(db: Session, principal: Principal, file: ArchiveFile) -> None:
    if not can_view(db, principal, file):
        raise UnauthorizedError("You do not have access to this file.")


def require_owner(principal: Principal, file: ArchiveFile) -> None:
    if not is_owner(principal, file):
        raise UnauthorizedError("Only the file owner may perform this action.")
