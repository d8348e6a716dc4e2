# app/services/auth_service.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.security import create_access_token, hash_password, password_needs_rehash, verify_password
from app.models.enums import ActionKind, TransactionStatus, TransactionType
from app.models.user import User, UserDepartmentAssignment
from app.policies.rbac import Principal
from app.services.ledger_service import TransactionLedger, TransactionRecord

logger = logging.getLogger(__name__)


def load_principal(db: Session, user: User) -> Principal:
    department_ids = db.execute(
        select(UserDepartmentAssignment.department_id)
        .where(UserDepartmentAssignment.user_id == user.id)
        .order_by(UserDepartmentAssignment.department_id)
    ).scalars().all()
    return Principal(
        user_id=user.id,
        username=user.username,
        department_ids=tuple(department_ids),
        display_name=user.display_name or user.username,
    )


def issue_token(principal: Principal) -> str:
    return create_access_token(
        subject=str(principal.user_id),
        claims={
            "user_id": principal.user_id,
            "username": principal.username,
            "department_ids": list(principal.department_ids),
            "display_name": principal.display_name,
        },
    )


def authenticate(
    db: Session,
    username: str,
    password: str,
    *,
    ledger: Optional[TransactionLedger] = None,
) -> Optional[Principal]:
    """
    Verify credentials. Every attempt is written to the ledger as a
    login row, completed or failed.
    """
    ledger = ledger or TransactionLedger()

    user = db.execute(
        select(User).where(User.username == username, User.is_active.is_(True))
    ).scalar_one_or_none()

    ok = user is not None and verify_password(password, user.password_hash)
    ledger.append(
        db,
        TransactionRecord(
            transaction_type=TransactionType.login.value,
            transaction_status=(TransactionStatus.completed if ok else TransactionStatus.failed).value,
            user_id=user.id if user is not None else None,
            action_kind=ActionKind.logged_in.value if ok else ActionKind.other.value,
            description=f"Login {'successful' if ok else 'failed'} for {username}",
        ),
    )

    if not ok:
        logger.info("[auth] failed login for username=%s", username)
        return None

    if password_needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        db.commit()
        logger.info("[auth] upgraded password hash for user=%s", user.id)
    return load_principal(db, user)
