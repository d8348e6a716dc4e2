# app/models/transaction.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, Integer, Text, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class Transaction(Base):
    """
    Ledger row. Append-only: rows are never deleted, and the only
    permitted mutation is a status transition on the existing row.

    transaction_time is the server write time and never changes;
    status_changed_at records the last transition.
    """
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # the user the row is about / addressed to (recipient for send + notification)
    user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    file_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("files.id", ondelete="SET NULL"), nullable=True
    )
    users_department_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("user_department_assignments.id", ondelete="SET NULL"), nullable=True
    )
    # other party of a two-party row (sender on a send row)
    counterparty_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    transaction_type: Mapped[str] = mapped_column(String(32), nullable=False)
    transaction_status: Mapped[str] = mapped_column(String(16), nullable=False)

    action_kind: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    correlation_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    transaction_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status_changed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_transactions_user_type_status", "user_id", "transaction_type", "transaction_status"),
        Index("ix_transactions_file_time", "file_id", "transaction_time"),
        Index("ix_transactions_correlation", "correlation_id"),
        Index("ix_transactions_time", "transaction_time"),
    )
