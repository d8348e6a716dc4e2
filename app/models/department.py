# app/models/department.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, Integer, ForeignKey, Index, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.enums import DepartmentType


class Department(Base):
    """
    Node of the department forest. Colleges/offices are roots,
    sub-departments point at their parent.
    """
    __tablename__ = "departments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(
        String(32), nullable=False, server_default=text(f"'{DepartmentType.college.value}'")
    )

    # not enforced acyclic at the DB level; path resolution is bounded instead
    parent_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("departments.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    parent = relationship("Department", remote_side="Department.id")

    __table_args__ = (
        Index("ix_departments_parent", "parent_id"),
        Index("ix_departments_type", "type"),
    )
