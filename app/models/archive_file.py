# app/models/archive_file.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, Integer, ForeignKey, Index, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.enums import CopyType, FileStatus


class ArchiveFile(Base):
    """
    Archived document. Never hard-deleted; file_status flips to 'deleted'.
    """
    __tablename__ = "files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    file_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # owner (uploader)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )

    department_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("departments.id", ondelete="SET NULL"), nullable=True
    )
    sub_department_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("departments.id", ondelete="SET NULL"), nullable=True
    )
    location_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("storage_locations.id", ondelete="SET NULL"), nullable=True
    )

    copy_type: Mapped[str] = mapped_column(
        String(16), nullable=False, server_default=text(f"'{CopyType.soft.value}'")
    )
    file_status: Mapped[str] = mapped_column(
        String(16), nullable=False, server_default=text(f"'{FileStatus.active.value}'")
    )

    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    location = relationship("StorageLocation")

    __table_args__ = (
        Index("ix_files_owner", "user_id"),
        Index("ix_files_department", "department_id", "copy_type", "file_status"),
    )

    @property
    def is_deleted(self) -> bool:
        return self.file_status == FileStatus.deleted.value
