# app/models/storage_location.py
from __future__ import annotations

from typing import Optional

from sqlalchemy import String, Integer
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class StorageLocation(Base):
    """
    One physical slot. Exclusivity (one file per slot) is not enforced here.
    """
    __tablename__ = "storage_locations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    room: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    cabinet: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    layer: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    box: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    folder: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
