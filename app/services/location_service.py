# app/services/location_service.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy import select, desc
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.models.archive_file import ArchiveFile
from app.models.enums import CopyType, FileStatus
from app.models.storage_location import StorageLocation
from app.services.department_tree import DepartmentTree

logger = logging.getLogger(__name__)

SLOT_FIELDS = ("room", "cabinet", "layer", "box", "folder")

DEFAULT_SUGGESTION = {"cabinet": "A", "layer": "1", "box": "1", "folder": "1"}


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


class LocationResolver:
    """
    Answers "where is this file": department path + physical slot.
    Independent of the ledger.
    """

    def __init__(self, tree: Optional[DepartmentTree] = None, separator: Optional[str] = None):
        self.tree = tree or DepartmentTree()
        self.separator = separator if separator is not None else get_settings().location_separator

    def get_full_location_path(self, db: Session, file_id: int) -> Optional[Dict[str, Any]]:
        """
        Returns {"path": str, "details": {...}} or None when the file does not exist.

        details always carries department, room, cabinet, layer, box, folder;
        path skips empty components.
        """
        row = db.execute(
            select(
                ArchiveFile.department_id,
                ArchiveFile.sub_department_id,
                StorageLocation.room,
                StorageLocation.cabinet,
                StorageLocation.layer,
                StorageLocation.box,
                StorageLocation.folder,
            )
            .select_from(ArchiveFile)
            .outerjoin(StorageLocation, ArchiveFile.location_id == StorageLocation.id)
            .where(ArchiveFile.id == file_id)
        ).first()

        if row is None:
            return None

        department_path = self.tree.resolve_path_string(
            db,
            department_id=row.department_id,
            sub_department_id=row.sub_department_id,
        )

        details: Dict[str, Any] = {"department": department_path or None}
        for f in SLOT_FIELDS:
            details[f] = _text(getattr(row, f))

        components = [details["department"]] + [details[f] for f in SLOT_FIELDS]
        path = self.separator.join(c for c in components if c)

        return {"path": path, "details": details}

    def suggest_storage(self, db: Session, *, department_id: int) -> Dict[str, str]:
        """
        Next slot for a hard copy in this department: the slot of the most
        recent active hard copy with the folder number advanced by one.
        """
        loc = db.execute(
            select(StorageLocation)
            .join(ArchiveFile, ArchiveFile.location_id == StorageLocation.id)
            .where(
                ArchiveFile.department_id == department_id,
                ArchiveFile.copy_type == CopyType.hard.value,
                ArchiveFile.file_status != FileStatus.deleted.value,
            )
            .order_by(desc(ArchiveFile.uploaded_at), desc(ArchiveFile.id))
            .limit(1)
        ).scalar_one_or_none()

        if loc is None:
            return dict(DEFAULT_SUGGESTION)

        suggestion = {
            "cabinet": _text(loc.cabinet) or DEFAULT_SUGGESTION["cabinet"],
            "layer": _text(loc.layer) or DEFAULT_SUGGESTION["layer"],
            "box": _text(loc.box) or DEFAULT_SUGGESTION["box"],
        }
        if loc.room:
            suggestion["room"] = _text(loc.room)

        try:
            suggestion["folder"] = str(int(loc.folder) + 1)
        except (TypeError, ValueError):
            # non-numeric folder labels cannot be advanced
            logger.info("[location] folder %r of location %s is not numeric", loc.folder, loc.id)
            suggestion["folder"] = DEFAULT_SUGGESTION["folder"]

        return suggestion
