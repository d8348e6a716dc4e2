# app/services/file_service.py
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.orm import Session

from app.core.errors import NotFoundError
from app.models.archive_file import ArchiveFile
from app.models.department import Department
from app.models.enums import ActionKind, CopyType, FileStatus, TransactionStatus, TransactionType
from app.models.storage_location import StorageLocation
from app.policies.file_access import require_owner, require_view
from app.policies.rbac import Principal
from app.services.ledger_service import TransactionLedger, TransactionRecord
from app.services.location_service import LocationResolver, SLOT_FIELDS
from app.services.notification_service import NotificationProjector

logger = logging.getLogger(__name__)


def _location_from(fields: Optional[Mapping[str, Any]]) -> Optional[StorageLocation]:
    if not fields:
        return None
    values = {f: (str(fields[f]).strip() or None) if fields.get(f) is not None else None for f in SLOT_FIELDS}
    if not any(values.values()):
        return None
    return StorageLocation(**values)


class FileService:
    """
    File record writers. Each mutation and its ledger rows share one scope.
    """

    def __init__(
        self,
        ledger: Optional[TransactionLedger] = None,
        resolver: Optional[LocationResolver] = None,
    ):
        self.ledger = ledger or TransactionLedger()
        self.notifications = NotificationProjector(self.ledger)
        self.resolver = resolver or LocationResolver()

    def get_file(self, db: Session, file_id: int, *, include_deleted: bool = False) -> ArchiveFile:
        file = db.get(ArchiveFile, file_id)
        if file is None or (file.is_deleted and not include_deleted):
            raise NotFoundError("File not found.")
        return file

    def get_visible_file(self, db: Session, file_id: int, *, principal: Principal) -> ArchiveFile:
        file = self.get_file(db, file_id)
        require_view(db, principal, file)
        return file

    def register_file(
        self,
        db: Session,
        *,
        owner: Principal,
        file_name: str,
        department_id: Optional[int] = None,
        sub_department_id: Optional[int] = None,
        copy_type: str = CopyType.soft.value,
        location: Optional[Mapping[str, Any]] = None,
        users_department_id: Optional[int] = None,
    ) -> ArchiveFile:
        file_name = (file_name or "").strip()
        if not file_name:
            raise ValueError("file_name is required.")
        copy_type = CopyType(copy_type).value

        with self.ledger.atomic(db):
            for dept_id in (department_id, sub_department_id):
                if dept_id and db.get(Department, dept_id) is None:
                    raise NotFoundError(f"Department {dept_id} not found.")

            loc = _location_from(location)
            if loc is not None:
                db.add(loc)
                db.flush()

            file = ArchiveFile(
                file_name=file_name,
                user_id=owner.user_id,
                department_id=department_id,
                sub_department_id=sub_department_id,
                location_id=loc.id if loc is not None else None,
                copy_type=copy_type,
                file_status=FileStatus.active.value,
            )
            db.add(file)
            db.flush()

            self.ledger.stage(
                db,
                TransactionRecord(
                    transaction_type=TransactionType.upload.value,
                    transaction_status=TransactionStatus.completed.value,
                    user_id=owner.user_id,
                    file_id=file.id,
                    users_department_id=users_department_id,
                    action_kind=ActionKind.uploaded.value,
                    description=f"Uploaded file: {file_name}",
                ),
            )
            self.notifications.notify(
                db,
                user_id=owner.user_id,
                file_id=file.id,
                message=f"Upload file successful: {file_name}",
                action_kind=ActionKind.uploaded.value,
            )

        db.refresh(file)
        logger.info("[files] user=%s registered file=%s copy_type=%s", owner.user_id, file.id, copy_type)
        return file

    def relocate(
        self,
        db: Session,
        *,
        file_id: int,
        actor: Principal,
        location: Mapping[str, Any],
    ) -> Dict[str, Any]:
        """
        Point the file at a new storage slot. The previous slot row is left in place.
        """
        with self.ledger.atomic(db):
            file = self.get_file(db, file_id)
            require_owner(actor, file)

            loc = _location_from(location)
            if loc is None:
                raise ValueError("At least one storage field is required.")
            db.add(loc)
            db.flush()

            previous = file.location_id
            file.location_id = loc.id
            if file.copy_type != CopyType.hard.value:
                file.copy_type = CopyType.hard.value

            slot = ", ".join(f"{f}={getattr(loc, f)}" for f in SLOT_FIELDS if getattr(loc, f))
            self.ledger.stage(
                db,
                TransactionRecord(
                    transaction_type=TransactionType.relocation.value,
                    transaction_status=TransactionStatus.completed.value,
                    user_id=actor.user_id,
                    file_id=file.id,
                    action_kind=ActionKind.relocated.value,
                    description=f"Relocated file '{file.file_name}' to {slot}",
                ),
            )

        logger.info("[files] user=%s relocated file=%s from location=%s", actor.user_id, file_id, previous)
        return self.resolver.get_full_location_path(db, file_id)

    def record_scan(self, db: Session, *, file_id: int, actor: Principal) -> Dict[str, Any]:
        """
        QR landing: log the scan and answer where the file is.
        """
        with self.ledger.atomic(db):
            file = self.get_file(db, file_id)
            require_view(db, actor, file)
            self.ledger.stage(
                db,
                TransactionRecord(
                    transaction_type=TransactionType.scan.value,
                    transaction_status=TransactionStatus.completed.value,
                    user_id=actor.user_id,
                    file_id=file.id,
                    action_kind=ActionKind.scanned.value,
                    description=f"Scanned QR code of file '{file.file_name}'",
                ),
            )

        location = self.resolver.get_full_location_path(db, file_id)
        if location is None:
            raise NotFoundError("File not found.")
        return location

    def soft_delete(self, db: Session, *, file_id: int, actor: Principal) -> None:
        with self.ledger.atomic(db):
            file = self.get_file(db, file_id)
            require_owner(actor, file)
            file.file_status = FileStatus.deleted.value
            self.ledger.stage(
                db,
                TransactionRecord(
                    transaction_type=TransactionType.delete.value,
                    transaction_status=TransactionStatus.completed.value,
                    user_id=actor.user_id,
                    file_id=file.id,
                    action_kind=ActionKind.deleted.value,
                    description=f"Deleted file: {file.file_name}",
                ),
            )
        logger.info("[files] user=%s deleted file=%s", actor.user_id, file_id)
