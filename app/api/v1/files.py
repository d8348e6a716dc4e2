# app/api/v1/files.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.auth_deps import get_current_principal
from app.core.errors import ArchiveError, NotFoundError, to_http
from app.db.session import get_db
from app.models.archive_file import ArchiveFile
from app.schemas.files import (
    FileRegisterRequest,
    FileResponse,
    HistoryEntry,
    HistoryResponse,
    LocationResponse,
    StorageSlot,
    StorageSuggestionResponse,
)
from app.services.file_service import FileService
from app.services.location_service import LocationResolver
from app.services.notification_service import NotificationProjector

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files")


def _iso(dt):
    return dt.isoformat() if dt else None


def _file_to_schema(f: ArchiveFile) -> FileResponse:
    return FileResponse(
        fileId=f.id,
        fileName=f.file_name,
        ownerId=f.user_id,
        departmentId=f.department_id,
        subDepartmentId=f.sub_department_id,
        copyType=f.copy_type,
        fileStatus=f.file_status,
        uploadedAtIso=_iso(f.uploaded_at),
    )


def _location_to_schema(file_id: int, loc: dict) -> LocationResponse:
    return LocationResponse(fileId=file_id, path=loc["path"], details=loc["details"])


# ─────────────────────────────────────────────────────────────
# REGISTER
# ─────────────────────────────────────────────────────────────

@router.post("", response_model=FileResponse, status_code=201)
async def register_file(
    req: FileRegisterRequest,
    db: Session = Depends(get_db),
    principal=Depends(get_current_principal),
):
    try:
        f = FileService().register_file(
            db,
            owner=principal,
            file_name=req.fileName,
            department_id=req.departmentId,
            sub_department_id=req.subDepartmentId,
            copy_type=req.copyType.value,
            location=req.location.model_dump() if req.location else None,
        )
    except (ArchiveError, ValueError) as e:
        raise to_http(e)
    return _file_to_schema(f)


@router.get("/storage-suggestion", response_model=StorageSuggestionResponse)
async def storage_suggestion(
    departmentId: int = Query(..., ge=1),
    db: Session = Depends(get_db),
    _principal=Depends(get_current_principal),
):
    suggestion = LocationResolver().suggest_storage(db, department_id=departmentId)
    return StorageSuggestionResponse(departmentId=departmentId, suggestion=StorageSlot(**suggestion))


@router.get("/{file_id}", response_model=FileResponse)
async def get_file(
    file_id: int,
    db: Session = Depends(get_db),
    principal=Depends(get_current_principal),
):
    try:
        f = FileService().get_visible_file(db, file_id, principal=principal)
    except ArchiveError as e:
        raise to_http(e)
    return _file_to_schema(f)


@router.delete("/{file_id}", status_code=204)
async def delete_file(
    file_id: int,
    db: Session = Depends(get_db),
    principal=Depends(get_current_principal),
):
    try:
        FileService().soft_delete(db, file_id=file_id, actor=principal)
    except ArchiveError as e:
        raise to_http(e)


# ─────────────────────────────────────────────────────────────
# LOCATION
# ─────────────────────────────────────────────────────────────

@router.get("/{file_id}/location", response_model=LocationResponse)
async def get_location(
    file_id: int,
    db: Session = Depends(get_db),
    principal=Depends(get_current_principal),
):
    try:
        FileService().get_visible_file(db, file_id, principal=principal)
        loc = LocationResolver().get_full_location_path(db, file_id)
        if loc is None:
            raise NotFoundError("File not found.")
    except ArchiveError as e:
        raise to_http(e)
    return _location_to_schema(file_id, loc)


@router.put("/{file_id}/location", response_model=LocationResponse)
async def relocate_file(
    file_id: int,
    req: StorageSlot,
    db: Session = Depends(get_db),
    principal=Depends(get_current_principal),
):
    try:
        loc = FileService().relocate(db, file_id=file_id, actor=principal, location=req.model_dump())
    except (ArchiveError, ValueError) as e:
        raise to_http(e)
    return _location_to_schema(file_id, loc)


@router.post("/{file_id}/scan", response_model=LocationResponse)
async def scan_file(
    file_id: int,
    db: Session = Depends(get_db),
    principal=Depends(get_current_principal),
):
    """
    QR scan landing: logs the scan, returns where the file is.
    """
    try:
        loc = FileService().record_scan(db, file_id=file_id, actor=principal)
    except ArchiveError as e:
        raise to_http(e)
    logger.info("[files/scan] user=%s file=%s", principal.user_id, file_id)
    return _location_to_schema(file_id, loc)


# ─────────────────────────────────────────────────────────────
# HISTORY
# ─────────────────────────────────────────────────────────────

@router.get("/{file_id}/history", response_model=HistoryResponse)
async def file_history(
    file_id: int,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    principal=Depends(get_current_principal),
):
    try:
        FileService().get_visible_file(db, file_id, principal=principal)
    except ArchiveError as e:
        raise to_http(e)

    entries = NotificationProjector().file_activity_history(db, file_id=file_id, limit=limit)
    return HistoryResponse(
        fileId=file_id,
        history=[
            HistoryEntry(
                transactionId=e["transaction_id"],
                actor=e["actor"],
                action=e["action"],
                type=e["type"],
                status=e["status"],
                timestampIso=_iso(e["timestamp"]),
            )
            for e in entries
        ],
    )
