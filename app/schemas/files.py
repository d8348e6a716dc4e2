from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.enums import CopyType


class StorageSlot(BaseModel):
    room: Optional[str] = Field(default=None, max_length=64)
    cabinet: Optional[str] = Field(default=None, max_length=64)
    layer: Optional[str] = Field(default=None, max_length=64)
    box: Optional[str] = Field(default=None, max_length=64)
    folder: Optional[str] = Field(default=None, max_length=64)


class FileRegisterRequest(BaseModel):
    """
    Registers an already-stored file (bytes are handled elsewhere).
    """
    fileName: str = Field(..., min_length=1, max_length=255)
    departmentId: Optional[int] = Field(default=None, ge=1)
    subDepartmentId: Optional[int] = Field(default=None, ge=1)
    copyType: CopyType = CopyType.soft
    location: Optional[StorageSlot] = None


class FileResponse(BaseModel):
    fileId: int
    fileName: str
    ownerId: int
    departmentId: Optional[int] = None
    subDepartmentId: Optional[int] = None
    copyType: str
    fileStatus: str
    uploadedAtIso: Optional[str] = None


class LocationDetails(BaseModel):
    department: Optional[str] = None
    room: Optional[str] = None
    cabinet: Optional[str] = None
    layer: Optional[str] = None
    box: Optional[str] = None
    folder: Optional[str] = None


class LocationResponse(BaseModel):
    fileId: int
    path: str
    details: LocationDetails


class StorageSuggestionResponse(BaseModel):
    departmentId: int
    suggestion: StorageSlot


class HistoryEntry(BaseModel):
    transactionId: int
    actor: str
    action: str
    type: str
    status: str
    timestampIso: str


class HistoryResponse(BaseModel):
    fileId: int
    history: List[HistoryEntry]
