from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel


class TransactionRecordResponse(BaseModel):
    """
    Raw ledger row (append-only; status may have transitioned).
    """
    id: int
    userId: Optional[int] = None
    fileId: Optional[int] = None
    usersDepartmentId: Optional[int] = None
    counterpartyId: Optional[int] = None
    type: str
    status: str
    actionKind: Optional[str] = None
    correlationId: Optional[str] = None
    description: str
    timestampIso: str
    statusChangedAtIso: Optional[str] = None


class TransactionListResponse(BaseModel):
    fileId: int
    records: List[TransactionRecordResponse]
