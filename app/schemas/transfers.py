from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.enums import TransferDecision


class SendRequest(BaseModel):
    """
    recipients: "user:<id>", "department:<id>" or "sub_department:<id>"
    """
    fileIds: List[int] = Field(..., min_length=1)
    recipients: List[str] = Field(..., min_length=1)
    message: str = Field(default="", max_length=1000)


class SendResult(BaseModel):
    fileId: int
    recipientCount: int
    transactionIds: List[int]


class SendResponse(BaseModel):
    results: List[SendResult]


class RespondRequest(BaseModel):
    action: TransferDecision


class RespondResponse(BaseModel):
    transactionId: int
    fileId: Optional[int] = None
    status: str
    coOwnershipId: Optional[int] = None


class TransferView(BaseModel):
    transactionId: int
    fileId: Optional[int] = None
    fileName: str
    sender: Optional[str] = None
    recipient: Optional[str] = None
    status: str
    timestampIso: str
    description: str


class TransferListResponse(BaseModel):
    transfers: List[TransferView]
