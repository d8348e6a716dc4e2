from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel


class NotificationView(BaseModel):
    id: int
    fileId: Optional[int] = None
    fileName: str
    status: str
    timestampIso: str
    message: str
    type: str
    actionKind: Optional[str] = None


class NotificationListResponse(BaseModel):
    notifications: List[NotificationView]


class UnreadCountResponse(BaseModel):
    unread: int
