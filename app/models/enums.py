#app/models/enums.py
from __future__ import annotations
from enum import Enum


class DepartmentType(str, Enum):
    college = "college"
    office = "office"
    sub_department = "sub_department"


class CopyType(str, Enum):
    soft = "soft"
    hard = "hard"


class FileStatus(str, Enum):
    active = "active"
    deleted = "deleted"


class TransactionType(str, Enum):
    # canonical ledger vocabulary; legacy aliases are mapped in ledger normalisation
    upload = "upload"
    send = "send"
    accept = "accept"
    deny = "deny"
    request = "request"
    scan = "scan"
    notification = "notification"
    co_ownership = "co_ownership"
    login = "login"
    digital_access = "digital_access"
    physical_request = "physical_request"
    relocation = "relocation"
    fetch_status = "fetch_status"
    edit = "edit"
    delete = "delete"
    other = "other"


class TransactionStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    accepted = "accepted"
    denied = "denied"
    read = "read"
    failed = "failed"


class ActionKind(str, Enum):
    """
    First-class history tag stored next to the free-text description.
    """
    sent = "sent"
    received = "received"
    copied = "copied"
    renamed = "renamed"
    accepted = "accepted"
    denied = "denied"
    uploaded = "uploaded"
    relocated = "relocated"
    scanned = "scanned"
    deleted = "deleted"
    logged_in = "logged_in"
    other = "other"


class TransferDecision(str, Enum):
    accept = "accept"
    deny = "deny"
