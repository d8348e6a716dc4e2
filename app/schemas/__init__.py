from app.schemas.auth import LoginRequest, TokenResponse, MeResponse
from app.schemas.files import FileRegisterRequest, FileResponse, LocationResponse, StorageSlot, HistoryResponse
from app.schemas.transfers import SendRequest, SendResponse, RespondRequest, RespondResponse, TransferListResponse
from app.schemas.notifications import NotificationListResponse, UnreadCountResponse
from app.schemas.ledger import TransactionRecordResponse, TransactionListResponse
