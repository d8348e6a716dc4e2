from fastapi import APIRouter

from app.api.v1.health import router as health_router
from app.api.v1.auth import router as auth_router
from app.api.v1.files import router as files_router
from app.api.v1.transfers import router as transfers_router
from app.api.v1.notifications import router as notifications_router
from app.api.v1.ledger import router as ledger_router


v1_router = APIRouter()

# ------------------------------------------------------------------
# SYSTEM / CORE
# ------------------------------------------------------------------
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(auth_router, tags=["auth"])

# ------------------------------------------------------------------
# FILES / LOCATION
# ------------------------------------------------------------------
v1_router.include_router(files_router, tags=["files"])

# ------------------------------------------------------------------
# TRANSFERS / NOTIFICATIONS
# ------------------------------------------------------------------
v1_router.include_router(transfers_router, tags=["transfers"])
v1_router.include_router(notifications_router, tags=["notifications"])

# ------------------------------------------------------------------
# LEDGER (SOURCE OF TRUTH)
# ------------------------------------------------------------------
v1_router.include_router(ledger_router, tags=["ledger"])
