#app/api/v1/auth.py
from __future__ import annotations

from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.orm import Session

from app.core.auth_deps import get_current_principal
from app.db.session import get_db
from app.schemas.auth import LoginRequest, TokenResponse, MeResponse
from app.services.auth_service import authenticate, issue_token

router = APIRouter(prefix="/auth")


@router.post("/login", response_model=TokenResponse)
async def login(req: LoginRequest, db: Session = Depends(get_db)):
    principal = authenticate(db, req.username, req.password)
    if not principal:
        raise HTTPException(status_code=401, detail="Invalid credentials.")
    return TokenResponse(access_token=issue_token(principal))


@router.get("/me", response_model=MeResponse)
def get_me(principal=Depends(get_current_principal)):
    return MeResponse(
        userId=principal.user_id,
        username=principal.username,
        displayName=principal.display_name,
        departmentIds=list(principal.department_ids),
    )
