#app/core/auth_deps.py
from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.security import decode_token
from app.policies.rbac import Principal

bearer = HTTPBearer(auto_error=True)


def get_current_principal(
    request: Request,
    creds: HTTPAuthorizationCredentials = Depends(bearer),
) -> Principal:
    """
    Canonical authentication dependency.

    Guarantees:
    - JWT is valid
    - user_id and username are present
    - department_ids is a list of ints (possibly empty)
    """

    try:
        payload = decode_token(creds.credentials)
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid or expired token.")

    user_id = payload.get("user_id")
    username = payload.get("username")
    department_ids = payload.get("department_ids") or []

    if not user_id or not username:
        raise HTTPException(status_code=401, detail="Token missing required claims.")

    try:
        departments = tuple(int(d) for d in department_ids)
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid department claim in token.")

    principal = Principal(
        user_id=int(user_id),
        username=str(username),
        department_ids=departments,
        display_name=str(payload.get("display_name") or username),
    )

    # Make principal available to downstream middleware / handlers
    request.state.principal = principal

    return principal
