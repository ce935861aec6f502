# casetrack/api/v1/deps.py

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt

from casetrack.core.security import decode_access_token
from casetrack.db.models import UserRole
from casetrack.services.access import Caller

security = HTTPBearer(auto_error=False)

# ============================================================================
# JWT Dependency
# ============================================================================

def get_current_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    x_access_token: Optional[str] = Header(default=None),
) -> Caller:
    """
    Resolve the caller from a bearer token (or the legacy x-access-token
    header). Claims used: email, role, branch.
    """
    token = credentials.credentials if credentials else x_access_token
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token provided"
        )

    try:
        payload = decode_access_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired"
        )
    except jwt.PyJWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )

    email = (payload.get("email") or "").strip()
    if not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User email not found in token"
        )

    role = UserRole.admin if str(payload.get("role") or "").lower() == "admin" else UserRole.user
    return Caller(email=email, role=role, branch=payload.get("branch") or None)


def get_source_address(request: Request) -> Optional[str]:
    return request.client.host if request.client else None
