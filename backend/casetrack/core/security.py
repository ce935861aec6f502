# casetrack/core/security.py
"""
JWT helpers. Tokens carry the caller identity consumed by the access
resolver: ``{email, role, branch}``.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from casetrack.core.config import settings


def create_access_token(
    email: str,
    role: str = "user",
    branch: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    payload = {
        "email": email,
        "role": role,
        "branch": branch,
        "exp": expire,
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and verify a token. Raises ``jwt.PyJWTError`` on a bad signature
    or an expired token.
    """
    return jwt.decode(
        token,
        settings.JWT_SECRET_KEY,
        algorithms=[settings.JWT_ALGORITHM],
    )
