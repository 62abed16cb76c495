import secrets
from typing import Optional

import httpx
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from focus_companion.core.config import settings

_bearer = HTTPBearer(auto_error=False)

def require_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer)) -> str:
    """Reject callers without the configured bearer token."""
    expected = settings.API_TOKEN
    if (
        not expected
        or credentials is None
        or not secrets.compare_digest(credentials.credentials, expected)
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return credentials.credentials

def get_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Outbound transport for upstream calls; None means the real network."""
    return None

def get_chat_client(request: Request):
    return getattr(request.app.state, "chat_client", None)
