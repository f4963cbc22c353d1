from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from uniportal.access import CallerContext
from uniportal.auth import SessionProvider
from uniportal.gateway import Gateway
from uniportal.storage import LocalFileStore

bearer = HTTPBearer(auto_error=False)


def get_gateway(request: Request) -> Gateway:
    return request.app.state.gateway


def get_sessions(request: Request) -> SessionProvider:
    return request.app.state.sessions


def get_file_store(request: Request) -> LocalFileStore:
    return request.app.state.file_store


def get_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer)) -> Optional[str]:
    return credentials.credentials if credentials else None


def get_caller(
    token: Optional[str] = Depends(get_token),
    sessions: SessionProvider = Depends(get_sessions),
) -> CallerContext:
    """Resolve the bearer token into the caller context every gateway call needs."""
    caller = sessions.current_user(token)
    if caller is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="not signed in",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return caller


def get_idempotency_key(idempotency_key: Optional[str] = Header(default=None)) -> Optional[str]:
    return idempotency_key
