"""FastAPI dependencies: the injected store, settings, and the bearer check."""

import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.logger import get_logger
from app.core.store import KeyValueStore
from trading_dashboard.settings import Settings

logger = get_logger("Auth")
security = HTTPBearer(auto_error=False)


def get_store(request: Request) -> KeyValueStore:
    return request.app.state.store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def require_bearer(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
) -> str:
    """Accept any bearer token, or only the configured anon key when one is set."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    token = credentials.credentials
    expected = settings.anon_key
    if expected and not secrets.compare_digest(token.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("Rejected request with unknown bearer token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token
