from __future__ import annotations

from typing import Optional
from fastapi import Depends, Header, HTTPException, Request, status

from ..application.chat_service import ChatService
from ..infrastructure.config.settings import AppSettings, get_settings


def get_app_settings(request: Request) -> AppSettings:
    settings = getattr(request.app.state, "settings", None)
    return settings if settings is not None else get_settings()


def get_api_key(
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
    settings: AppSettings = Depends(get_app_settings),
) -> Optional[str]:
    expected = settings.api_key
    if expected:
        # Enforce API key if configured
        if not x_api_key or x_api_key != expected:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or missing API key")
    return x_api_key


def get_chat_service(request: Request) -> ChatService:
    service = getattr(request.app.state, "chat_service", None)
    if service is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Chat service not initialized")
    return service
