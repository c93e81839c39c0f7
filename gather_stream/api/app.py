from __future__ import annotations

import contextlib
import logging
import time
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv, find_dotenv

from .router_v1 import router as router_v1
from .. import __version__
from ..application.chat_service import ChatService
from ..infrastructure.config.settings import AppSettings, get_settings


def load_env_files() -> None:
    """Load the closest .env.local then .env (searching upward from cwd)."""
    path_local = find_dotenv('.env.local', usecwd=True)
    if path_local:
        load_dotenv(path_local, override=True)
    path_default = find_dotenv('.env', usecwd=True)
    if path_default:
        # Do not override values already loaded from .env.local or process env
        load_dotenv(path_default, override=False)


def create_app(
    settings: Optional[AppSettings] = None,
    chat_service: Optional[ChatService] = None,
) -> FastAPI:
    """Build the API app; a prebuilt ``chat_service`` skips provider wiring."""
    if settings is None:
        load_env_files()
        settings = get_settings()

    logger = logging.getLogger("gather_stream.api")

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if getattr(app.state, "chat_service", None) is None:
            owned = ChatService.from_settings(settings)
            app.state.chat_service = owned
        missing = settings.validate_required_settings()
        if missing:
            logger.warning(f"Missing required settings: {', '.join(missing)}")
        try:
            yield
        finally:
            if owned is not None:
                await owned.aclose()

    app = FastAPI(title="Gather Stream API", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.chat_service = chat_service

    if settings.cors_origin_list:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origin_list,
            allow_credentials=False,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def request_logger(request: Request, call_next):
        start = time.perf_counter()
        status = "NA"
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            dur_ms = (time.perf_counter() - start) * 1000.0
            logger.info(
                "%s %s -> %s in %.1fms",
                request.method,
                request.url.path,
                status,
                dur_ms,
            )

    # Health (root)
    @app.get("/health")
    async def root_health() -> dict:
        return {"status": "ok"}

    app.include_router(router_v1)
    return app
