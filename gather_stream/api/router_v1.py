from __future__ import annotations

import uuid
from typing import Union
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse

from .models import ChatRequest, ChatResponse, ErrorResponse
from .deps import get_api_key, get_chat_service
from .relay import SSE_HEADERS, relay_events
from ..application.chat_service import ChatService
from ..domain.models.events import ReplyError

router = APIRouter(prefix="/v1", tags=["v1"])

NO_STORE = {"Cache-Control": "no-store"}

_ERROR_STATUS = {
    "timeout": 504,
    "upstream": 502,
    "tool_loop_limit": 502,
}


@router.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@router.get("/live")
async def liveness() -> dict:
    # Minimal liveness probe (process up)
    return {"status": "live"}


@router.get("/ready")
async def readiness(service: ChatService = Depends(get_chat_service)) -> JSONResponse:
    if not service.configured:
        return JSONResponse({"status": "not_ready", "reason": "provider not configured"}, status_code=503)
    return JSONResponse({"status": "ready"})


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={500: {"model": ErrorResponse}, 502: {"model": ErrorResponse}, 504: {"model": ErrorResponse}},
)
async def chat(
    payload: ChatRequest,
    _api_key=Depends(get_api_key),
    service: ChatService = Depends(get_chat_service),
) -> Union[JSONResponse, StreamingResponse]:
    if not service.configured:
        return JSONResponse({"error": "Anthropic API key not configured"}, status_code=500, headers=NO_STORE)

    request_id = uuid.uuid4().hex[:12]
    history = [entry.model_dump() for entry in payload.history]

    if payload.stream:
        events = service.chat_stream(payload.message, payload.context, history, request_id=request_id)
        return StreamingResponse(
            relay_events(events),
            media_type="text/event-stream",
            headers={**SSE_HEADERS, "X-Request-ID": request_id},
        )

    result = await service.chat(payload.message, payload.context, history, request_id=request_id)
    headers = {**NO_STORE, "X-Request-ID": request_id}
    if isinstance(result, ReplyError):
        status_code = _ERROR_STATUS.get(result.code, 500)
        body = ErrorResponse(error=result.message, code=result.code)
        return JSONResponse(body.model_dump(), status_code=status_code, headers=headers)

    body = ChatResponse(
        response=result.response,
        sources=[s.to_dict() for s in result.sources],
        actions=result.actions,
    )
    return JSONResponse(body.model_dump(), headers=headers)
