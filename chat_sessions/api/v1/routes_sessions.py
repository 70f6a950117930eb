from __future__ import annotations

import asyncio
import json
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Request, Response
from starlette.responses import StreamingResponse

from chat_sessions.core.logging import bind_request_context, get_logger
from chat_sessions.core.security import verify_api_key
from chat_sessions.models.api.requests import CreateSessionRequest, SubmitTextRequest, UploadBatchRequest
from chat_sessions.models.api.responses import SessionResponse, SubmissionResponse, TranscriptResponse
from chat_sessions.services.session_service import ChatSession, get_session_registry

router = APIRouter(prefix="/v1/sessions", tags=["sessions"])


def _request_logger(request: Request, name: str, session_id: str | None = None):
    request_id = request.headers.get("X-Request-Id") or getattr(request.state, "request_id", None)
    return bind_request_context(
        get_logger(name),
        request_id=request_id,
        session_id=session_id,
        endpoint=str(request.url.path),
    )


def _session_response(session: ChatSession) -> SessionResponse:
    return SessionResponse(**session.info().model_dump(), api_version="v1")


@router.post("", response_model=SessionResponse, status_code=201)
async def create_session(
    request: Request,
    payload: Optional[CreateSessionRequest] = None,
    _: str | None = Depends(verify_api_key),
) -> SessionResponse:
    registry = get_session_registry()
    session = registry.create(seed_greeting=payload.greeting if payload else None)
    _request_logger(request, "CreateSession", session.session_id).info("Session created")
    return _session_response(session)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str = Path(...),
    _: str | None = Depends(verify_api_key),
) -> SessionResponse:
    return _session_response(get_session_registry().get(session_id))


@router.delete("/{session_id}", status_code=204)
async def end_session(
    request: Request,
    session_id: str = Path(...),
    _: str | None = Depends(verify_api_key),
) -> Response:
    get_session_registry().end(session_id)
    _request_logger(request, "EndSession", session_id).info("Session ended")
    return Response(status_code=204)


@router.get("/{session_id}/messages", response_model=TranscriptResponse)
async def list_messages(
    session_id: str = Path(...),
    after: Optional[int] = Query(default=None, ge=0),
    _: str | None = Depends(verify_api_key),
) -> TranscriptResponse:
    session = get_session_registry().get(session_id)
    return TranscriptResponse(
        session_id=session_id,
        messages=list(session.messages_after(after)),
        is_composing=session.is_composing,
        api_version="v1",
    )


@router.post("/{session_id}/messages", response_model=SubmissionResponse, status_code=202)
async def submit_message(
    payload: SubmitTextRequest,
    request: Request,
    session_id: str = Path(...),
    _: str | None = Depends(verify_api_key),
) -> SubmissionResponse:
    session = get_session_registry().get(session_id)
    message = await session.submit_text(payload.text)

    logger = _request_logger(request, "SubmitMessage", session_id)
    logger.info("Message submitted", accepted=message is not None, message_id=message.id if message else None)

    return SubmissionResponse(
        session_id=session_id,
        message=message,
        accepted=message is not None,
        api_version="v1",
    )


@router.post("/{session_id}/uploads", response_model=SubmissionResponse, status_code=202)
async def upload_batch(
    payload: UploadBatchRequest,
    request: Request,
    session_id: str = Path(...),
    _: str | None = Depends(verify_api_key),
) -> SubmissionResponse:
    session = get_session_registry().get(session_id)
    message = await session.upload(payload.entries)

    logger = _request_logger(request, "UploadBatch", session_id)
    logger.info("Batch uploaded", entries=len(payload.entries), message_id=message.id if message else None)

    return SubmissionResponse(
        session_id=session_id,
        message=message,
        accepted=message is not None,
        api_version="v1",
    )


@router.get("/{session_id}/events")
async def stream_session_events(
    request: Request,
    session_id: str = Path(...),
    _: str | None = Depends(verify_api_key),
):
    """
    SSE endpoint streaming transcript appends and composing-state changes.

    Front ends connect with EventSource to:
      GET /v1/sessions/{session_id}/events
    """
    session = get_session_registry().get(session_id)
    logger = _request_logger(request, "SessionEvents", session_id)

    async def event_stream():
        queue = session.subscribe()
        logger.info("SessionEvents.subscribe")
        try:
            while True:
                if await request.is_disconnected():
                    logger.info("SessionEvents.client_disconnected")
                    break
                try:
                    payload = await asyncio.wait_for(queue.get(), timeout=1.0)
                except asyncio.TimeoutError:
                    if session.closed:
                        break
                    continue
                yield f"data: {json.dumps(payload)}\n\n"
                if payload.get("event") == "session_closed":
                    break
        finally:
            session.unsubscribe(queue)

    return StreamingResponse(event_stream(), media_type="text/event-stream")
