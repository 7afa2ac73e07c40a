"""Chat endpoints: streamed turns and the caller's chat history."""

from __future__ import annotations

from typing import TYPE_CHECKING, AsyncGenerator, AsyncIterator, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from turnstream.ai.messages import split_conversation
from turnstream.ai.stream import run_turn_stream
from turnstream.api.auth import get_current_user
from turnstream.errors import ConfigError
from turnstream.log import bind_request_context, get_logger

if TYPE_CHECKING:
    from turnstream.app import TurnstreamApp

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])


class ChatMessage(BaseModel):
    role: str = Field(..., description="user, assistant, system, ...")
    content: str


class ChatRequest(BaseModel):
    id: Optional[str] = Field(default=None, description="Conversation id; generated when absent")
    messages: list[ChatMessage] = Field(..., min_length=1)


class ChatSummary(BaseModel):
    id: str
    title: str
    createdAt: int
    path: str


class ChatDetail(ChatSummary):
    userId: str
    messages: list[ChatMessage]


def _services(request: Request) -> TurnstreamApp:
    return request.app.state.services


@router.post("/chat")
async def post_chat(request: Request, user_id: str = Depends(get_current_user)):
    """Run one turn and stream the answer as plain text.

    The body is only read after the caller is authenticated. The resolved
    conversation id is returned in the ``X-Chat-Id`` header.
    """
    try:
        body = ChatRequest.model_validate(await request.json())
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    services = _services(request)
    messages = [m.model_dump() for m in body.messages]
    history, current_input = split_conversation(messages)

    try:
        executor, recorder = services.build_turn(messages, user_id, body.id)
    except ConfigError as e:
        logger.error("turn_setup_failed", error=str(e))
        raise HTTPException(status_code=500, detail=str(e))

    bind_request_context(user_id=user_id, chat_id=recorder.chat_id)
    logger.info("chat_turn_started", message_count=len(messages))

    stream_cfg = services.config.stream
    chunks = run_turn_stream(
        executor,
        current_input,
        history,
        mode=stream_cfg.mode,
        queue_size=stream_cfg.queue_size,
        error_sentinel=stream_cfg.error_sentinel,
    )

    # Headers are only sent once the first chunk exists, so a turn that fails
    # before producing output still gets a proper status code.
    try:
        first = await chunks.__anext__()
    except StopAsyncIteration:
        first = b""
    except Exception as e:
        logger.warning("chat_turn_failed_before_output", error=str(e), error_type=type(e).__name__)
        raise HTTPException(status_code=502, detail=f"Agent failed: {e}")

    return StreamingResponse(
        _relay(first, chunks),
        media_type="text/plain; charset=utf-8",
        headers={
            "X-Chat-Id": recorder.chat_id,
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


async def _relay(first: bytes, rest: AsyncGenerator[bytes, None]) -> AsyncIterator[bytes]:
    try:
        if first:
            yield first
        async for chunk in rest:
            yield chunk
    finally:
        await rest.aclose()


@router.get("/chats", response_model=list[ChatSummary])
async def list_chats(
    request: Request,
    limit: int = Query(50, ge=1, le=500),
    user_id: str = Depends(get_current_user),
):
    records = await _services(request).chat_repo.list_user_chats(user_id, limit=limit)
    return [
        ChatSummary(id=r.id, title=r.title, createdAt=r.created_at, path=r.path)
        for r in records
    ]


@router.get("/chats/{chat_id}", response_model=ChatDetail)
async def get_chat(chat_id: str, request: Request, user_id: str = Depends(get_current_user)):
    record = await _services(request).chat_repo.get_chat(chat_id)
    if record is None or record.user_id != user_id:
        raise HTTPException(status_code=404, detail="Chat not found")
    return ChatDetail(**record.to_fields())
