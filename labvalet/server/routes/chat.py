"""Chat, streaming, and health routes."""

import json

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from ...streaming.models import EventType
from ..app import require_app, verify_api_key
from ..models import ChatRequest, ChatResponse

router = APIRouter()


@router.post("/conversations/{conversation_id}/chat", dependencies=[Depends(verify_api_key)])
async def stream_chat(conversation_id: str, req: ChatRequest):
    """Run a round and stream its events as Server-Sent Events."""
    app = require_app()
    stream = await app.handle_message(conversation_id, req.message, metadata=req.metadata)

    async def event_generator():
        async for event in stream:
            data = json.dumps(event.to_dict(), ensure_ascii=False, default=str)
            yield f"data: {data}\n\n"
        yield "data: [DONE]\n\n"

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
    )


@router.post(
    "/conversations/{conversation_id}/chat/sync",
    response_model=ChatResponse,
    dependencies=[Depends(verify_api_key)],
)
async def chat(conversation_id: str, req: ChatRequest):
    """Run a round and return the final text."""
    app = require_app()
    stream = await app.handle_message(conversation_id, req.message, metadata=req.metadata)

    chunks = []
    awaiting = []
    async for event in stream:
        if event.type == EventType.MESSAGE_CHUNK:
            chunks.append(event.data.get("chunk", ""))
        elif event.type == EventType.EXECUTION_END:
            awaiting = event.data.get("awaiting_confirmation", [])

    return ChatResponse(
        response="".join(chunks),
        message_id=stream.message.id if stream.message is not None else None,
        awaiting_confirmation=awaiting,
    )


@router.get("/tools", dependencies=[Depends(verify_api_key)])
async def list_tools():
    app = require_app()
    return {"tools": await app.list_tools()}


@router.get("/health")
async def health():
    return {"status": "ok"}
