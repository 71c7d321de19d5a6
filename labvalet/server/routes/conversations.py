"""History introspection and direct injection routes."""

from fastapi import APIRouter, Depends, HTTPException

from ...message import Message
from ..app import require_app, verify_api_key
from ..models import InjectMessageRequest

router = APIRouter()


@router.get("/conversations/{conversation_id}", dependencies=[Depends(verify_api_key)])
async def get_conversation(conversation_id: str):
    """Return the stored history of a conversation."""
    app = require_app()
    history = await app.get_history(conversation_id)
    return {"messages": [m.to_dict() for m in history]}


@router.post("/conversations/{conversation_id}/messages", dependencies=[Depends(verify_api_key)])
async def inject_message(conversation_id: str, req: InjectMessageRequest):
    """Append a message without running the model."""
    app = require_app()
    try:
        message = Message.from_dict(req.model_dump(exclude_none=True))
    except (KeyError, ValueError) as e:
        raise HTTPException(422, f"Invalid message: {e}")
    stored = await app.inject_message(conversation_id, message)
    return {"status": "ok", "message": stored.to_dict()}
