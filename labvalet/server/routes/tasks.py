"""Scheduled task routes."""

from fastapi import APIRouter, Depends, HTTPException

from ..app import require_app, verify_api_key
from ..models import TaskCreateRequest

router = APIRouter()


@router.post("/conversations/{conversation_id}/tasks", dependencies=[Depends(verify_api_key)])
async def create_task(conversation_id: str, req: TaskCreateRequest):
    """Schedule a one-shot task for a conversation."""
    app = require_app()
    try:
        task = await app.schedule_task(
            conversation_id,
            req.description,
            trigger_time=req.trigger_time,
            delay_seconds=req.delay_seconds,
        )
    except ValueError as e:
        raise HTTPException(422, str(e))
    return task.to_dict()


@router.get("/conversations/{conversation_id}/tasks", dependencies=[Depends(verify_api_key)])
async def list_tasks(conversation_id: str):
    app = require_app()
    tasks = await app.list_tasks(conversation_id)
    return [t.to_dict() for t in tasks]


@router.delete("/tasks/{task_id}", dependencies=[Depends(verify_api_key)])
async def cancel_task(task_id: str):
    app = require_app()
    if not await app.cancel_task(task_id):
        raise HTTPException(404, "Task not found")
    return {"status": "ok"}
