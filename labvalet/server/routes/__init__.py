"""Route registration for the LabValet API."""

from fastapi import FastAPI

from .chat import router as chat_router
from .conversations import router as conversations_router
from .slack import router as slack_router
from .tasks import router as tasks_router


def register_routes(app: FastAPI):
    app.include_router(chat_router)
    app.include_router(conversations_router)
    app.include_router(slack_router)
    app.include_router(tasks_router)
