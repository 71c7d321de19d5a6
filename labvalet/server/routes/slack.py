"""Slack Events API relay."""

import logging

from fastapi import APIRouter

from ..app import require_app
from ..models import SlackEnvelope

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/slack/events")
async def slack_events(envelope: SlackEnvelope):
    """Relay channel messages into the automation conversation.

    Only ``event_callback`` envelopes carrying a plain ``message`` event are
    relayed; everything else is acknowledged and ignored.
    """
    if envelope.type == "url_verification":
        return {"challenge": envelope.challenge}

    event = envelope.event
    if envelope.type != "event_callback" or event is None or event.type != "message":
        return {"ok": True}
    if event.subtype or event.bot_id or not event.text:
        logger.debug(f"Ignoring Slack message event (subtype={event.subtype}, bot={event.bot_id})")
        return {"ok": True}

    app = require_app()
    message = await app.relay_slack_message(event.text)
    logger.info(f"Relayed Slack message {event.ts} into {app.slack_conversation_id}")
    return {"ok": True, "message_id": message.id}
