from __future__ import annotations

from chat_sessions.core.logging import get_logger
from chat_sessions.models.domain.responder import ResponderRequest, ResponderResponse
from chat_sessions.responders.base import BaseResponder

TEXT_REPLY = "Thanks for your message! This is a demo response from the chatbot."


class DemoResponder(BaseResponder):
    """Canned replies used by the chat page before a model is wired in."""

    name = "demo"

    def __init__(self) -> None:
        self.logger = get_logger("DemoResponder")

    async def respond(self, request: ResponderRequest) -> ResponderResponse:
        if request.attachment_summary is not None:
            text = f"Received {request.attachment_count} file(s). Here's what I found:"
        else:
            text = TEXT_REPLY
        self.logger.debug("DemoResponder.respond", attachment_count=request.attachment_count)
        return ResponderResponse(text=text)
