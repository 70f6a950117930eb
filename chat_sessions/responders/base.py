from __future__ import annotations

from typing import Protocol

from chat_sessions.models.domain.responder import ResponderRequest, ResponderResponse


class BaseResponder(Protocol):
    """
    External collaborator producing assistant text.

    ``respond`` eventually returns a response or raises. The response protocol
    maps timeouts to ``ResponderTimeoutError`` and every other failure to
    ``ResponderError``.
    """

    name: str

    async def respond(self, request: ResponderRequest) -> ResponderResponse: ...
