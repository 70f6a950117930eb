from __future__ import annotations

from typing import Optional, Sequence

from chat_sessions.core.logging import get_logger
from chat_sessions.models.domain.attachment import Attachment, RawEntry
from chat_sessions.models.domain.message import Message, MessageFactory
from chat_sessions.services.response_protocol import ResponseProtocol
from chat_sessions.services.transcript_store import TranscriptStore


class IngestionPipeline:
    def __init__(
        self,
        store: TranscriptStore,
        factory: MessageFactory,
        protocol: ResponseProtocol,
        *,
        session_id: Optional[str] = None,
    ) -> None:
        self.store = store
        self.factory = factory
        self.protocol = protocol
        self.logger = get_logger("IngestionPipeline").bind(session_id=session_id)

    async def ingest(self, raw_entries: Sequence[RawEntry]) -> Optional[Message]:
        """
        Turn one uploaded batch into a single user message and request a reply.

        An empty batch is a no-op: nothing is appended and ``None`` is returned.
        """
        if not raw_entries:
            self.logger.debug("IngestionPipeline.empty_batch")
            return None

        self.protocol.ensure_ready()
        attachments = [Attachment.from_raw(entry) for entry in raw_entries]
        message = self.factory.create_user_message(attachments=attachments)
        self.store.append(message)
        self.logger.info(
            "IngestionPipeline.batch_ingested",
            message_id=message.id,
            attachment_count=len(attachments),
        )

        self.protocol.trigger(message)
        return message
