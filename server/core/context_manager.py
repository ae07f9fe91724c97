"""Context Manager — loads the rolling transcript window for a conversation."""
from datetime import datetime
from typing import List, Optional
import logging

from models.conversation import ChatMessage, Role
from database.repositories.conversation_repo import ConversationRepository

logger = logging.getLogger(__name__)


def _parse_timestamp(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace('Z', '+00:00'))


class ContextManager:
    """
    Manages the chat transcript:
    - Stores new messages
    - Returns the last N messages, oldest first, as typed ChatMessages
    """

    def __init__(
        self,
        conversation_repo: ConversationRepository,
        history_limit: int = 10,
    ):
        self.conversation_repo = conversation_repo
        self.history_limit = history_limit

    async def add_message(self, conversation_id: int, role: Role, content: str) -> ChatMessage:
        """Store a new message and return it"""
        row = await self.conversation_repo.append_message(
            conversation_id, role.value, content
        )
        return self._to_message(row, conversation_id)

    async def get_transcript(
        self,
        conversation_id: int,
        limit: Optional[int] = None,
    ) -> List[ChatMessage]:
        """
        Get the transcript window used for state inference and completion.

        Rows with an unknown role are skipped rather than failing the turn.
        """
        rows = await self.conversation_repo.get_messages(
            conversation_id, limit or self.history_limit
        )

        messages = []
        for row in rows:
            try:
                messages.append(self._to_message(row, conversation_id))
            except ValueError as e:
                logger.warning(f"Skipping malformed message in conversation {conversation_id}: {e}")
        return messages

    def _to_message(self, row: dict, conversation_id: int) -> ChatMessage:
        return ChatMessage(
            id=row.get('id'),
            conversation_id=row.get('conversation_id', conversation_id),
            role=Role(row['role']),
            content=row['content'],
            created_at=_parse_timestamp(row.get('created_at')),
        )
