"""Conversation repository for database operations."""
from asyncio import to_thread
from typing import Optional, List
from supabase import Client
import logging

logger = logging.getLogger(__name__)

VALID_ROLES = ("user", "assistant", "system")
MAX_PAGE_SIZE = 100


class ConversationRepository:
    """Handle conversation and message database operations."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    async def create_conversation(self, title: str) -> dict:
        try:
            response = await to_thread(
                lambda: self.supabase.table("conversations")
                .insert({"title": title})
                .execute()
            )
            if not response.data:
                raise RuntimeError("Conversation insert returned no row")
            return response.data[0]
        except Exception as e:
            logger.error(f"Error creating conversation: {e}")
            raise

    async def get_conversation(self, conversation_id: int) -> Optional[dict]:
        """Get conversation by ID.

        Returns None if not found. Raises on database errors.
        """
        try:
            response = await to_thread(
                lambda: self.supabase.table("conversations")
                .select("*")
                .eq("id", conversation_id)
                .execute()
            )
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error(f"Error getting conversation: {e}")
            raise

    async def list_conversations(self, limit: int = MAX_PAGE_SIZE) -> List[dict]:
        """Most recent conversations first."""
        try:
            page = min(limit, MAX_PAGE_SIZE)
            response = await to_thread(
                lambda: self.supabase.table("conversations")
                .select("*")
                .order("created_at", desc=True)
                .limit(page)
                .execute()
            )
            return response.data if response.data else []
        except Exception as e:
            logger.error(f"Error listing conversations: {e}")
            raise

    async def delete_conversation(self, conversation_id: int) -> None:
        """Delete a conversation and its messages."""
        try:
            def _do_delete():
                # Messages first so a failure never leaves orphans behind
                self.supabase.table("messages").delete().eq(
                    "conversation_id", conversation_id
                ).execute()
                self.supabase.table("conversations").delete().eq(
                    "id", conversation_id
                ).execute()

            await to_thread(_do_delete)
            logger.info(f"Deleted conversation {conversation_id}")
        except Exception as e:
            logger.error(f"Error deleting conversation {conversation_id}: {e}")
            raise

    async def get_messages(
        self,
        conversation_id: int,
        limit: int = MAX_PAGE_SIZE,
    ) -> List[dict]:
        """Get the latest ``limit`` messages in chronological order.

        Raises on database errors so callers can distinguish 'no messages'
        from 'database is down'.
        """
        try:
            page = min(limit, MAX_PAGE_SIZE)
            response = await to_thread(
                lambda: self.supabase.table("messages")
                .select("*")
                .eq("conversation_id", conversation_id)
                .order("created_at", desc=True)
                .order("id", desc=True)
                .limit(page)
                .execute()
            )
            rows = response.data if response.data else []
            # Newest-first from the query; callers want oldest-first
            return list(reversed(rows))
        except Exception as e:
            logger.error(f"Error getting messages: {e}")
            raise

    async def append_message(self, conversation_id: int, role: str, content: str) -> dict:
        """Insert one message. Unknown roles are rejected before any write."""
        if role not in VALID_ROLES:
            raise ValueError(
                f"Invalid role: {role}. Must be one of: {', '.join(VALID_ROLES)}"
            )
        try:
            data = {
                "conversation_id": conversation_id,
                "role": role,
                "content": content,
            }
            response = await to_thread(
                lambda: self.supabase.table("messages").insert(data).execute()
            )
            return response.data[0] if response.data else data
        except Exception as e:
            logger.error(f"Error inserting message: {e}", exc_info=True)
            raise
