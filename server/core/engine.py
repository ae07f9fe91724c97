"""Resource Matching Engine — search and the guided chat turn loop.

One chat turn runs Observe → Infer → Decide → Fetch → Assemble:

1. store the user's message, then load the transcript window
2. project the dialogue state from the transcript
3. let the policy pick exactly one next action
4. fetch and prioritize resources only when the action is fetch_resources
5. render the instruction context for the completion service

Text generation happens afterwards in ``stream_reply``.
"""
import logging
import re
from datetime import datetime
from typing import AsyncIterator, List, Optional, Tuple, Union

from config.settings import settings
from core.category_cache import CategoryCache
from core.context_assembler import (
    assemble_instructions,
    build_completion_messages,
    build_fallback_summary,
)
from core.context_manager import ContextManager
from core.policy import decide
from core.prioritizer import MAX_PRESENTED, ResourcePrioritizer
from core.ranking import is_shelter_query, normalize_query, rank
from core.reply_composer import ReplyComposer
from core.state import infer_state
from database.repositories.conversation_repo import MAX_PAGE_SIZE, ConversationRepository
from database.repositories.resource_repo import ResourceRepository
from integrations.ollama.prompts import FALLBACK_ERROR_MESSAGE
from models.conversation import (
    Action,
    ChatMessage,
    Conversation,
    Intent,
    Role,
    TurnResult,
)
from models.resource import Category, Resource

logger = logging.getLogger(__name__)

_IDENTIFIER_RE = re.compile(r"[0-9]+")

DEFAULT_CONVERSATION_TITLE = "New Conversation"


class EngineError(Exception):
    """Base class for errors the HTTP layer maps to client responses."""


class InvalidIdentifierError(EngineError, ValueError):
    """An identifier that is not a positive integer (distinct from 'not found')."""


class InvalidMessageError(EngineError, ValueError):
    """Chat message is empty or too long."""


class ConversationNotFoundError(EngineError, LookupError):
    pass


def parse_identifier(raw: Union[str, int]) -> int:
    """Parse a numeric identifier, raising InvalidIdentifierError otherwise."""
    if isinstance(raw, bool):
        raise InvalidIdentifierError(f"Invalid identifier: {raw!r}")
    if isinstance(raw, int):
        value = raw
    else:
        text = str(raw).strip()
        if not _IDENTIFIER_RE.fullmatch(text):
            raise InvalidIdentifierError(f"Invalid identifier: {raw!r}")
        value = int(text)
    if value < 1:
        raise InvalidIdentifierError(f"Invalid identifier: {raw!r}")
    return value


def _to_conversation(row: dict) -> Conversation:
    created_at = row.get("created_at")
    if isinstance(created_at, str):
        created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
    return Conversation(
        id=row["id"],
        title=row.get("title") or DEFAULT_CONVERSATION_TITLE,
        created_at=created_at,
    )


def _consented(turn: TurnResult) -> bool:
    """Resources for a crisis or a specific need wait for an explicit yes."""
    if turn.action == Action.ASK_PERMISSION:
        return False
    state = turn.state
    if state.is_crisis or state.has_specific_intent:
        return state.permission_granted
    return True


class ResourceMatchingEngine:
    """
    Outbound API of the matching core.

    Holds no per-conversation state: every turn re-derives the dialogue state
    from the stored transcript. The category cache belongs to whoever built
    the engine.
    """

    def __init__(
        self,
        resource_repo: ResourceRepository,
        conversation_repo: ConversationRepository,
        reply_composer: ReplyComposer,
        category_cache: Optional[CategoryCache] = None,
        history_limit: Optional[int] = None,
    ):
        self.resource_repo = resource_repo
        self.conversation_repo = conversation_repo
        self.reply_composer = reply_composer
        self.category_cache = category_cache or CategoryCache(resource_repo)
        self.context_manager = ContextManager(
            conversation_repo,
            history_limit=history_limit or settings.CHAT_MAX_HISTORY_MESSAGES,
        )
        self.prioritizer = ResourcePrioritizer(resource_repo, self.category_cache)

    # ------------------------------------------------------------------
    # Directory
    # ------------------------------------------------------------------

    async def search(self, query: str, category_id: Optional[int] = None) -> List[Resource]:
        """Ranked free-text search. Empty or punctuation-only queries return []."""
        if not normalize_query(query or ""):
            return []
        candidates = await self.resource_repo.list_resources(category_id=category_id)
        results = rank(query, candidates)
        logger.info(f"Search '{query}' matched {len(results)} of {len(candidates)} resources")
        return results

    async def browse(self, category_id: Optional[int] = None) -> List[Resource]:
        return await self.resource_repo.list_resources(category_id=category_id)

    async def get_resource(self, raw_id: Union[str, int]) -> Optional[Resource]:
        """Returns None if not found. Raises InvalidIdentifierError on a malformed id."""
        return await self.resource_repo.get_resource(parse_identifier(raw_id))

    async def list_categories(self) -> List[Category]:
        return await self.resource_repo.get_categories()

    async def get_category(self, slug: str) -> Optional[Category]:
        return await self.category_cache.get(slug)

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    async def create_conversation(self, title: Optional[str] = None) -> Conversation:
        title = (title or "").strip() or DEFAULT_CONVERSATION_TITLE
        row = await self.conversation_repo.create_conversation(
            title[: settings.CHAT_MAX_TITLE_LENGTH]
        )
        return _to_conversation(row)

    async def list_conversations(self) -> List[Conversation]:
        rows = await self.conversation_repo.list_conversations(settings.CHAT_MAX_CONVERSATIONS)
        return [_to_conversation(row) for row in rows]

    async def get_conversation(
        self, raw_id: Union[str, int]
    ) -> Tuple[Conversation, List[ChatMessage]]:
        conversation_id = parse_identifier(raw_id)
        row = await self.conversation_repo.get_conversation(conversation_id)
        if not row:
            raise ConversationNotFoundError(f"Conversation {conversation_id} not found")
        messages = await self.context_manager.get_transcript(conversation_id, limit=MAX_PAGE_SIZE)
        return _to_conversation(row), messages

    async def delete_conversation(self, raw_id: Union[str, int]) -> None:
        conversation_id = parse_identifier(raw_id)
        if not await self.conversation_repo.get_conversation(conversation_id):
            raise ConversationNotFoundError(f"Conversation {conversation_id} not found")
        await self.conversation_repo.delete_conversation(conversation_id)

    # ------------------------------------------------------------------
    # Chat turn
    # ------------------------------------------------------------------

    async def next_turn(self, raw_id: Union[str, int], user_text: str) -> TurnResult:
        """
        Run one turn up to (not including) text generation.

        The user's message is stored before the transcript is read, so the
        state always reflects it.
        """
        conversation_id = parse_identifier(raw_id)
        text = (user_text or "").strip()
        if not text:
            raise InvalidMessageError("Message content is required")
        if len(text) > settings.CHAT_MAX_MESSAGE_LENGTH:
            raise InvalidMessageError(
                f"Message too long. Maximum {settings.CHAT_MAX_MESSAGE_LENGTH} characters allowed."
            )

        if not await self.conversation_repo.get_conversation(conversation_id):
            raise ConversationNotFoundError(f"Conversation {conversation_id} not found")

        # 1. OBSERVE
        await self.context_manager.add_message(conversation_id, Role.USER, text)
        transcript = await self.context_manager.get_transcript(conversation_id)

        # 2. INFER
        state = infer_state(transcript)

        # 3. DECIDE
        action = decide(state)
        logger.info(
            f"Conversation {conversation_id}: intent={state.intent.value}, "
            f"crisis={state.is_crisis}, awaiting={state.awaiting.value}, "
            f"action={action.value}"
        )

        # 4. FETCH, only when the policy authorizes it
        resources: List[Resource] = []
        if action == Action.FETCH_RESOURCES:
            resources = await self.prioritizer.for_state(state, text)

        # 5. ASSEMBLE
        instruction_context = assemble_instructions(state, action, resources)

        return TurnResult(
            conversation_id=conversation_id,
            state=state,
            action=action,
            instruction_context=instruction_context,
            prioritized_resources=resources,
            messages=transcript,
            user_text=text,
        )

    async def stream_reply(self, turn: TurnResult) -> AsyncIterator[str]:
        """
        Stream the assistant's reply for a turn and store it once complete.

        Text already yielded is never retracted. If generation fails, the
        fallback summary follows it. If the consumer stops iterating (client
        disconnect), nothing is stored.
        """
        messages = build_completion_messages(turn.instruction_context, turn.messages)

        generated: List[str] = []
        fallback_text: Optional[str] = None

        async for chunk in self.reply_composer.compose(
            messages, lambda: self.fallback_summary(turn)
        ):
            if chunk.is_fallback:
                fallback_text = chunk.text
                yield f"\n\n{chunk.text}" if generated else chunk.text
            else:
                generated.append(chunk.text)
                yield chunk.text

        await self._store_reply(turn.conversation_id, "".join(generated), fallback_text)

    async def _store_reply(
        self,
        conversation_id: int,
        generated: str,
        fallback_text: Optional[str],
    ) -> None:
        if fallback_text is None:
            content = generated
        elif generated and settings.PERSIST_PARTIAL_REPLIES:
            content = f"{generated}\n\n{fallback_text}"
        else:
            # A truncated reply is never stored on its own
            content = fallback_text

        if not content:
            return
        try:
            await self.context_manager.add_message(conversation_id, Role.ASSISTANT, content)
        except Exception as e:
            # The reply has already reached the client; only the transcript lags
            logger.error(
                f"Failed to store assistant reply for conversation {conversation_id}: {e}",
                exc_info=True,
            )

    async def fallback_summary(self, turn: TurnResult) -> str:
        """Locally computed reply used when the completion service is unavailable."""
        try:
            shelter_need = (
                turn.state.intent == Intent.SHELTER or is_shelter_query(turn.user_text)
            )
            if not _consented(turn):
                # Nothing is offered until the user has said yes
                return build_fallback_summary(turn.state, [], shelter_need=shelter_need)
            resources = turn.prioritized_resources
            if not resources:
                if shelter_need:
                    shelter_state = turn.state.model_copy(update={"intent": Intent.SHELTER})
                    resources = await self.prioritizer.for_state(shelter_state)
                else:
                    resources = await self.prioritizer.for_state(turn.state, turn.user_text)
                if not resources and not shelter_need:
                    resources = (await self.resource_repo.list_resources())[:MAX_PRESENTED]
            return build_fallback_summary(turn.state, resources, shelter_need=shelter_need)
        except Exception as e:
            logger.error(f"Fallback summary failed: {e}", exc_info=True)
            return FALLBACK_ERROR_MESSAGE
