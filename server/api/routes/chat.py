"""Chat routes — conversations and the streamed guided-assistant reply."""
from fastapi import APIRouter, HTTPException, Depends, Response, status
from fastapi.responses import StreamingResponse
from typing import AsyncIterator, List, Optional
import json
import logging

from api.schemas.request_schemas import CreateConversationRequest, SendMessageRequest
from api.schemas.response_schemas import (
    ConversationDetailResponse,
    ConversationResponse,
    MessageResponse,
)
from core.dependencies import get_engine
from core.engine import (
    ConversationNotFoundError,
    InvalidIdentifierError,
    InvalidMessageError,
    ResourceMatchingEngine,
)
from models.conversation import TurnResult

logger = logging.getLogger(__name__)
router = APIRouter()

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _sse_frame(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


@router.get("", response_model=List[ConversationResponse])
async def list_conversations(engine: ResourceMatchingEngine = Depends(get_engine)):
    try:
        return await engine.list_conversations()
    except Exception as e:
        logger.error(f"Error fetching conversations: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch conversations",
        )


@router.post("", response_model=ConversationResponse, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    request: Optional[CreateConversationRequest] = None,
    engine: ResourceMatchingEngine = Depends(get_engine),
):
    try:
        return await engine.create_conversation(request.title if request else None)
    except Exception as e:
        logger.error(f"Error creating conversation: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create conversation",
        )


@router.get("/{conversation_id}", response_model=ConversationDetailResponse)
async def get_conversation(
    conversation_id: str,
    engine: ResourceMatchingEngine = Depends(get_engine),
):
    try:
        conversation, messages = await engine.get_conversation(conversation_id)
    except InvalidIdentifierError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid conversation ID")
    except ConversationNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    except Exception as e:
        logger.error(f"Error fetching conversation {conversation_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch conversation",
        )

    return ConversationDetailResponse(
        id=conversation.id,
        title=conversation.title,
        created_at=conversation.created_at,
        messages=[MessageResponse.model_validate(m) for m in messages],
    )


@router.delete("/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(
    conversation_id: str,
    engine: ResourceMatchingEngine = Depends(get_engine),
):
    try:
        await engine.delete_conversation(conversation_id)
    except InvalidIdentifierError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid conversation ID")
    except ConversationNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    except Exception as e:
        logger.error(f"Error deleting conversation {conversation_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete conversation",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


async def _reply_events(engine: ResourceMatchingEngine, turn: TurnResult) -> AsyncIterator[str]:
    """Relay reply chunks as SSE frames, always closing with a done frame."""
    try:
        async for text in engine.stream_reply(turn):
            yield _sse_frame({"content": text})
    except Exception as e:
        logger.error(
            f"Streaming failed for conversation {turn.conversation_id}: {e}",
            exc_info=True,
        )
        yield _sse_frame({"error": "Failed to generate a reply", "error_code": "internal_error"})
    yield _sse_frame({"done": True})


@router.post("/{conversation_id}/messages")
async def send_message(
    conversation_id: str,
    request: SendMessageRequest,
    engine: ResourceMatchingEngine = Depends(get_engine),
):
    """
    Store the user's message, run one dialogue turn and stream the reply.

    Errors found before streaming starts come back as ordinary JSON errors;
    after that the stream itself carries the outcome.
    """
    try:
        turn = await engine.next_turn(conversation_id, request.content)
    except InvalidIdentifierError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid conversation ID")
    except InvalidMessageError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ConversationNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    except Exception as e:
        logger.error(f"Error processing message for conversation {conversation_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process message",
        )

    return StreamingResponse(
        _reply_events(engine, turn),
        media_type="text/event-stream",
        headers=_SSE_HEADERS,
    )
