"""
Shared singleton dependencies for the application.

The LLM client owns an httpx.AsyncClient, so it is created once at startup
and reused across requests. Everything else (repositories, the category
cache, the engine) is cheap and built per request by ``get_engine``.
"""
import logging
from typing import Optional

from database.client import get_supabase
from database.repositories.conversation_repo import ConversationRepository
from database.repositories.resource_repo import ResourceRepository
from core.engine import ResourceMatchingEngine
from core.reply_composer import ReplyComposer
from integrations.ollama.client import OllamaClient

logger = logging.getLogger(__name__)

# Module-level singleton, initialized once via init_dependencies()
_ollama_client: Optional[OllamaClient] = None


def init_dependencies() -> None:
    """
    Initialize all shared singletons. Called once at application startup.
    """
    global _ollama_client

    logger.info("Initializing shared dependencies...")

    # LLM client: single httpx.AsyncClient, reused for all requests
    _ollama_client = OllamaClient()

    logger.info(
        f"Dependencies initialized: model={_ollama_client.model}, "
        f"cloud={_ollama_client.use_cloud}"
    )


async def shutdown_dependencies() -> None:
    """Clean up resources on shutdown."""
    global _ollama_client
    if _ollama_client:
        await _ollama_client.close()
        _ollama_client = None
        logger.info("OllamaClient closed")


def get_ollama_client() -> OllamaClient:
    if _ollama_client is None:
        raise RuntimeError("Dependencies not initialized. Call init_dependencies() first.")
    return _ollama_client


def get_engine() -> ResourceMatchingEngine:
    """
    Build a ResourceMatchingEngine using shared singletons.

    Repositories are lightweight wrappers around the Supabase client, so
    creating them per-request is fine. The category cache lives and dies
    with the engine, so category edits are visible on the next request.
    """
    supabase = get_supabase()

    return ResourceMatchingEngine(
        resource_repo=ResourceRepository(supabase),
        conversation_repo=ConversationRepository(supabase),
        reply_composer=ReplyComposer(get_ollama_client()),
    )
