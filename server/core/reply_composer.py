"""Reply Composer — streams the completion and substitutes a fallback on failure."""
import json
import logging
from typing import AsyncIterator, Awaitable, Callable, List, NamedTuple

import httpx

from integrations.ollama.client import OllamaClient
from config.settings import settings

logger = logging.getLogger(__name__)


class ReplyChunk(NamedTuple):
    text: str
    is_fallback: bool = False


class ReplyComposer:
    """
    Interfaces with the LLM for reply generation.

    The composer never decides what to say; the instruction context already
    carries the policy's decision. It only relays the model's text and, when
    the model cannot be reached or breaks mid-reply, emits the locally
    computed fallback after whatever was already streamed.
    """

    def __init__(self, ollama_client: OllamaClient):
        self.ollama = ollama_client

    async def compose(
        self,
        messages: List[dict],
        fallback: Callable[[], Awaitable[str]],
    ) -> AsyncIterator[ReplyChunk]:
        produced = False
        try:
            async for delta in self.ollama.stream_chat(
                messages,
                timeout_s=settings.LLM_RESPONSE_TIMEOUT,
            ):
                produced = True
                yield ReplyChunk(delta)

            if produced:
                return
            logger.warning("LLM returned an empty completion; using fallback reply")

        except Exception as e:
            logger.error(
                f"Reply generation failed (code={_classify_error(e)}, "
                f"retryable={_is_retryable(e)}, partial={produced}): {e}",
                exc_info=True,
            )

        yield ReplyChunk(await fallback(), is_fallback=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_RETRYABLE_ERRORS = (
    ConnectionError,
    TimeoutError,
    OSError,
)


def _is_retryable(exc: Exception) -> bool:
    """Classify an exception as transient (retryable) or permanent."""
    if isinstance(exc, _RETRYABLE_ERRORS):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500 or exc.response.status_code == 429
    msg = str(exc).lower()
    return any(kw in msg for kw in ("timeout", "connection", "unreachable"))


def _classify_error(exc: Exception) -> str:
    """Return a machine-readable error code for the exception."""
    if isinstance(exc, TimeoutError):
        return "llm_timeout"
    if isinstance(exc, (ConnectionError, OSError)):
        return "connection_error"
    if isinstance(exc, (httpx.HTTPStatusError, json.JSONDecodeError)):
        return "upstream_error"
    msg = str(exc).lower()
    if "timeout" in msg:
        return "llm_timeout"
    if "connection" in msg or "unreachable" in msg:
        return "connection_error"
    if "stream error" in msg:
        return "upstream_error"
    return "internal_error"
