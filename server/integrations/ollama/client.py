"""LLM client — streams chat completions from local Ollama or an OpenAI-compatible API."""
import httpx
import json
from typing import AsyncIterator, List, Optional, Tuple
from config.settings import settings
import logging

logger = logging.getLogger(__name__)

_SSE_PREFIX = "data:"
_SSE_DONE = "[DONE]"


def _parse_openai_line(line: str) -> Tuple[str, bool]:
    """Parse one SSE line of an OpenAI-style stream into (delta, done)."""
    line = line.strip()
    if not line.startswith(_SSE_PREFIX):
        return "", False
    data = line[len(_SSE_PREFIX):].strip()
    if data == _SSE_DONE:
        return "", True
    chunk = json.loads(data)
    choices = chunk.get("choices") or []
    if not choices:
        return "", False
    delta = choices[0].get("delta") or {}
    return delta.get("content") or "", False


def _parse_ollama_line(line: str) -> Tuple[str, bool]:
    """Parse one NDJSON line of an Ollama /api/chat stream into (delta, done)."""
    line = line.strip()
    if not line:
        return "", False
    chunk = json.loads(line)
    if chunk.get("error"):
        raise RuntimeError(f"Ollama stream error: {chunk['error']}")
    content = (chunk.get("message") or {}).get("content") or ""
    return content, bool(chunk.get("done"))


class OllamaClient:
    """Wrapper for LLM API — supports local Ollama and OpenAI-compatible cloud APIs."""

    def __init__(
        self,
        endpoint: Optional[str] = None,
        model: Optional[str] = None,
    ):
        self.endpoint = (endpoint or settings.OLLAMA_ENDPOINT).rstrip("/")
        self.model = model or settings.OLLAMA_MODEL
        self.api_key = settings.LLM_API_KEY
        self.use_cloud = settings.USE_CLOUD_LLM

        headers: dict[str, str] = {}
        if self.use_cloud and self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        # Default timeout; callers can override per-request via the timeout_s param
        self.client = httpx.AsyncClient(timeout=60.0, headers=headers)

    def _build_request(
        self,
        messages: List[dict],
        temperature: float,
        max_tokens: int,
    ) -> Tuple[str, dict]:
        if self.use_cloud:
            return f"{self.endpoint}/v1/chat/completions", {
                "model": self.model,
                "messages": messages,
                "temperature": temperature,
                "max_tokens": max_tokens,
                "stream": True,
            }
        return f"{self.endpoint}/api/chat", {
            "model": self.model,
            "messages": messages,
            "stream": True,
            "options": {"temperature": temperature, "num_predict": max_tokens},
        }

    async def stream_chat(
        self,
        messages: List[dict],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout_s: Optional[int] = None,
    ) -> AsyncIterator[str]:
        """
        Stream a chat completion, yielding text deltas as they arrive.

        Transport failures are re-raised as TimeoutError / ConnectionError so
        callers can tell them apart from malformed output.
        """
        effective_timeout = timeout_s or settings.LLM_RESPONSE_TIMEOUT
        url, payload = self._build_request(
            messages,
            settings.LLM_TEMPERATURE if temperature is None else temperature,
            max_tokens or settings.LLM_MAX_TOKENS,
        )
        parse_line = _parse_openai_line if self.use_cloud else _parse_ollama_line

        try:
            async with self.client.stream(
                "POST", url, json=payload, timeout=effective_timeout
            ) as response:
                response.raise_for_status()
                async for line in response.aiter_lines():
                    delta, done = parse_line(line)
                    if delta:
                        yield delta
                    if done:
                        break

        except httpx.TimeoutException:
            logger.error(f"LLM stream timed out after {effective_timeout}s")
            raise TimeoutError(f"LLM request timed out after {effective_timeout}s")
        except httpx.TransportError as e:
            logger.error(f"LLM endpoint unreachable: {e}")
            raise ConnectionError(f"LLM endpoint unreachable: {e}") from e
        except httpx.HTTPStatusError as e:
            logger.error(f"LLM returned HTTP {e.response.status_code}")
            raise

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()
