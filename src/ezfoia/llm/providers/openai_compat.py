"""Letter drafting over an OpenAI-style ``/v1/chat/completions`` gateway.

Only 5xx answers and dropped connections are retried. Throttling (429),
exhausted credit (402) and other client errors return at once so
``LLMGenerationService`` can show the matching message.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from ezfoia.core.config import GenerationConfig
from ezfoia.llm.client import LLMClient

logger = logging.getLogger(__name__)

CHAT_PATH = "/v1/chat/completions"
_BACKOFF_SECONDS = 0.5


class OpenAICompatClient(LLMClient):
    """Gateway client; sends ``Authorization: Bearer`` when an API key is set."""

    def __init__(self, config: GenerationConfig) -> None:
        super().__init__(config)
        headers = {"Authorization": f"Bearer {config.api_key}"} if config.api_key else {}
        self._http = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.timeout_seconds),
            headers=headers,
        )

    async def chat(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float | None = None,
    ) -> str:
        resp = await self._post_with_retry(self._payload(messages, temperature))
        resp.raise_for_status()
        return resp.json()["choices"][0]["message"]["content"]

    async def close(self) -> None:
        await self._http.aclose()

    def _payload(
        self, messages: list[dict[str, str]], temperature: float | None
    ) -> dict[str, Any]:
        return {
            "model": self.config.model,
            "messages": messages,
            "temperature": self.config.temperature if temperature is None else temperature,
            "max_tokens": self.config.max_tokens,
            "stream": False,
        }

    async def _post_with_retry(self, payload: dict[str, Any]) -> httpx.Response:
        attempts = max(1, self.config.max_retries + 1)
        attempt = 0
        while True:
            attempt += 1
            final = attempt >= attempts
            try:
                resp = await self._http.post(CHAT_PATH, json=payload)
            except httpx.TransportError as exc:
                if final:
                    raise
                reason = str(exc) or type(exc).__name__
            else:
                if resp.status_code < 500 or final:
                    return resp
                reason = f"HTTP {resp.status_code}"

            delay = _BACKOFF_SECONDS * 2 ** (attempt - 1)
            logger.warning(
                "Letter gateway failed (%s), retrying in %.1fs (%d/%d)",
                reason, delay, attempt, attempts,
            )
            await asyncio.sleep(delay)
