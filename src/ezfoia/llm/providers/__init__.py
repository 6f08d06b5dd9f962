"""Accepted values of ``EZFOIA_GENERATION_PROVIDER`` besides ``template``."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ezfoia.llm.client import LLMClient

from ezfoia.llm.providers.openai_compat import OpenAICompatClient

# Every supported gateway speaks the OpenAI chat-completions dialect.
PROVIDER_REGISTRY: dict[str, type[LLMClient]] = {
    "gateway": OpenAICompatClient,
    "openai": OpenAICompatClient,
    "vllm": OpenAICompatClient,
}

__all__ = ["PROVIDER_REGISTRY", "OpenAICompatClient"]
