"""Chat-completion client used to draft request letters.

The provider is chosen by ``GenerationConfig.provider``. The ``template``
provider is handled in ``ezfoia.generation.service`` and never gets here.
"""

from __future__ import annotations

import abc

from ezfoia.core.config import GenerationConfig


def build_messages(prompt: str, system_prompt: str | None = None) -> list[dict[str, str]]:
    messages: list[dict[str, str]] = []
    if system_prompt is not None:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})
    return messages


class LLMClient(abc.ABC):
    """A chat-completion backend.

    Subclasses implement ``chat``. ``generate`` is the single-prompt form
    the letter generator uses.
    """

    def __init__(self, config: GenerationConfig) -> None:
        self.config = config

    async def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        temperature: float | None = None,
    ) -> str:
        return await self.chat(build_messages(prompt, system_prompt), temperature=temperature)

    @abc.abstractmethod
    async def chat(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float | None = None,
    ) -> str:
        """Return the assistant message content for ``messages``.

        HTTP failures surface as ``httpx`` exceptions; the caller maps them.
        """

    async def close(self) -> None:
        pass


def create_llm_client(config: GenerationConfig) -> LLMClient:
    from ezfoia.llm.providers import PROVIDER_REGISTRY

    cls = PROVIDER_REGISTRY.get(config.provider.lower())
    if cls is None:
        raise ValueError(
            f"Unknown LLM provider {config.provider!r}. "
            f"Available: {', '.join(sorted(PROVIDER_REGISTRY))}"
        )
    return cls(config)
