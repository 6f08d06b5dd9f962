"""Generation service Protocol and implementations.

A generation service turns a complete ``WizardState`` into a
``GeneratedRequest``. Implementations receive a private copy of the state
and must raise ``GenerationFailure`` (never return a partial result) when
anything goes wrong.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import httpx

from ezfoia.core.config import GenerationConfig
from ezfoia.core.errors import GenerationFailure
from ezfoia.generation.prompts import (
    SYSTEM_PROMPT,
    build_user_prompt,
    estimated_response_time,
    filing_tips,
    format_phrase,
    timeframe_phrase,
)
from ezfoia.llm.client import LLMClient, create_llm_client
from ezfoia.wizard.models import GeneratedRequest, WizardState

logger = logging.getLogger(__name__)


@runtime_checkable
class GenerationService(Protocol):
    """Protocol for request letter generators."""

    async def generate(self, state: WizardState) -> GeneratedRequest: ...


class LLMGenerationService:
    """Generates the letter text with an LLM; response time and tips are deterministic."""

    def __init__(self, client: LLMClient) -> None:
        self._client = client

    async def generate(self, state: WizardState) -> GeneratedRequest:
        prompt = build_user_prompt(state)
        logger.info(
            "Generating request letter agency=%r jurisdiction=%s prompt_length=%d",
            state.agency_name, state.jurisdiction, len(prompt),
        )
        try:
            text = await self._client.generate(prompt, system_prompt=SYSTEM_PROMPT)
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 429:
                logger.warning("Generation rate limited")
                raise GenerationFailure(
                    "Service is busy. Please try again in a moment."
                ) from exc
            if status == 402:
                logger.warning("Generation quota exceeded")
                raise GenerationFailure(
                    "Service temporarily unavailable. Please try again later."
                ) from exc
            logger.error("Generation gateway error: %d", status)
            raise GenerationFailure() from exc
        except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as exc:
            logger.exception("Generation call failed")
            raise GenerationFailure() from exc

        letter = (text or "").strip()
        if not letter:
            raise GenerationFailure("No content in the generated response. Please try again.")

        return GeneratedRequest(
            letter=letter,
            estimated_response_time=estimated_response_time(state.jurisdiction),
            tips=filing_tips(state),
        )

    async def close(self) -> None:
        await self._client.close()


class TemplateGenerationService:
    """Offline generator that fills a fixed request template.

    Used in development and tests when no LLM endpoint is configured.
    """

    async def generate(self, state: WizardState) -> GeneratedRequest:
        agency = state.agency_name.strip()
        lines = [
            f"I am requesting access to records maintained by the {agency} pursuant to "
            "the Freedom of Information Act.",
            "Specifically, I am requesting copies of records related to the following:",
            "",
            f"Subject or Reference: {state.records_description.strip()}",
        ]
        if state.case_number.strip():
            lines.append(f"Case, File, or Reference Number: {state.case_number.strip()}")
        timeframe = timeframe_phrase(state)
        if timeframe:
            lines.append(f"Relevant Date(s) or Date Range: {timeframe}")
        if state.related_names.strip():
            lines.append(f"Related Names or Organizations: {state.related_names.strip()}")
        if state.related_address.strip():
            lines.append(f"Related Address: {state.related_address.strip()}")
        lines.append("")
        if state.additional_context.strip():
            lines.append(state.additional_context.strip())
            lines.append("")
        lines.extend([
            "This request includes any responsive records in the possession, custody, or "
            f"control of the {agency}. It is intended to be reasonably limited in scope.",
            "",
            f"I request that the records be provided in {format_phrase(state)}. "
            "Please do not incur costs exceeding $100 without my approval. If any portion "
            "of the requested records is exempt from disclosure, please provide all "
            "reasonably segregable, non-exempt portions and cite the specific legal basis "
            "for any redactions or withholdings.",
            "",
            "If additional clarification is required to process this request, please "
            "contact me prior to closing or denying the request.",
        ])
        return GeneratedRequest(
            letter="\n".join(lines),
            estimated_response_time=estimated_response_time(state.jurisdiction),
            tips=filing_tips(state),
        )


def create_generation_service(config: GenerationConfig) -> GenerationService:
    """Factory: the template generator, or an LLM-backed one for any LLM provider."""
    if config.provider.lower() == "template":
        return TemplateGenerationService()
    return LLMGenerationService(create_llm_client(config))
