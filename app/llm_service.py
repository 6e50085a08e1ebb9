"""
LLM service - the generative backend for the trip planner.

Talks to any OpenAI-compatible chat completions endpoint (the GitHub Models
Azure endpoint by default). Text in, text out.

Does NOT crash at startup if credentials are missing; each call then raises
GenerationConfigError so the caller can report "API key not configured".
"""

import logging
import os
from typing import Dict, List, Optional

from openai import AsyncOpenAI

from engine.errors import MISSING_CREDENTIALS_MESSAGE, GenerationBackendError, GenerationConfigError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://models.inference.ai.azure.com"
DEFAULT_MODEL = "gpt-4o"


def get_api_key() -> Optional[str]:
    """GITHUB_TOKEN wins over OPENAI_API_KEY when both are set."""
    return os.getenv("GITHUB_TOKEN") or os.getenv("OPENAI_API_KEY")


class LLMService:
    """Chat completion client used for question phrasing and plan generation."""

    def __init__(self):
        self.api_key = get_api_key()
        self.base_url = os.getenv("OPENAI_BASE_URL", DEFAULT_BASE_URL)
        self.model = os.getenv("OPENAI_MODEL", DEFAULT_MODEL)
        self.temperature = float(os.getenv("LLM_TEMPERATURE", "0.7"))
        self.max_tokens = int(os.getenv("LLM_MAX_TOKENS", "2000"))

        self.client: Optional[AsyncOpenAI] = None
        if self.api_key:
            self.client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
            logger.info(f"LLM service configured with model: {self.model} ({self.base_url})")
        else:
            logger.warning("LLM service: no API key configured - generation will fail")

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    async def complete(self, system_prompt: str, messages: List[Dict[str, str]]) -> str:
        """
        Run one chat completion.

        Args:
            system_prompt: Fixed behaviour directive
            messages: Ordered role-tagged messages (user/assistant)

        Returns:
            The reply text

        Raises:
            GenerationConfigError: No API key configured
            GenerationBackendError: The API call failed or returned no content
        """
        if not self.is_configured:
            raise GenerationConfigError(MISSING_CREDENTIALS_MESSAGE)

        payload = [{"role": "system", "content": system_prompt}] + list(messages)
        logger.info(f"Calling LLM ({self.model}) with {len(payload)} messages")

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=payload,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except Exception as e:
            logger.error(f"METRIC llm_api_error model={self.model} error={type(e).__name__}")
            raise GenerationBackendError(f"LLM API error: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            logger.error(f"METRIC llm_empty_response model={self.model}")
            raise GenerationBackendError("No response content from LLM")

        logger.debug(f"LLM raw response: {content[:500]}...")
        return content


# Singleton instance
_llm_service: Optional[LLMService] = None


def get_llm_service() -> LLMService:
    """Get or create the LLM service singleton."""
    global _llm_service
    if _llm_service is None:
        _llm_service = LLMService()
    return _llm_service
