"""Chat-completions backend for model executors."""

import logging
from typing import Any

from openai import OpenAI

from agent_workflow.config import LLMConfig
from agent_workflow.llm.provider import LLMProvider, Turn

logger = logging.getLogger(__name__)

# Coarse estimate for English text.
_CHARS_PER_TOKEN = 4


class OpenAIProvider(LLMProvider):
    """Talks to the OpenAI chat-completions API, or any compatible endpoint."""

    def __init__(self, config: LLMConfig, client: OpenAI | None = None) -> None:
        """Build the provider from `config`.

        Raises:
            ValueError: If no client is injected and no API key is configured.
        """
        if client is None and not config.openai_api_key:
            raise ValueError("OpenAI API key is required")

        self.config = config
        self.client = client or OpenAI(
            api_key=config.openai_api_key,
            base_url=config.openai_base_url,
            timeout=config.request_timeout,
            max_retries=config.max_retries,
        )
        self.model = config.openai_model
        self.temperature = config.openai_temperature

        logger.info("OpenAI provider ready", extra={"model": self.model})

    def chat(
        self,
        messages: list[Turn],
        max_tokens: int | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,  # type: ignore[arg-type]
            max_tokens=max_tokens,
            temperature=self.temperature if temperature is None else temperature,
            **kwargs,
        )
        content = response.choices[0].message.content or ""

        logger.debug(
            "Chat completion returned",
            extra={"model": self.model, "turns": len(messages), "chars": len(content)},
        )
        return content

    def count_tokens(self, text: str) -> int:
        return len(text) // _CHARS_PER_TOKEN
