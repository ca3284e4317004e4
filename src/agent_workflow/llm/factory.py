"""Provider registry for model-backed executors."""

import logging
from collections.abc import Callable, Mapping

from agent_workflow.config import LLMConfig
from agent_workflow.llm.openai_provider import OpenAIProvider
from agent_workflow.llm.provider import LLMProvider

logger = logging.getLogger(__name__)

ProviderBuilder = Callable[[LLMConfig], LLMProvider]

DEFAULT_BUILDERS: Mapping[str, ProviderBuilder] = {"openai": OpenAIProvider}


class LLMFactory:
    """Builds providers by the name in `LLMConfig.provider`.

    Each factory owns its registry, seeded with `DEFAULT_BUILDERS` unless
    `builders` is given; `register` only affects that instance.
    """

    def __init__(self, builders: Mapping[str, ProviderBuilder] | None = None) -> None:
        self._builders: dict[str, ProviderBuilder] = {}
        for name, builder in (DEFAULT_BUILDERS if builders is None else builders).items():
            self.register(name, builder)

    def register(self, name: str, builder: ProviderBuilder) -> None:
        self._builders[name.strip().lower()] = builder

    def available(self) -> list[str]:
        return sorted(self._builders)

    def create(self, config: LLMConfig | None = None) -> LLMProvider:
        config = config or LLMConfig()
        builder = self._builders.get(config.provider)
        if builder is None:
            raise ValueError(
                f"Unsupported LLM provider: {config.provider} "
                f"(available: {', '.join(self.available())})"
            )

        logger.info("Creating LLM provider", extra={"provider": config.provider})
        return builder(config)
