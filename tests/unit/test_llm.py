"""Unit tests for the LLM provider layer."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from agent_workflow.config import LLMConfig
from agent_workflow.llm import LLMFactory, LLMProvider, ModelClient
from agent_workflow.llm.openai_provider import OpenAIProvider


def _completion(content: str | None) -> SimpleNamespace:
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def test_openai_provider_requires_api_key() -> None:
    with pytest.raises(ValueError):
        OpenAIProvider(LLMConfig(openai_api_key=None))


def test_openai_provider_ask_sends_conversation(llm_config: LLMConfig) -> None:
    client = MagicMock()
    client.chat.completions.create.return_value = _completion("Paris")
    provider = OpenAIProvider(llm_config, client=client)

    answer = provider.ask(
        "And its capital?",
        [{"role": "user", "content": "Pick a country"}, {"role": "assistant", "content": "France"}],
    )

    assert answer == "Paris"
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["temperature"] == 0.7
    assert kwargs["messages"][-1] == {"role": "user", "content": "And its capital?"}
    assert len(kwargs["messages"]) == 3


def test_openai_provider_handles_empty_content(llm_config: LLMConfig) -> None:
    client = MagicMock()
    client.chat.completions.create.return_value = _completion(None)
    provider = OpenAIProvider(llm_config, client=client)

    assert provider.generate("anything", temperature=0.0) == ""
    assert client.chat.completions.create.call_args.kwargs["temperature"] == 0.0


def test_openai_provider_is_a_model_client(llm_config: LLMConfig) -> None:
    provider = OpenAIProvider(llm_config, client=MagicMock())

    assert isinstance(provider, LLMProvider)
    assert isinstance(provider, ModelClient)
    assert provider.count_tokens("x" * 40) == 10


def test_factory_creates_openai_provider(llm_config: LLMConfig) -> None:
    provider = LLMFactory().create(llm_config)

    assert isinstance(provider, OpenAIProvider)


def test_factory_rejects_unknown_provider(llm_config: LLMConfig) -> None:
    config = llm_config.model_copy(update={"provider": "nope"})

    with pytest.raises(ValueError, match="available: openai"):
        LLMFactory().create(config)


def test_factory_uses_registered_builder() -> None:
    built: list[LLMConfig] = []

    def build(config: LLMConfig) -> LLMProvider:
        built.append(config)
        return OpenAIProvider(config, client=MagicMock())

    factory = LLMFactory()
    factory.register(" Local ", build)
    config = LLMConfig(provider="local", openai_api_key="test-key")

    provider = factory.create(config)

    assert isinstance(provider, OpenAIProvider)
    assert built == [config]
    assert factory.available() == ["local", "openai"]
    assert LLMFactory().available() == ["openai"]


def test_factory_with_explicit_builders_skips_defaults() -> None:
    factory = LLMFactory({"stub": lambda config: OpenAIProvider(config, client=MagicMock())})

    assert factory.available() == ["stub"]
    with pytest.raises(ValueError, match="available: stub"):
        factory.create(LLMConfig(openai_api_key="test-key"))
