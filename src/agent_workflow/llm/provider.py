"""Model collaborator contracts.

The engine only depends on :class:`ModelClient`: a single ``ask`` call that
answers a prompt given earlier conversation turns. :class:`LLMProvider` is the
base for concrete backends and derives ``ask`` and ``generate`` from ``chat``.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

Turn = dict[str, str]


@runtime_checkable
class ModelClient(Protocol):
    """Anything that can answer a prompt given prior conversation turns."""

    def ask(self, prompt: str, conversation_context: Sequence[Turn] = ()) -> str: ...


class LLMProvider(ABC):
    """Base class for chat-completion backends.

    Subclasses implement `chat` and `count_tokens`. Calls are blocking; model
    executors run them in a worker thread.
    """

    @abstractmethod
    def chat(
        self,
        messages: list[Turn],
        max_tokens: int | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> str:
        """Return the assistant reply to a list of 'role'/'content' turns."""

    @abstractmethod
    def count_tokens(self, text: str) -> int:
        """Estimate how many tokens `text` costs with this backend."""

    def generate(
        self,
        prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> str:
        """Single-turn completion."""
        return self.chat(
            [{"role": "user", "content": prompt}],
            max_tokens=max_tokens,
            temperature=temperature,
            **kwargs,
        )

    def ask(self, prompt: str, conversation_context: Sequence[Turn] = ()) -> str:
        """Answer `prompt` as the next user turn after `conversation_context`.

        Args:
            prompt: The user prompt.
            conversation_context: Earlier turns, oldest first. System instructions,
                if any, are expected as the first turn.

        Returns:
            The answer text.
        """
        messages = [dict(turn) for turn in conversation_context]
        messages.append({"role": "user", "content": prompt})
        return self.chat(messages)
