"""Provider-agnostic LLM interface and shared types."""

from dataclasses import dataclass
from typing import Protocol


class LLMError(Exception):
    """Raised when an LLM provider call fails."""


@dataclass
class LLMResponse:
    """Provider-agnostic text completion."""

    text: str
    input_tokens: int
    output_tokens: int

    @property
    def tokens_used(self) -> int:
        return self.input_tokens + self.output_tokens


class LLMClient(Protocol):
    """Protocol that all LLM providers must implement."""

    def generate(
        self,
        prompt: str,
        system: str,
        max_tokens: int = 512,
    ) -> LLMResponse:
        """Generate a plain-text completion."""
        ...
