"""Anthropic implementation of the LLM client interface."""

from typing import Any

from anthropic import Anthropic

from .base import LLMError, LLMResponse


class AnthropicClient:
    """Anthropic LLM provider."""

    def __init__(self, api_key: str, model: str, timeout: float = 30.0):
        self.client = Anthropic(api_key=api_key, timeout=timeout, max_retries=0)
        self.model = model

    def generate(self, prompt: str, system: str, max_tokens: int = 512) -> LLMResponse:
        """Generate a completion with the Anthropic messages API."""
        try:
            response = self.client.messages.create(
                model=self.model,
                system=system,
                max_tokens=max_tokens,
                temperature=0.2,
                messages=[{"role": "user", "content": prompt}],
            )
        except Exception as exc:  # pragma: no cover - provider SDK behavior
            raise LLMError(f"Anthropic API call failed: {exc}") from exc

        text = _extract_anthropic_text(response.content).strip()

        usage = getattr(response, "usage", None)
        input_tokens = int(getattr(usage, "input_tokens", 0) or 0) if usage else 0
        output_tokens = int(getattr(usage, "output_tokens", 0) or 0) if usage else 0

        return LLMResponse(text=text, input_tokens=input_tokens, output_tokens=output_tokens)


def _extract_anthropic_text(blocks: Any) -> str:
    """Extract text content from Anthropic response blocks."""
    if not blocks:
        return ""

    text_parts: list[str] = []
    for block in blocks:
        if isinstance(block, dict):
            if block.get("type") == "text" and isinstance(block.get("text"), str):
                text_parts.append(block["text"])
            continue

        if getattr(block, "type", None) == "text" and isinstance(getattr(block, "text", None), str):
            text_parts.append(block.text)

    return "\n".join(text_parts)
