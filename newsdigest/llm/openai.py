"""OpenAI implementation of the LLM client interface."""

from typing import Any

from openai import OpenAI

from .base import LLMError, LLMResponse


class OpenAIClient:
    """OpenAI LLM provider."""

    def __init__(self, api_key: str, model: str, timeout: float = 30.0):
        self.client = OpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        self.model = model

    def generate(self, prompt: str, system: str, max_tokens: int = 512) -> LLMResponse:
        """Generate a completion with OpenAI chat completions."""
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                temperature=0.2,
                max_tokens=max_tokens,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
            )
        except Exception as exc:  # pragma: no cover - provider SDK behavior
            raise LLMError(f"OpenAI API call failed: {exc}") from exc

        message = response.choices[0].message if response.choices else None
        text = _extract_openai_text(message).strip()

        usage = getattr(response, "usage", None)
        input_tokens = int(getattr(usage, "prompt_tokens", 0) or 0) if usage else 0
        output_tokens = int(getattr(usage, "completion_tokens", 0) or 0) if usage else 0

        return LLMResponse(text=text, input_tokens=input_tokens, output_tokens=output_tokens)


def _extract_openai_text(message: Any) -> str:
    """Extract text content from an OpenAI response message."""
    if message is None:
        return ""

    content = getattr(message, "content", "")
    if content is None:
        return ""
    if isinstance(content, str):
        return content

    if isinstance(content, list):
        text_parts: list[str] = []
        for part in content:
            if isinstance(part, dict):
                if part.get("type") == "text" and isinstance(part.get("text"), str):
                    text_parts.append(part["text"])
            else:
                text_value = getattr(part, "text", None)
                if isinstance(text_value, str):
                    text_parts.append(text_value)
        return "\n".join(text_parts)

    return str(content)
