"""Google Gemini implementation of the LLM client interface."""

from google import genai
from google.genai import types

from .base import LLMError, LLMResponse


class GeminiClient:
    """Google Gemini LLM provider."""

    def __init__(self, api_key: str, model: str, timeout: float = 30.0):
        self.client = genai.Client(api_key=api_key)
        self.model = model
        self.timeout_ms = int(timeout * 1000)

    def generate(self, prompt: str, system: str, max_tokens: int = 512) -> LLMResponse:
        """Generate a completion with Gemini."""
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    system_instruction=system,
                    temperature=0.2,
                    max_output_tokens=max_tokens,
                    http_options=types.HttpOptions(timeout=self.timeout_ms),
                ),
            )
        except Exception as exc:  # pragma: no cover - provider SDK behavior
            raise LLMError(f"Gemini API call failed: {exc}") from exc

        text = (getattr(response, "text", "") or "").strip()

        usage = getattr(response, "usage_metadata", None)
        input_tokens = int(getattr(usage, "prompt_token_count", 0) or 0) if usage else 0
        output_tokens = int(getattr(usage, "candidates_token_count", 0) or 0) if usage else 0

        return LLMResponse(text=text, input_tokens=input_tokens, output_tokens=output_tokens)
