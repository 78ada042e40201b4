"""Retry wrapper applied to every provider client."""

from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from newsdigest.logging_config import get_logger

from .base import LLMClient, LLMError, LLMResponse

logger = get_logger("llm.retry")


class RetryClient:
    """Retries LLMError failures from the wrapped client with exponential backoff."""

    def __init__(
        self,
        inner: LLMClient,
        max_retries: int = 2,
        min_wait: float = 1.0,
        max_wait: float = 10.0,
    ):
        self.inner = inner
        self.max_retries = max_retries
        self.min_wait = min_wait
        self.max_wait = max_wait

    def generate(self, prompt: str, system: str, max_tokens: int = 512) -> LLMResponse:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.min_wait, min=self.min_wait, max=self.max_wait),
            retry=retry_if_exception_type(LLMError),
            before_sleep=self._log_retry,
            reraise=True,
        )
        return retrying(self.inner.generate, prompt, system, max_tokens)

    @staticmethod
    def _log_retry(retry_state) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(f"LLM call failed (attempt {retry_state.attempt_number}), retrying: {error}")
