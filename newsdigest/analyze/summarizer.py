"""Item summarization via provider-agnostic LLM client."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from newsdigest.config import Settings
    from newsdigest.storage.cache import SummaryCache

from newsdigest.llm import LLMClient, LLMError, create_client
from newsdigest.logging_config import get_logger
from newsdigest.models import SummaryDepth

from .prompts import DEPTH_MAX_TOKENS, ITEM_SUMMARY_USER, build_system_prompt

logger = get_logger("summarizer")

FALLBACK_SUMMARY_CHARS = 240
MAX_PROMPT_CONTENT_CHARS = 30000


def _squash(text: str) -> str:
    return re.sub(r"\s+", " ", text.strip())


def truncate_content(content: str, limit: int = FALLBACK_SUMMARY_CHARS) -> str:
    """Deterministic fallback summary: whitespace-collapsed content, cut at limit."""
    return _squash(content)[:limit]


def local_summary(title: str, content: str, limit: int = FALLBACK_SUMMARY_CHARS) -> str:
    """Summary used when no LLM is configured."""
    trimmed = _squash(content)
    ellipsis = "..." if len(trimmed) > limit else ""
    return f"{title}: {trimmed[:limit]}{ellipsis}"


class Summarizer:
    """
    Summarizes one item at a time.

    Without an LLM client every summary is produced locally. With one,
    provider failures raise LLMError; callers decide the fallback.
    """

    def __init__(
        self,
        client: LLMClient | None = None,
        cache: SummaryCache | None = None,
        model_name: str | None = None,
    ):
        self.client = client
        self.cache = cache
        self.model_name = model_name

    @classmethod
    def from_settings(cls, settings: Settings, use_cache: bool = True) -> Summarizer:
        """Build a summarizer from settings; local-only when no API key is set."""
        if not settings.llm_api_key:
            logger.info("No LLM API key configured, using local summaries")
            return cls()

        client = create_client(
            provider=settings.llm_provider,
            api_key=settings.llm_api_key,
            model=settings.llm_model,
            max_retries=settings.llm_retries,
            timeout=float(settings.summary_timeout_seconds),
        )

        cache = None
        if use_cache:
            from newsdigest.storage.cache import SummaryCache

            cache = SummaryCache(settings.db_path, default_ttl_days=settings.cache_ttl_days)

        return cls(client=client, cache=cache, model_name=settings.llm_model)

    @property
    def is_local(self) -> bool:
        return self.client is None

    def summarize(
        self,
        title: str,
        content: str,
        language: str = "en",
        depth: SummaryDepth = SummaryDepth.SHORT,
        url: str | None = None,
    ) -> str:
        """Generate a summary for a single item."""
        if self.client is None:
            return local_summary(title, content)

        cache_key = None
        if self.cache and self.model_name and url:
            from newsdigest.storage.cache import make_cache_key

            cache_key = make_cache_key(url, self.model_name, language, depth.value)
            try:
                cached = self.cache.get(cache_key)
                if cached is not None:
                    return cached
            except Exception as exc:
                logger.warning(f"Cache read failed, falling through to LLM: {exc}")
                cache_key = None

        logger.debug(f"Summarizing: {title[:50]}...")

        if len(content) > MAX_PROMPT_CONTENT_CHARS:
            content = content[:MAX_PROMPT_CONTENT_CHARS] + "\n\n[Content truncated...]"

        response = self.client.generate(
            prompt=ITEM_SUMMARY_USER.format(title=title, content=content),
            system=build_system_prompt(language, depth),
            max_tokens=DEPTH_MAX_TOKENS[depth],
        )
        summary = response.text.strip()
        if not summary:
            raise LLMError("Empty summary returned")

        logger.debug(f"Summary generated ({response.tokens_used} tokens)")

        if cache_key:
            try:
                self.cache.set(cache_key, summary)
            except Exception as exc:
                logger.warning(f"Cache write failed, keeping summary: {exc}")

        return summary
