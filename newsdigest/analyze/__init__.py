"""Analysis module - LLM-powered item summaries."""

from .prompts import build_system_prompt
from .summarizer import (
    FALLBACK_SUMMARY_CHARS,
    Summarizer,
    local_summary,
    truncate_content,
)

__all__ = [
    "FALLBACK_SUMMARY_CHARS",
    "Summarizer",
    "build_system_prompt",
    "local_summary",
    "truncate_content",
]
