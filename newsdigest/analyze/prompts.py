"""
Prompt templates for LLM interactions.

Design philosophy:
- One short system instruction carrying language and depth
- Plain-text output, no JSON; the summary is stored verbatim
"""

from newsdigest.models import SummaryDepth

DEPTH_INSTRUCTIONS: dict[SummaryDepth, str] = {
    SummaryDepth.HEADLINES: "Return one concise headline sentence.",
    SummaryDepth.SHORT: "Return 2-3 concise sentences.",
    SummaryDepth.DETAILED: "Return one informative paragraph.",
}

# Output budget per depth, in tokens
DEPTH_MAX_TOKENS: dict[SummaryDepth, int] = {
    SummaryDepth.HEADLINES: 60,
    SummaryDepth.SHORT: 200,
    SummaryDepth.DETAILED: 400,
}

ITEM_SUMMARY_SYSTEM = "You summarize AI news for daily digests. Language: {language}. {instruction}"

ITEM_SUMMARY_USER = """Title: {title}

Content:
{content}"""


def build_system_prompt(language: str, depth: SummaryDepth) -> str:
    return ITEM_SUMMARY_SYSTEM.format(language=language, instruction=DEPTH_INSTRUCTIONS[depth])
