"""Coarse topic tagging from item titles."""

# Ordered rules; the first family with a matching needle wins.
TOPIC_RULES: list[tuple[str, tuple[str, ...]]] = [
    ("LLM", ("llm", "language model")),
    ("Computer Vision", ("vision",)),
    ("Robotics", ("robot",)),
    ("AI Policy", ("regulation", "policy")),
    ("Agents", ("agent",)),
]


def infer_topic(title: str) -> str | None:
    """Return the topic of the first rule whose keyword appears in the title."""
    lowered = title.lower()
    for topic, needles in TOPIC_RULES:
        if any(needle in lowered for needle in needles):
            return topic
    return None
