"""
HTML-to-text helpers for feed entry bodies.
"""

import re

from bs4 import BeautifulSoup

NEWSLETTER_ARTIFACTS = [
    r"subscribe to our newsletter[^.]*\.?",
    r"click here to (?:read|view)[^.]*\.?",
    r"view (?:this email )?in (?:your )?browser[^.]*\.?",
    r"unsubscribe[^.]*\.?",
    r"the post .{1,200} appeared first on .+?\.",
]

_ARTIFACT_PATTERN = re.compile("|".join(NEWSLETTER_ARTIFACTS), re.IGNORECASE)

STRIP_TAGS = ["script", "style", "noscript", "iframe", "form", "nav", "footer"]


def extract_text_content(html: str) -> str:
    """Convert an HTML fragment into readable text, marking headings."""
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")

    for tag in soup(STRIP_TAGS):
        tag.decompose()

    for heading in soup.find_all(["h1", "h2", "h3", "h4"]):
        level = int(heading.name[1])
        heading.replace_with(f"\n\n{'#' * level} {heading.get_text(' ', strip=True)}\n\n")

    for block in soup.find_all(["p", "li", "br", "div"]):
        block.insert_after("\n")

    return clean_text(soup.get_text())


def clean_text(text: str) -> str:
    """Normalize whitespace and drop common newsletter boilerplate."""
    text = _ARTIFACT_PATTERN.sub("", text)
    text = re.sub(r"[ \t\xa0]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def make_snippet(html: str) -> str:
    """Plain-text snippet of an entry body on a single line."""
    text = extract_text_content(html)
    return re.sub(r"\s+", " ", text).strip()
