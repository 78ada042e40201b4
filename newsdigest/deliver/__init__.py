"""Delivery - render digests and send them by email."""

from .sender import EmailSender, SendResult
from .renderer import EmailRenderer, settings_urls, subject_line

__all__ = ["EmailRenderer", "EmailSender", "SendResult", "settings_urls", "subject_line"]
