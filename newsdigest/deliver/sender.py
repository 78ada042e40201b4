"""Digest delivery through the Resend API."""

from typing import NamedTuple

import resend

from newsdigest.logging_config import get_logger
from newsdigest.models import Digest

from .renderer import EmailRenderer, settings_urls, subject_line

logger = get_logger("email")


class SendResult(NamedTuple):
    """Outcome of one delivery attempt."""

    success: bool
    email_id: str | None = None
    error: str | None = None


class EmailSender:
    """
    Sends rendered digests.

    Without a Resend API key nothing leaves the process: the send is
    logged and reported as successful so local runs complete.
    """

    def __init__(
        self,
        api_key: str | None = None,
        from_address: str = "AI Daily Digest <digest@localhost>",
        renderer: EmailRenderer | None = None,
    ):
        self.api_key = api_key
        self.from_address = from_address
        self.renderer = renderer or EmailRenderer()

    @property
    def is_mock(self) -> bool:
        return not self.api_key

    def send_digest(
        self,
        to: str,
        digest: Digest,
        user_name: str | None,
        app_base_url: str,
    ) -> SendResult:
        """Render and send a digest. Never raises; failures come back in the result."""
        preferences_url, unsubscribe_url = settings_urls(app_base_url)

        try:
            html = self.renderer.render_html(digest, user_name, preferences_url, unsubscribe_url)
            text = self.renderer.render_text(digest, user_name, preferences_url, unsubscribe_url)
        except Exception as exc:
            logger.error(f"Failed to render digest {digest.id}: {exc}")
            return SendResult(success=False, error=f"Render failed: {exc}")

        if self.is_mock:
            logger.info(f"[email:mock] to={to} items={len(digest.items)}")
            return SendResult(success=True, email_id=None)

        return self._send(
            to=to,
            subject=subject_line(digest),
            html=html,
            text=text,
        )

    def send_test_email(self, to: str) -> SendResult:
        """Send a minimal message to verify delivery configuration."""
        if self.is_mock:
            logger.info(f"[email:mock] test to={to}")
            return SendResult(success=True)

        return self._send(
            to=to,
            subject="AI Daily Digest · test",
            html="<p>Your digest delivery is configured correctly.</p>",
            text="Your digest delivery is configured correctly.",
        )

    def _send(self, to: str, subject: str, html: str, text: str) -> SendResult:
        resend.api_key = self.api_key
        params: resend.Emails.SendParams = {
            "from": self.from_address,
            "to": [to],
            "subject": subject,
            "html": html,
            "text": text,
        }

        try:
            response = resend.Emails.send(params)
        except Exception as exc:
            logger.error(f"Resend send failed for {to}: {exc}")
            return SendResult(success=False, error=str(exc))

        email_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
        logger.info(f"Sent digest email to {to} (id={email_id})")
        return SendResult(success=True, email_id=email_id)
