"""
Email rendering for digests.

HTML is rendered through an autoescaping Jinja2 environment so titles,
summaries and URLs from feeds can't inject markup.
"""

from datetime import UTC, datetime

from jinja2 import Environment

from newsdigest.models import Digest

BRAND = "AI Daily Digest"

HTML_TEMPLATE = """<!doctype html>
<html lang="en">
  <body style="margin:0;background:#eef3ff;font-family:Arial,sans-serif;color:#111827;">
    <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="padding:24px 12px;">
      <tr>
        <td align="center">
          <table role="presentation" width="640" cellspacing="0" cellpadding="0" style="max-width:640px;width:100%;background:#ffffff;border-radius:14px;padding:24px;">
            <tr>
              <td>
                <p style="margin:0 0 8px;font-size:12px;letter-spacing:0.04em;color:#5b687f;text-transform:uppercase;">{{ brand }}</p>
                <h1 style="margin:0 0 8px;font-size:28px;line-height:1.2;color:#0a1221;">Your AI Briefing{% if user_name %}, {{ user_name }}{% endif %}</h1>
                <p style="margin:0 0 20px;font-size:14px;color:#5b687f;">Generated {{ generated_at }}</p>
                {% for item in items %}
                <article style="padding:16px 0;border-bottom:1px solid #d8dde6;">
                  <a href="{{ item.url }}" style="font-size:18px;font-weight:700;color:#0a1221;text-decoration:none;">{{ item.title }}</a>
                  <p style="margin:8px 0 4px;font-size:12px;color:#506079;">{{ item.source_label }} · {{ item.published_at | when }}</p>
                  <p style="margin:0;font-size:14px;line-height:1.6;color:#111827;">{{ item.summary }}</p>
                </article>
                {% else %}
                <p style="font-size:14px;color:#5b687f;">No new items matched your sources today.</p>
                {% endfor %}
                <footer style="padding-top:20px;font-size:12px;color:#5b687f;">
                  <p>Powered by {{ brand }}</p>
                  <p>
                    <a href="{{ preferences_url }}" style="color:#1f5bff;">Manage preferences</a>
                    &nbsp;·&nbsp;
                    <a href="{{ unsubscribe_url }}" style="color:#1f5bff;">Unsubscribe</a>
                  </p>
                </footer>
              </td>
            </tr>
          </table>
        </td>
      </tr>
    </table>
  </body>
</html>"""

TEXT_TEMPLATE = """{{ brand | upper }}
Your AI Briefing{% if user_name %}, {{ user_name }}{% endif %}
Generated {{ generated_at }}
{% for item in items %}
{{ loop.index }}. {{ item.title }}
   {{ item.source_label }} · {{ item.published_at | when }}
   {{ item.summary }}
   {{ item.url }}
{% else %}
No new items matched your sources today.
{% endfor %}
--
Manage preferences: {{ preferences_url }}
Unsubscribe: {{ unsubscribe_url }}
"""


def _format_when(value: datetime) -> str:
    return value.astimezone(UTC).strftime("%b %d, %Y %H:%M UTC")


def settings_urls(app_base_url: str) -> tuple[str, str]:
    """(preferences_url, unsubscribe_url) for the web app."""
    base = app_base_url.rstrip("/")
    return f"{base}/settings", f"{base}/settings?tab=delivery"


def subject_line(digest: Digest) -> str:
    return f"{BRAND} · {digest.generated_at.strftime('%b %d, %Y')}"


class EmailRenderer:
    """Renders a digest to HTML and plain-text email bodies."""

    def __init__(self):
        html_env = Environment(autoescape=True)
        html_env.filters["when"] = _format_when
        self._html = html_env.from_string(HTML_TEMPLATE)

        text_env = Environment(autoescape=False, keep_trailing_newline=True)
        text_env.filters["when"] = _format_when
        self._text = text_env.from_string(TEXT_TEMPLATE)

    def _context(
        self,
        digest: Digest,
        user_name: str | None,
        preferences_url: str,
        unsubscribe_url: str,
    ) -> dict:
        return {
            "brand": BRAND,
            "user_name": user_name,
            "generated_at": _format_when(digest.generated_at),
            "items": digest.items,
            "preferences_url": preferences_url,
            "unsubscribe_url": unsubscribe_url,
        }

    def render_html(
        self,
        digest: Digest,
        user_name: str | None,
        preferences_url: str,
        unsubscribe_url: str,
    ) -> str:
        return self._html.render(**self._context(digest, user_name, preferences_url, unsubscribe_url))

    def render_text(
        self,
        digest: Digest,
        user_name: str | None,
        preferences_url: str,
        unsubscribe_url: str,
    ) -> str:
        return self._text.render(**self._context(digest, user_name, preferences_url, unsubscribe_url))
