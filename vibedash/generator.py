"""Fallback widget generator: asks Claude for a self-contained HTML widget.

Used by the router when no data source is confident enough. Generated widgets
are static: no refresh interval, and the HTML lives in render["config"] so it
survives persistence.

The API key comes from the constructor or from an untracked
vibedash/anthropic_credentials.py defining ANTHROPIC_API_KEY.
"""

import re

from vibedash.results import (
    BAD_PAYLOAD, NETWORK, NO_CREDENTIALS, RATE_LIMITED, Error, Success, WidgetDescriptor,
)

SOURCE_ID = "ai-generated"
MODEL = "claude-sonnet-4-5-20250929"
MAX_TOKENS = 4096
TITLE_MAX = 40

SYSTEM_PROMPT = """You are a dashboard widget generator. Given a user's request, produce a single self-contained HTML document that visualizes or implements what they asked for.

Rules:
- Output ONLY the HTML. No markdown fences, no explanation, no commentary.
- The HTML must be completely self-contained: inline <style> and <script> tags.
- Dark theme: use background-color: transparent or #1a1a2e. Text color: #e0e0e0. Accent color: #6c63ff.
- The widget renders inside a fixed-size frame. Use width: 100% and height: 100%. Use flexbox for layout.
- You may load libraries from CDN (cdnjs.cloudflare.com, cdn.jsdelivr.net, unpkg.com) if needed.
- Do not use document.cookie, localStorage, credentialed requests, or form submission.
- If the request involves live data you cannot access, create a realistic static mockup and label it as sample data.
- Keep it simple. One clear visualization or interaction per widget."""

_FRAGMENT_WRAPPER = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><style>
  * {{ margin: 0; padding: 0; box-sizing: border-box; }}
  body {{ background: transparent; color: #e0e0e0; font-family: system-ui, sans-serif; width: 100%; height: 100vh; display: flex; align-items: center; justify-content: center; }}
</style></head>
<body>{body}</body>
</html>"""

_FENCE = re.compile(r"^```(?:html)?\s*\n(.*?)\n```\s*$", re.DOTALL | re.IGNORECASE)
_ANY_TAG = re.compile(r"<[a-z][\s\S]*>", re.IGNORECASE)
_DOCUMENT = re.compile(r"<html|<!doctype", re.IGNORECASE)
_MEDIUM_WORDS = re.compile(r"\b(chart|graph|table|list|calendar|schedule|timeline)\b")
_LARGE_WORDS = re.compile(r"\b(dashboard|overview|summary|full)\b")


def build_prompt(intent):
    p = intent.params
    parts = [f'Create a dashboard widget for: "{intent.raw or intent.subject}"']
    if p.period:
        parts.append(f"Time period: {p.period}")
    if p.display_format:
        parts.append(f"Display as: {p.display_format}")
    if p.size:
        parts.append(f"Size preference: {p.size}")
    if p.count:
        parts.append(f"Show {p.count} items")
    return "\n".join(parts)


def extract_html(content):
    """Strip a code fence and wrap fragments. None if there's no HTML at all."""
    html = content.strip()
    m = _FENCE.match(html)
    if m:
        html = m.group(1).strip()
    if not _ANY_TAG.search(html):
        return None
    if not _DOCUMENT.search(html):
        html = _FRAGMENT_WRAPPER.format(body=html)
    return html


def make_title(intent):
    subject = intent.subject or intent.raw
    titled = " ".join(w[:1].upper() + w[1:] for w in subject.split())
    if len(titled) > TITLE_MAX:
        return titled[:TITLE_MAX - 3] + "..."
    return titled


def size_hint(intent):
    if intent.params.size:
        return intent.params.size
    raw = intent.raw.lower()
    if _MEDIUM_WORDS.search(raw):
        return "medium"
    if _LARGE_WORDS.search(raw):
        return "large"
    return "medium"


def _error(message, retryable, code):
    return Error(message=message, retryable=retryable, code=code, source=SOURCE_ID)


class WidgetGenerator:

    def __init__(self, api_key=None, model=MODEL, client=None):
        self._api_key = api_key
        self.model = model
        self._client = client

    def _get_client(self):
        if self._client is None:
            api_key = self._api_key
            if api_key is None:
                try:
                    from vibedash.anthropic_credentials import ANTHROPIC_API_KEY as api_key
                except ImportError:
                    return None
            if not api_key:
                return None
            import anthropic
            self._client = anthropic.AsyncAnthropic(api_key=api_key)
        return self._client

    async def resolve(self, intent):
        client = self._get_client()
        if client is None:
            return _error("Custom widgets need an Anthropic API key "
                          "(ANTHROPIC_API_KEY in vibedash/anthropic_credentials.py).",
                          False, NO_CREDENTIALS)

        import anthropic
        try:
            resp = await client.messages.create(
                model=self.model,
                max_tokens=MAX_TOKENS,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": build_prompt(intent)}],
            )
        except (anthropic.AuthenticationError, anthropic.PermissionDeniedError):
            return _error("The Anthropic API key is invalid or expired.", False, NO_CREDENTIALS)
        except anthropic.RateLimitError:
            return _error("AI service rate limit reached. Try again in a moment.", True, RATE_LIMITED)
        except anthropic.APIConnectionError:
            return _error("Network error calling the AI service. Check your connection.", True, NETWORK)
        except anthropic.APIStatusError as e:
            return _error(f"AI service returned status {e.status_code}.", True, NETWORK)

        content = "".join(getattr(block, "text", "") for block in resp.content or [])
        if not content.strip():
            return _error("The AI didn't produce a response. Try rephrasing your request.",
                          False, BAD_PAYLOAD)
        html = extract_html(content)
        if html is None:
            return _error("The AI response didn't contain HTML. Try being more specific.",
                          False, BAD_PAYLOAD)

        return Success(WidgetDescriptor(
            source_id=SOURCE_ID,
            title=make_title(intent),
            size=size_hint(intent),
            refresh_interval_ms=None,
            data=None,
            render={"type": "html-block", "config": {"html": html}},
            resolved_intent=intent,
        ))
