"""Tech news from the HackerNews Algolia search API.

Handles:
    "hacker news"             -> front page
    "rust news"               -> stories matching "rust"
    "top 5 stories about ai"
"""

import re

from vibedash.results import BAD_PAYLOAD, Error, Success, WidgetDescriptor
from vibedash.sources.http import FetchError, fetch_json

_SEARCH_URL = "https://hn.algolia.com/api/v1/search"
_ITEM_URL = "https://news.ycombinator.com/item?id={}"

REFRESH_MS = 300_000
DEFAULT_COUNT = 8
MIN_COUNT, MAX_COUNT = 3, 15

_NEWS_WORDS = re.compile(
    r"\b(news|headlines?|articles?|stories|hacker\s*news|hackernews|hn|tech\s+news|"
    r"top\s+stories|front\s+page)\b")
_TRENDING_WORDS = re.compile(r"\b(trending|latest|what's\s+new|what's\s+happening)\b")

_TOPIC_FALLBACKS = [
    re.compile(r"\b(?:news|headlines?|stories|articles)\s+(?:about|on|for|regarding)\s+(.+)"),
    re.compile(r"\b(.+?)\s+(?:news|headlines?|stories|articles)\b"),
]
_NOT_A_TOPIC = re.compile(r"^(in|at|near|show|get|my|the|hacker|tech|top|latest)\b")


def _topic_from_subject(subject):
    lower = subject.lower()
    for pat in _TOPIC_FALLBACKS:
        m = pat.search(lower)
        if m:
            candidate = re.sub(r"^(?:the|a|an|some)\s+", "", m.group(1).strip())
            if len(candidate) >= 2 and not _NOT_A_TOPIC.match(candidate):
                return candidate
    return None


def _clamp_count(count):
    if not count:
        return DEFAULT_COUNT
    return max(MIN_COUNT, min(MAX_COUNT, int(count)))


def _story(hit):
    item_url = _ITEM_URL.format(hit.get("objectID"))
    return {
        "title": hit.get("title") or hit.get("story_title") or "(untitled)",
        "url": hit.get("url") or item_url,
        "author": hit.get("author"),
        "points": hit.get("points"),
        "comment_count": hit.get("num_comments"),
        "comment_url": item_url,
        "created_at": hit.get("created_at"),
    }


class NewsSource:
    id = "news"

    def match(self, intent):
        text = f"{intent.subject} {intent.raw}".lower()
        if _NEWS_WORDS.search(text):
            # a topic outbids crypto's 0.9 for "bitcoin news"
            return 0.95 if (intent.params.topic or intent.params.query) else 0.75
        if _TRENDING_WORDS.search(text):
            return 0.65
        return 0.0

    async def resolve(self, intent):
        p = intent.params
        topic = p.topic or p.query or _topic_from_subject(intent.subject)
        count = _clamp_count(p.count)

        if topic:
            params = {"query": topic, "tags": "story", "hitsPerPage": count}
        else:
            params = {"tags": "front_page", "hitsPerPage": count}
        try:
            body = await fetch_json(_SEARCH_URL, self.id, "news", params=params)
        except FetchError as e:
            return e.error

        hits = body.get("hits") if isinstance(body, dict) else None
        if hits is None:
            return Error(message="Invalid response from HackerNews.",
                         retryable=True, code=BAD_PAYLOAD, source=self.id)
        if not hits:
            message = f'No news stories found for "{topic}".' if topic else "No front page stories found."
            return Error(message=message, retryable=True, code=BAD_PAYLOAD, source=self.id)

        title = f"News — {topic.title()}" if topic else "HackerNews — Front Page"
        return Success(WidgetDescriptor(
            source_id=self.id,
            title=title,
            size=p.size or "medium",
            refresh_interval_ms=REFRESH_MS,
            data={"topic": topic, "stories": [_story(h) for h in hits[:count]]},
            render={"type": "news-card", "config": {"topic": topic, "source": "hackernews"}},
            resolved_intent=intent,
        ))
