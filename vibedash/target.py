"""Target resolution: which existing widget does a modify/remove utterance mean?

Rules, first decisive one wins:
    1. no widgets                       -> nothing to target ("empty")
    2. exactly one widget               -> that one, whatever the words say
    3. coin param, then location param  -> the single widget whose resolved
                                           intent carries the same value
    4. keywords from subject + raw text -> the single widget with strictly
                                           the most keyword hits
    5. otherwise                        -> ambiguous; the caller asks the user
"""

import re
from dataclasses import dataclass

from vibedash.results import Widget

# Words that say what to do, not which widget to do it to
_STOP_WORDS = {
    "remove", "delete", "close", "dismiss", "hide", "clear", "get", "rid", "of",
    "change", "make", "update", "switch", "modify", "resize", "convert", "set",
    "turn", "expand", "shrink", "enlarge", "show",
    "it", "that", "this", "the", "a", "an", "one", "widget", "widgets", "my",
    "bigger", "smaller", "big", "small", "large", "larger", "medium", "compact",
    "tiny", "as", "to", "into", "please", "now", "me", "and",
    "in", "on", "at", "for", "with", "from", "by", "about",
    "chart", "table", "card",
}


@dataclass
class Target:
    widget: Widget    # None when nothing was selected
    reason: str       # "empty", "only", "coin", "location", "keyword", "ambiguous"

    @property
    def found(self):
        return self.widget is not None


def resolve_target(intent, widgets):
    widgets = list(widgets)
    if not widgets:
        return Target(None, "empty")
    if len(widgets) == 1:
        return Target(widgets[0], "only")

    coin = intent.params.coin
    if coin:
        matches = [w for w in widgets if w.resolved_intent.params.coin == coin]
        if len(matches) == 1:
            return Target(matches[0], "coin")

    location = intent.params.location
    if location:
        loc = location.lower()
        matches = [w for w in widgets
                   if (w.resolved_intent.params.location or "").lower() == loc]
        if len(matches) == 1:
            return Target(matches[0], "location")

    best = _best_keyword_match(keywords(intent), widgets)
    if best is not None:
        return Target(best, "keyword")
    return Target(None, "ambiguous")


def keywords(intent):
    """Distinctive words of the utterance, in first-seen order."""
    seen = []
    for text in (intent.subject, intent.raw):
        for token in re.findall(r"[a-z0-9]+", text.lower()):
            if len(token) > 1 and token not in _STOP_WORDS and token not in seen:
                seen.append(token)
    return seen


def _best_keyword_match(words, widgets):
    if not words:
        return None
    scores = []
    for w in widgets:
        haystack = " ".join([w.source_id, w.title, w.resolved_intent.subject]).lower()
        scores.append(sum(1 for kw in words if kw in haystack))
    top = max(scores)
    if top == 0 or scores.count(top) > 1:
        return None
    return widgets[scores.index(top)]
