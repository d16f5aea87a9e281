"""Template patterns for the phrase-shaped parts of the parser.

A template like "[news|headlines] [about|on] $topic" compiles to a regex
that matches a whole (lower-cased, punctuation-trimmed) utterance and
returns the captured fields.

Syntax:
    [alt1|alt2]   one of the alternatives; an empty alternative makes it optional
    $name         captures text into a named field
    other text    literal, case-insensitive, any run of spaces matches \\s+

Examples:
    >>> TemplatePattern("$topic news").match("rust news")
    {'topic': 'rust'}
    >>> TemplatePattern("news [about|on] $topic").match("news on ai!")
    {'topic': 'ai'}
"""

import re

_TOKEN = re.compile(r"\[|\]|\||\$[a-zA-Z_]\w*|\s+|[^\[\]|$\s]+|\$")


class TemplatePattern:
    """A compiled template that matches text and extracts named fields."""

    def __init__(self, template, greedy=False):
        self.template = template
        self.fields = []
        body = self._compile(_TOKEN.findall(template), greedy)
        self._regex = re.compile("^" + body + "$", re.IGNORECASE)

    def match(self, text):
        """Match the whole text. Returns a dict of fields or None."""
        m = self._regex.match(text.strip().rstrip("?!.,"))
        if m is None:
            return None
        return {name: (m.group(name) or "").strip() for name in self.fields}

    def __repr__(self):
        return f"TemplatePattern({self.template!r})"

    def _compile(self, tokens, greedy):
        out = []
        stack = []   # (saved_out, alternatives) per open bracket
        for tok in tokens:
            if tok == "[":
                stack.append((out, []))
                out = []
            elif tok == "|" and stack:
                stack[-1][1].append("".join(out))
                out = []
            elif tok == "]" and stack:
                saved, alts = stack.pop()
                alts.append("".join(out))
                saved.append("(?:" + "|".join(alts) + ")")
                out = saved
            elif tok.startswith("$") and len(tok) > 1:
                name = tok[1:]
                self.fields.append(name)
                out.append(f"(?P<{name}>.+)" if greedy else f"(?P<{name}>.+?)")
            elif tok.isspace():
                # an optional group may match nothing, leaving no space to eat
                out.append(r"\s*" if out and out[-1].startswith("(?:") else r"\s+")
            else:
                out.append(re.escape(tok))
        return "".join(out)


def match_first(patterns, text):
    """Try (pattern, tag) pairs in order. Returns (tag, fields) or None."""
    for pat, tag in patterns:
        fields = pat.match(text)
        if fields is not None:
            return tag, fields
    return None
