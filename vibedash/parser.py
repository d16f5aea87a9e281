"""Rule-based parser: free text -> Intent.

Handles:
    "bitcoin price"                      create, coin=bitcoin symbol=BTC
    "weather in Colorado Springs"        create, location="Colorado Springs"
    "top 5 rust news"                    create, topic=rust count=5
    "show me bitcoin 7d as a chart"      create, period=7d display_format=chart
    "make it bigger"                     modify, size=large
    "remove the weather widget"          remove

Pure and stateless. The target widget is never guessed here; modify and
remove intents leave target_widget_id as None for the target resolver.
"""

import re
import string

from vibedash.intent import CREATE, MODIFY, REMOVE, Intent, Params
from vibedash.template import TemplatePattern, match_first

# Coin name -> ticker. The crypto source has the full list; this is what the
# parser recognizes on its own.
_COINS = {
    "bitcoin": "btc", "ethereum": "eth", "solana": "sol", "cardano": "ada",
    "dogecoin": "doge", "polkadot": "dot", "ripple": "xrp", "litecoin": "ltc",
    "chainlink": "link", "avalanche": "avax", "polygon": "matic",
    "uniswap": "uni", "stellar": "xlm", "cosmos": "atom", "monero": "xmr",
    "tezos": "xtz", "algorand": "algo", "aptos": "apt", "arbitrum": "arb",
    "optimism": "op", "tron": "trx", "shiba": "shib", "pepe": "pepe",
    "bonk": "bonk", "sui": "sui", "binance": "bnb",
}

# Tickers that are also everyday words; only the coin name counts for these.
_WORD_TICKERS = {"dot", "link", "uni", "atom", "apt", "op", "arb"}

_SYMBOLS_TO_COINS = {sym: name for name, sym in _COINS.items() if sym not in _WORD_TICKERS}

_REMOVE = re.compile(r"\b(?:remove|delete|close|dismiss|hide|clear|get\s+rid\s+of)\b")
_MODIFY_VERB = re.compile(
    r"\b(?:change|make|update|switch|modify|resize|convert|set|turn|expand|shrink|enlarge)\b")
_MODIFY_LEAD = re.compile(
    r"^(?:chang|mak|updat|switch|modif|resiz|convert|set|turn|expand|shrink|enlarg)\w*\b")
_SHOW_AS = re.compile(r"\bshow\b.*\bas\s+(?:an?\s+)?(?:chart|table|card|line|bar)\b")
_REFERENCE = re.compile(
    r"\b(?:that|it|this(?!\s+(?:week|month|year|morning|afternoon|evening))"
    r"|the\s+\w+\s+one|the\s+\w+\s+widget)\b")

_PERIODS = [
    (re.compile(r"\b24\s*h(?:ours?|rs?)?\b|\btoday\b|\blast\s+day\b"), "24h"),
    (re.compile(r"\b7\s*d(?:ays?)?\b|\bweek(?:ly)?\b|\bpast\s+week\b"), "7d"),
    (re.compile(r"\b30\s*d(?:ays?)?\b|\bmonth(?:ly)?\b|\bpast\s+month\b"), "30d"),
    (re.compile(r"\b(?:1\s+)?year(?:ly)?\b|\b365\s*d(?:ays?)?\b|\bannual\b"), "1y"),
]

_FORMATS = [
    (re.compile(r"\bline\s+chart\b"), "chart"),
    (re.compile(r"\bbar\s+chart\b"), "chart"),
    (re.compile(r"\b(?:chart|graph)\b"), "chart"),
    (re.compile(r"\btable\b"), "table"),
    (re.compile(r"\bcard\b"), "card"),
]
_FORMAT_PHRASE = re.compile(
    r"\b(?:as\s+)?(?:an?\s+)?(?:(?:line|bar)\s+)?(?:chart|graph|table|card)\b")

_SIZES = [
    (re.compile(r"\b(?:big(?:ger)?|large(?:r)?|expand(?:ed)?|enlarge|full\s*(?:width|size)?)\b"), "large"),
    (re.compile(r"\b(?:small(?:er)?|compact|shrink|tiny|minimize)\b"), "small"),
    (re.compile(r"\bmedium\b"), "medium"),
]

# "last 10 headlines" is a count, "last 30 days" is a period
_COUNT = re.compile(
    r"\b(?:top|last|first)\s+(\d+)\b(?!\s*(?:d|h|hrs?|hours?|days?|weeks?|months?|years?)\b)")

_TRAILING = r"(?:right\s+now|now|today|tomorrow|this\s+week|please|for\s+me|currently)"
_LOCATION_PATTERNS = [
    re.compile(r"\bin\s+([a-z][a-z\s,.'-]*?)\s+" + _TRAILING + r"\s*[?!.]*$"),
    re.compile(r"\bin\s+([a-z][a-z\s,.'-]*?)\s+like\s*[?!.]*$"),
    re.compile(r"\bin\s+([a-z][a-z\s,.'-]*?)\s*[?!.]*$"),
]

# "in <something>" that isn't a place
_NON_LOCATIONS = [
    re.compile(r"^(?:usd|eur|gbp|jpy|cad|aud|btc)\b"),
    re.compile(r"^(?:the\s+last|the\s+past|a|an|detail|full|more|general)\b"),
    re.compile(r"^(?:real\s*time|real-time|live)\b"),
    re.compile(r"^(?:dollars|euros|percent)"),
    re.compile(r"^(?:chart|graph|table|card)\b"),
]
# "latest in machine learning" is a topic
_NON_LOCATION_LEADS = {"latest", "news", "new", "happening", "trending", "headlines", "stories"}

_LEAD_FILLER = re.compile(
    r"^(?:show\s+me|show|display|give\s+me|what(?:'s|s|\s+is|\s+are)?|track|monitor|add"
    r"|create|i\s+want(?:\s+to\s+see)?|let\s+me\s+see|pull\s+up|get|tell\s+me"
    r"|can\s+(?:you|i)(?:\s+(?:see|get|have|show\s+me))?|please)\s+")
_ARTICLE = re.compile(r"^(?:the|a|an|some|my)\s+")
_TRAILING_FILLER = re.compile(r"\s+(?:right\s+now|please|for\s+me|currently|like|today|tomorrow|this\s+week)\s*$")

_TOPIC_PATTERNS = [
    (TemplatePattern("[$lead |][news|headlines|headline|stories|articles|updates] "
                     "[about|on|for|regarding] $topic", greedy=True), "topic"),
    (TemplatePattern("[$lead |][latest|newest] [in|on|about] $topic", greedy=True), "topic"),
    (TemplatePattern("[$lead |]what's new [in|with] $topic", greedy=True), "topic"),
    (TemplatePattern("$topic [news|headlines|headline|stories|articles]"), "topic"),
    (TemplatePattern("[$lead |]about $topic", greedy=True), "topic"),
]
_QUERY_PATTERNS = [
    (TemplatePattern("[$lead |][search for|search|look up] $query", greedy=True), "query"),
]

# Words that never make a topic on their own
_TOPIC_STOP = {
    "latest", "newest", "new", "top", "recent", "today", "todays", "hacker",
    "hn", "front", "page", "trending", "breaking", "some", "the", "a", "an",
    "my", "me", "any", "all", "show", "get", "of", "for", "and", "last", "first",
}


def parse(text):
    """Parse one utterance into an Intent. Never raises, never returns an empty subject."""
    lower = text.strip().lower()
    params = _extract_params(lower)
    return Intent(
        action=_detect_action(lower),
        subject=_extract_subject(lower, params),
        params=params,
        raw=text,
        target_widget_id=None,
    )


# --- Action detection ---

def _detect_action(lower):
    has_ref = _REFERENCE.search(lower) is not None
    if has_ref and _MODIFY_VERB.search(lower):
        return MODIFY
    if has_ref and _SHOW_AS.search(lower):
        return MODIFY
    if _REMOVE.search(lower):
        return REMOVE
    if has_ref and _MODIFY_LEAD.search(lower):
        return MODIFY
    return CREATE


# --- Parameter extraction ---

def _extract_params(lower):
    found = {}

    coin = _find_coin(lower)
    if coin:
        found["coin"], found["symbol"] = coin[0], coin[1].upper()

    location = _find_location(lower)
    if location:
        found["location"] = location

    for key, table in (("period", _PERIODS), ("display_format", _FORMATS), ("size", _SIZES)):
        for pattern, value in table:
            if pattern.search(lower):
                found[key] = value
                break

    m = _COUNT.search(lower)
    if m:
        found["count"] = int(m.group(1))

    base = _trim_filler(lower)
    topic = _find_phrase(_TOPIC_PATTERNS, base)
    if topic:
        found["topic"] = topic
    query = _find_phrase(_QUERY_PATTERNS, base)
    if query:
        found["query"] = query

    return Params(**found)


def _find_coin(lower):
    """Return (name, ticker) for the first coin token, or None."""
    for token in re.split(r"[^a-z0-9]+", lower):
        if token in _COINS:
            return token, _COINS[token]
        if token in _SYMBOLS_TO_COINS:
            return _SYMBOLS_TO_COINS[token], token
    return None


def _find_location(lower):
    for pattern in _LOCATION_PATTERNS:
        m = pattern.search(lower)
        if m is None:
            continue
        candidate = m.group(1).strip(" ,.'-")
        if len(candidate) < 2:
            continue
        if any(p.search(candidate) for p in _NON_LOCATIONS):
            continue
        before = lower[:m.start()].split()
        if before and before[-1] in _NON_LOCATION_LEADS:
            continue
        return string.capwords(candidate)
    return None


def _find_phrase(patterns, base):
    """Match topic/query templates; trims stop words, drops all-stop-word captures."""
    hit = match_first(patterns, base)
    if hit is None:
        return None
    tag, fields = hit
    words = re.sub(r"[^a-z0-9\s'+#.-]", " ", fields.get(tag, "")).split()
    while words and (words[0] in _TOPIC_STOP or words[0].isdigit()):
        words.pop(0)
    while words and (words[-1] in _TOPIC_STOP or words[-1].isdigit()):
        words.pop()
    phrase = " ".join(words)
    if len(phrase) < 2:
        return None
    return phrase


def _trim_filler(s):
    prev = None
    while prev != s:
        prev = s
        s = _LEAD_FILLER.sub("", s)
        s = _ARTICLE.sub("", s)
    return _TRAILING_FILLER.sub("", s).strip()


# --- Subject extraction ---

def _extract_subject(lower, params):
    s = _trim_filler(lower)

    if params.location:
        s = re.sub(r"\bin\s+" + re.escape(params.location.lower()), "", s)
    for pattern, _ in _PERIODS:
        s = pattern.sub("", s)
    s = _FORMAT_PHRASE.sub("", s)
    for pattern, _ in _SIZES:
        s = pattern.sub("", s)
    s = _TRAILING_FILLER.sub("", s)
    s = _REFERENCE.sub("", s)

    s = re.sub(r"\s{2,}", " ", s).strip(" ,.?!")
    if s:
        return s

    # Stripped everything: fall back to a lightly cleaned copy of the input
    fallback = re.sub(r"^(?:show\s+me|what's|track)\s+", "", lower).strip(" ?!.")
    return fallback or lower or "widget"
