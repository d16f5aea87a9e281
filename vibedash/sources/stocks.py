"""Stock, index and commodity prices from Yahoo Finance via yfinance.

Handles:
    "apple stock price"
    "how is the dow doing"
    "TSLA stock"
    "gold price over the last month"
    "show me a stock"         -> asks which one
"""

import asyncio
import re

from vibedash.results import (
    NETWORK, NOT_FOUND, Clarification, Error, Option, Success, WidgetDescriptor,
)

REFRESH_MS = 300_000

# Map common names (lowercase) to Yahoo Finance ticker symbols
_SYMBOLS = {
    # Companies
    "apple": "AAPL",
    "microsoft": "MSFT",
    "tesla": "TSLA",
    "hewlett packard enterprise": "HPE",
    "hpe": "HPE",
    "google": "GOOGL",
    "alphabet": "GOOGL",
    "amazon": "AMZN",
    "nvidia": "NVDA",
    "meta": "META",
    "facebook": "META",
    "netflix": "NFLX",
    "disney": "DIS",
    "boeing": "BA",
    "intel": "INTC",
    "amd": "AMD",
    # Indices
    "s&p 500": "^GSPC",
    "s&p": "^GSPC",
    "s and p 500": "^GSPC",
    "s and p": "^GSPC",
    "dow jones": "^DJI",
    "dow": "^DJI",
    "nasdaq": "^IXIC",
    # Commodities
    "gold": "GC=F",
    "silver": "SI=F",
}

# Display names for non-company symbols
_DISPLAY_NAMES = {
    "^GSPC": "S&P 500",
    "^DJI": "Dow Jones",
    "^IXIC": "Nasdaq",
    "GC=F": "Gold",
    "SI=F": "Silver",
}

# Dashboard periods -> yfinance history periods
_PERIODS = {"24h": "2d", "7d": "7d", "30d": "1mo", "1y": "1y"}
DEFAULT_PERIOD = "7d"

_PRICE_WORDS = re.compile(r"\b(price|prices|stock|stocks|shares?|trading|doing|worth|quote)\b")
_GENERIC = re.compile(r"\b(stocks?|share\s+price|stock\s+market|ticker)\b")
_TICKER_STOCK = re.compile(r"\b([a-z]{1,5})\s+(?:stock|shares)\b")
_NOT_TICKERS = {
    "a", "an", "the", "my", "me", "of", "for", "in", "on", "show", "get", "add",
    "price", "some", "any", "one", "this", "that", "which", "what", "new", "big", "small",
}


def _find_name(text):
    """Return the ticker for the first known name in text, longest names first."""
    for name in sorted(_SYMBOLS, key=len, reverse=True):
        if re.search(rf"(?<![a-z]){re.escape(name)}(?![a-z])", text):
            return _SYMBOLS[name]
    return None


def _find_ticker(text):
    m = _TICKER_STOCK.search(text)
    if m and m.group(1) not in _NOT_TICKERS and m.group(1) not in _SYMBOLS:
        return m.group(1).upper()
    return None


def _resolve_symbol(name):
    """Resolve a stock name or ticker to a Yahoo Finance symbol.

    Returns (symbol, display_name) or (None, None).
    """
    stripped = re.sub(r"\s+stock$", "", name.strip().rstrip("."), flags=re.IGNORECASE)
    clean = stripped.lower()
    if clean in _SYMBOLS:
        symbol = _SYMBOLS[clean]
        return symbol, _DISPLAY_NAMES.get(symbol, stripped.title())
    upper = stripped.upper()
    if upper in _DISPLAY_NAMES:
        return upper, _DISPLAY_NAMES[upper]
    if re.match(r"^[A-Z]{1,5}$", upper):
        return upper, upper
    return None, None


def _fetch_history(symbol, period):
    """Blocking yfinance call. Returns [(date, close), ...], oldest first."""
    import yfinance as yf
    hist = yf.Ticker(symbol).history(period=period)
    if hist.empty:
        raise LookupError(f"No data for {symbol}")
    return [(ts.strftime("%Y-%m-%d"), float(close)) for ts, close in hist["Close"].items()]


class StockSource:
    id = "stocks"

    def match(self, intent):
        if intent.params.coin:
            return 0.0
        text = f"{intent.subject} {intent.raw}".lower()
        if _find_name(text):
            return 0.85 if _PRICE_WORDS.search(text) else 0.7
        if _find_ticker(text):
            return 0.8
        if _GENERIC.search(text):
            return 0.55
        return 0.0

    def _symbol_for(self, intent):
        if intent.params.symbol:
            symbol, display = _resolve_symbol(intent.params.symbol)
            if symbol:
                return symbol, display
        text = f"{intent.subject} {intent.raw}".lower()
        symbol = _find_name(text)
        if symbol:
            name = next(n for n, s in _SYMBOLS.items() if s == symbol)
            return symbol, _DISPLAY_NAMES.get(symbol, name.title())
        ticker = _find_ticker(text)
        if ticker:
            return ticker, ticker
        return None, None

    async def resolve(self, intent):
        symbol, display = self._symbol_for(intent)
        if symbol is None:
            return Clarification(
                question="Which stock would you like to follow?",
                options=[
                    Option("Apple (AAPL)", "AAPL"),
                    Option("Microsoft (MSFT)", "MSFT"),
                    Option("S&P 500", "^GSPC"),
                ],
                source=self.id,
                context={"parameter_key": "symbol"},
            )

        period = intent.params.period or DEFAULT_PERIOD
        try:
            history = await asyncio.to_thread(_fetch_history, symbol, _PERIODS.get(period, "7d"))
        except LookupError as e:
            return Error(message=f"Sorry, I couldn't find prices for {display}. {e}",
                         retryable=False, code=NOT_FOUND, source=self.id)
        except Exception as e:
            return Error(message=f"Sorry, I couldn't get the price for {display}. {e}",
                         retryable=True, code=NETWORK, source=self.id)

        current = history[-1][1]
        past = history[0][1] if len(history) > 1 else None
        change = current - past if past is not None else None
        data = {
            "symbol": symbol,
            "name": display,
            "is_index": symbol.startswith("^"),
            "price": current,
            "past_price": past,
            "change": change,
            "change_pct": (change / past * 100) if past else None,
            "period": period,
            "history": [{"date": d, "close": c} for d, c in history],
        }
        chart = intent.params.display_format == "chart"
        return Success(WidgetDescriptor(
            source_id=self.id,
            title=f"{display} ({symbol})",
            size=intent.params.size or "small",
            refresh_interval_ms=REFRESH_MS,
            data=data,
            render={"type": "chart" if chart else "price-card",
                    "config": {"symbol": symbol, "name": display, "period": period}},
            resolved_intent=intent,
        ))
