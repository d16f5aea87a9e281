"""Data sources: match scoring and resolve, with the network stubbed out."""

import asyncio

import pytest

from vibedash.parser import parse
from vibedash.results import Error
from vibedash.router import SourceRouter
from vibedash.sources import crypto, news, stocks, weather
from vibedash.sources import default_sources
from vibedash.sources.http import FetchError


def _run(coro):
    return asyncio.run(coro)


def _fake_fetch(responses, calls=None):
    """Stand-in for fetch_json: responses maps a URL prefix to a body or an Error."""
    async def fetch(url, source, what, params=None, timeout=None):
        if calls is not None:
            calls.append((url, params))
        for prefix, body in responses.items():
            if url.startswith(prefix):
                if isinstance(body, Error):
                    raise FetchError(body)
                return body
        raise AssertionError(f"unexpected fetch {url}")
    return fetch


def test_default_sources_order():
    assert [s.id for s in default_sources()] == ["crypto", "weather", "news", "stocks"]


# --- Routing between the real sources ---

@pytest.mark.parametrize("text,source_id", [
    ("bitcoin price", "crypto"),
    ("show me eth", "crypto"),
    ("track crypto", "crypto"),
    ("weather in Denver", "weather"),
    ("what's it like in Tokyo", "weather"),
    ("hacker news", "news"),
    ("bitcoin news", "news"),
    ("top 5 rust news", "news"),
    ("apple stock price", "stocks"),
    ("TSLA stock", "stocks"),
])
def test_best_source(text, source_id):
    scored = SourceRouter(default_sources()).score(parse(text))
    assert scored, text
    assert scored[0][0].id == source_id


@pytest.mark.parametrize("text", ["pomodoro timer", "a clock for tokyo", "coin flip"])
def test_nothing_qualifies(text):
    assert SourceRouter(default_sources()).score(parse(text)) == []


# --- Crypto ---

def test_crypto_match_levels():
    src = crypto.CryptoSource()
    assert src.match(parse("bitcoin price")) == 0.9
    assert src.match(parse("crypto prices")) == 0.6
    assert src.match(parse("my coins")) == 0.5
    assert src.match(parse("weather near me")) == 0.0


def test_crypto_asks_for_coin():
    result = _run(crypto.CryptoSource().resolve(parse("track crypto")))
    assert result.kind == "clarification"
    assert result.parameter_key == "coin"
    assert [o.value for o in result.options] == ["bitcoin", "ethereum", "solana"]


def test_crypto_success(monkeypatch):
    monkeypatch.setattr(crypto, "fetch_json", _fake_fetch({
        "https://api.coingecko.com/api/v3/simple/price": {
            "bitcoin": {"usd": 64000.5, "usd_24h_change": -1.25, "usd_market_cap": 1.2e12},
        },
    }))
    intent = parse("bitcoin price")
    result = _run(crypto.CryptoSource().resolve(intent))
    assert result.kind == "success"
    d = result.descriptor
    assert d.title == "Bitcoin (BTC)"
    assert d.size == "small"
    assert d.refresh_interval_ms == 60_000
    assert d.render["type"] == "price-card"
    assert d.data["price"] == 64000.5
    assert d.data["volume_24h"] is None
    assert d.resolved_intent == intent


def test_crypto_chart_fetches_history(monkeypatch):
    calls = []
    monkeypatch.setattr(crypto, "fetch_json", _fake_fetch({
        "https://api.coingecko.com/api/v3/simple/price": {"solana": {"usd": 150}},
        "https://api.coingecko.com/api/v3/coins/solana/market_chart": {"prices": [[1, 140], [2, 150]]},
    }, calls))
    result = _run(crypto.CryptoSource().resolve(parse("solana chart for 30 days")))
    assert result.descriptor.render["type"] == "chart"
    assert result.descriptor.data["history"] == [[1, 140], [2, 150]]
    assert calls[1][1]["days"] == 30


def test_crypto_missing_coin_data_is_error(monkeypatch):
    monkeypatch.setattr(crypto, "fetch_json", _fake_fetch({"https://api.coingecko.com": {}}))
    result = _run(crypto.CryptoSource().resolve(parse("bitcoin price")))
    assert result.kind == "error"
    assert result.retryable is True


def test_crypto_rate_limit_passes_through(monkeypatch):
    limited = Error(message="slow down", retryable=True, code="rate_limited", source="crypto")
    monkeypatch.setattr(crypto, "fetch_json", _fake_fetch({"https://api.coingecko.com": limited}))
    result = _run(crypto.CryptoSource().resolve(parse("bitcoin price")))
    assert result is limited


# --- Weather ---

_GEO = {"results": [{"name": "Denver", "admin1": "Colorado", "country": "United States",
                     "latitude": 39.74, "longitude": -104.98}]}
_FORECAST = {
    "current": {"temperature_2m": 68.0, "apparent_temperature": 66.0, "weather_code": 2,
                "relative_humidity_2m": 20, "wind_speed_10m": 8.0},
    "daily": {"time": ["2026-01-01", "2026-01-02"], "temperature_2m_max": [70, 72],
              "temperature_2m_min": [40, 41], "weather_code": [0, 61],
              "precipitation_probability_max": [0, 60]},
}


def test_weather_match_levels():
    src = weather.WeatherSource()
    assert src.match(parse("weather in Denver")) == 0.9
    assert src.match(parse("show me the weather")) == 0.7
    assert src.match(parse("what's it like in Denver")) == 0.6
    assert src.match(parse("bitcoin price")) == 0.0


def test_weather_asks_for_location():
    result = _run(weather.WeatherSource().resolve(parse("show me the weather")))
    assert result.kind == "clarification"
    assert result.parameter_key == "location"
    assert "Denver" in [o.value for o in result.options]


def test_weather_success(monkeypatch):
    monkeypatch.setattr(weather, "fetch_json", _fake_fetch({
        "https://geocoding-api.open-meteo.com": _GEO,
        "https://api.open-meteo.com": _FORECAST,
    }))
    result = _run(weather.WeatherSource().resolve(parse("weather in Denver")))
    d = result.descriptor
    assert d.title == "Weather — Denver, Colorado, United States"
    assert d.size == "medium"
    assert d.refresh_interval_ms == 300_000
    assert d.data["condition"] == "Partly cloudy"
    assert d.data["temp_c"] == 20
    assert [day["condition"] for day in d.data["forecast"]] == ["Clear sky", "Slight rain"]


def test_weather_unknown_place_is_not_retryable(monkeypatch):
    monkeypatch.setattr(weather, "fetch_json", _fake_fetch({
        "https://geocoding-api.open-meteo.com": {"results": []},
    }))
    result = _run(weather.WeatherSource().resolve(parse("weather in Xyzzyville")))
    assert result.kind == "error"
    assert result.retryable is False
    assert result.code == "not_found"


def test_place_name_drops_repeats():
    place = {"name": "New York", "admin1": "New York", "country": "United States"}
    assert weather._place_name(place) == "New York, United States"


# --- News ---

_HITS = {"hits": [{"title": f"Story {i}", "objectID": str(i), "url": None, "points": i}
                  for i in range(20)]}


def test_news_match_levels():
    src = news.NewsSource()
    assert src.match(parse("rust news")) == 0.95
    assert src.match(parse("hacker news")) == 0.75
    assert src.match(parse("what's trending")) == 0.65


@pytest.mark.parametrize("text,count", [
    ("hacker news", 8),
    ("top 1 news", 3),
    ("top 50 news", 15),
    ("top 5 rust news", 5),
])
def test_news_count_is_clamped(monkeypatch, text, count):
    calls = []
    monkeypatch.setattr(news, "fetch_json", _fake_fetch({"https://hn.algolia.com": _HITS}, calls))
    result = _run(news.NewsSource().resolve(parse(text)))
    assert calls[0][1]["hitsPerPage"] == count
    assert len(result.descriptor.data["stories"]) == count


def test_news_topic_and_front_page_titles(monkeypatch):
    calls = []
    monkeypatch.setattr(news, "fetch_json", _fake_fetch({"https://hn.algolia.com": _HITS}, calls))
    topical = _run(news.NewsSource().resolve(parse("news about machine learning")))
    front = _run(news.NewsSource().resolve(parse("hacker news")))
    assert topical.descriptor.title == "News — Machine Learning"
    assert calls[0][1]["query"] == "machine learning"
    assert front.descriptor.title == "HackerNews — Front Page"
    assert calls[1][1]["tags"] == "front_page"
    story = front.descriptor.data["stories"][0]
    assert story["url"] == "https://news.ycombinator.com/item?id=0"


def test_news_no_hits_is_retryable_error(monkeypatch):
    monkeypatch.setattr(news, "fetch_json", _fake_fetch({"https://hn.algolia.com": {"hits": []}}))
    result = _run(news.NewsSource().resolve(parse("rust news")))
    assert result.kind == "error"
    assert result.retryable is True


# --- Stocks ---

def test_stock_match_levels():
    src = stocks.StockSource()
    assert src.match(parse("apple stock price")) == 0.85
    assert src.match(parse("apple")) == 0.7
    assert src.match(parse("TSLA stock")) == 0.8
    assert src.match(parse("stock market")) == 0.55
    assert src.match(parse("bitcoin stock")) == 0.0


def test_resolve_symbol():
    assert stocks._resolve_symbol("the dow") == (None, None)
    assert stocks._resolve_symbol("dow") == ("^DJI", "Dow Jones")
    assert stocks._resolve_symbol("Apple stock") == ("AAPL", "Apple")
    assert stocks._resolve_symbol("msft") == ("MSFT", "MSFT")
    assert stocks._resolve_symbol("^GSPC") == ("^GSPC", "S&P 500")


def test_stock_success(monkeypatch):
    seen = []

    def fake_history(symbol, period):
        seen.append((symbol, period))
        return [("2026-01-01", 100.0), ("2026-01-02", 110.0)]

    monkeypatch.setattr(stocks, "_fetch_history", fake_history)
    result = _run(stocks.StockSource().resolve(parse("apple stock price over the last 30 days")))
    d = result.descriptor
    assert seen == [("AAPL", "1mo")]
    assert d.title == "Apple (AAPL)"
    assert d.data["change"] == 10.0
    assert d.data["change_pct"] == pytest.approx(10.0)


def test_stock_asks_for_symbol():
    result = _run(stocks.StockSource().resolve(parse("stock market")))
    assert result.kind == "clarification"
    assert result.parameter_key == "symbol"


def test_stock_lookup_failure(monkeypatch):
    def no_data(symbol, period):
        raise LookupError(f"No data for {symbol}")

    monkeypatch.setattr(stocks, "_fetch_history", no_data)
    result = _run(stocks.StockSource().resolve(parse("ZZZZ stock")))
    assert result.kind == "error"
    assert result.code == "not_found"
