from vibedash.sources.crypto import CryptoSource
from vibedash.sources.news import NewsSource
from vibedash.sources.stocks import StockSource
from vibedash.sources.weather import WeatherSource

# Registration order. The router gives ties to the earlier source.
SOURCES = [CryptoSource, WeatherSource, NewsSource, StockSource]


def default_sources():
    return [cls() for cls in SOURCES]
