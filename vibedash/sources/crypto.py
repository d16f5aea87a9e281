"""Crypto prices from CoinGecko (free API, no key).

Handles:
    "bitcoin price"
    "show me eth"
    "solana chart for the last 30 days"
    "track crypto"            -> asks which coin
"""

import re

from vibedash.results import (
    BAD_PAYLOAD, Clarification, Error, Option, Success, WidgetDescriptor,
)
from vibedash.sources.http import FetchError, fetch_json

_PRICE_URL = "https://api.coingecko.com/api/v3/simple/price"
_CHART_URL = "https://api.coingecko.com/api/v3/coins/{id}/market_chart"

REFRESH_MS = 60_000

# CoinGecko id -> (display name, ticker)
_COINS = {
    "bitcoin": ("Bitcoin", "BTC"),
    "ethereum": ("Ethereum", "ETH"),
    "solana": ("Solana", "SOL"),
    "cardano": ("Cardano", "ADA"),
    "dogecoin": ("Dogecoin", "DOGE"),
    "polkadot": ("Polkadot", "DOT"),
    "ripple": ("XRP", "XRP"),
    "litecoin": ("Litecoin", "LTC"),
    "chainlink": ("Chainlink", "LINK"),
    "avalanche-2": ("Avalanche", "AVAX"),
    "matic-network": ("Polygon", "MATIC"),
    "uniswap": ("Uniswap", "UNI"),
    "stellar": ("Stellar", "XLM"),
    "cosmos": ("Cosmos", "ATOM"),
    "monero": ("Monero", "XMR"),
    "tezos": ("Tezos", "XTZ"),
    "algorand": ("Algorand", "ALGO"),
    "near": ("NEAR", "NEAR"),
    "aptos": ("Aptos", "APT"),
    "arbitrum": ("Arbitrum", "ARB"),
    "optimism": ("Optimism", "OP"),
    "tron": ("TRON", "TRX"),
    "shiba-inu": ("Shiba Inu", "SHIB"),
    "pepe": ("Pepe", "PEPE"),
    "bonk": ("Bonk", "BONK"),
    "sui": ("Sui", "SUI"),
    "sei-network": ("Sei", "SEI"),
    "binancecoin": ("BNB", "BNB"),
}

_BY_NAME = {name.lower(): cg_id for cg_id, (name, _) in _COINS.items()}
_BY_NAME.update({"ripple": "ripple", "shiba": "shiba-inu", "binance": "binancecoin",
                 "avalanche": "avalanche-2", "polygon": "matic-network"})
_BY_SYMBOL = {sym.lower(): cg_id for cg_id, (_, sym) in _COINS.items()}

# Names and tickers that are also everyday words: only an explicit parameter
# selects these, never a scan of free text.
_WORDS = {"near", "dot", "link", "uni", "atom", "apt", "op", "arb"}

# Chart periods -> CoinGecko "days"
_CHART_DAYS = {"24h": 1, "7d": 7, "30d": 30, "1y": 365}

_CRYPTO_WORDS = re.compile(r"\bcrypto(?:currency|currencies)?\b")
_COIN_WORDS = re.compile(r"\bcoins?\b")
_COIN_FLIP = re.compile(r"\bcoin\s+flip\b")


def _lookup(coin=None, symbol=None):
    """Map a coin parameter and/or ticker to a CoinGecko id, or None."""
    if coin:
        c = coin.lower()
        if c in _BY_NAME:
            return _BY_NAME[c]
        if c in _COINS:
            return c
        if c in _BY_SYMBOL:
            return _BY_SYMBOL[c]
    if symbol and symbol.lower() in _BY_SYMBOL:
        return _BY_SYMBOL[symbol.lower()]
    return None


def _scan_names(text):
    for name, cg_id in _BY_NAME.items():
        if name not in _WORDS and re.search(rf"\b{re.escape(name)}\b", text):
            return cg_id
    return None


def _scan_symbols(text):
    for sym, cg_id in _BY_SYMBOL.items():
        if sym not in _WORDS and re.search(rf"\b{re.escape(sym)}\b", text):
            return cg_id
    return None


class CryptoSource:
    id = "crypto"

    def match(self, intent):
        p = intent.params
        if _lookup(p.coin, p.symbol):
            return 0.9
        subject = intent.subject.lower()
        if _scan_names(subject):
            return 0.85
        # whole words only: "sol" must not hit "solution"
        if _scan_symbols(subject):
            return 0.8
        if _CRYPTO_WORDS.search(subject):
            return 0.6
        if _COIN_WORDS.search(subject) and not _COIN_FLIP.search(subject):
            return 0.5
        return 0.0

    def _coin_for(self, intent):
        subject = intent.subject.lower()
        return (_lookup(intent.params.coin, intent.params.symbol)
                or _scan_names(subject)
                or _scan_symbols(subject))

    async def resolve(self, intent):
        cg_id = self._coin_for(intent)
        if cg_id is None:
            return Clarification(
                question="Which cryptocurrency would you like to track?",
                options=[
                    Option("Bitcoin (BTC)", "bitcoin"),
                    Option("Ethereum (ETH)", "ethereum"),
                    Option("Solana (SOL)", "solana"),
                ],
                source=self.id,
                context={"parameter_key": "coin"},
            )
        name, symbol = _COINS[cg_id]
        chart = intent.params.display_format == "chart"

        try:
            body = await fetch_json(_PRICE_URL, self.id, f"{name} price", params={
                "ids": cg_id,
                "vs_currencies": "usd",
                "include_24hr_change": "true",
                "include_24hr_vol": "true",
                "include_market_cap": "true",
            })
            prices = body.get(cg_id) if isinstance(body, dict) else None
            if not prices or "usd" not in prices:
                return _no_data(name)
            history = None
            if chart:
                history = await self._fetch_history(cg_id, name, intent.params.period or "7d")
        except FetchError as e:
            return e.error

        data = {
            "coin": name,
            "symbol": symbol,
            "coingecko_id": cg_id,
            "price": prices["usd"],
            "change_24h": prices.get("usd_24h_change"),
            "market_cap": prices.get("usd_market_cap"),
            "volume_24h": prices.get("usd_24h_vol"),
        }
        if chart:
            data["history"] = history
            render = {"type": "chart", "config": {
                "coin": name, "symbol": symbol, "period": intent.params.period or "7d"}}
        else:
            render = {"type": "price-card", "config": {"coin": name, "symbol": symbol}}

        return Success(WidgetDescriptor(
            source_id=self.id,
            title=f"{name} ({symbol})",
            size=intent.params.size or "small",
            refresh_interval_ms=REFRESH_MS,
            data=data,
            render=render,
            resolved_intent=intent,
        ))

    async def _fetch_history(self, cg_id, name, period):
        """Return [[timestamp_ms, price], ...] for the period."""
        days = _CHART_DAYS.get(period, 7)
        body = await fetch_json(_CHART_URL.format(id=cg_id), self.id, f"{name} price history",
                                params={"vs_currency": "usd", "days": days})
        points = body.get("prices") if isinstance(body, dict) else None
        if not isinstance(points, list):
            raise FetchError(_no_data(name))
        return points


def _no_data(name):
    return Error(message=f"No price data returned for {name}.",
                 retryable=True, code=BAD_PAYLOAD, source="crypto")
