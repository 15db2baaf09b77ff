"""Token price-change feeds used by the token alert checker.

The monitor only needs one number per token: the recent price change in
percent. Feeds are injected so tests can pin deterministic values.
"""

from __future__ import annotations

import asyncio
import random
from typing import Dict, Mapping, Optional, Protocol

from binance.client import Client
from binance.exceptions import BinanceAPIException, BinanceRequestException


class PriceFeedError(RuntimeError):
    pass


class PriceFeed(Protocol):
    async def get_recent_price_change_percent(self, symbol: str) -> float:
        ...


class StaticPriceFeed:
    """Fixed per-symbol changes; unknown symbols report 0.0 unless strict."""

    def __init__(self, changes: Optional[Mapping[str, float]] = None, *, strict: bool = False):
        self.changes: Dict[str, float] = {k.upper(): float(v) for k, v in (changes or {}).items()}
        self.strict = strict

    async def get_recent_price_change_percent(self, symbol: str) -> float:
        key = symbol.upper()
        if key not in self.changes:
            if self.strict:
                raise PriceFeedError(f"No price change recorded for {symbol}")
            return 0.0
        return self.changes[key]


class SimulatedPriceFeed:
    """Random price movement in [-max_abs_change, +max_abs_change).

    Stand-in for environments without market access. With the default ±10%
    band it never crosses the 15% alert threshold.
    """

    def __init__(self, *, max_abs_change: float = 10.0, seed: Optional[int] = None):
        self.max_abs_change = float(max_abs_change)
        self._rng = random.Random(seed)

    async def get_recent_price_change_percent(self, symbol: str) -> float:
        return (self._rng.random() - 0.5) * 2.0 * self.max_abs_change


class BinancePriceFeed:
    """24h price change from Binance spot public tickers (no keys required)."""

    def __init__(self, *, quote_asset: str = "USDT", client: Optional[Client] = None):
        self.quote_asset = quote_asset.upper()
        self._client = client

    @property
    def client(self) -> Client:
        # Client() pings the exchange on construction; defer until first use.
        if self._client is None:
            self._client = Client(None, None)
        return self._client

    def _symbol(self, token: str) -> str:
        token = token.upper()
        if token.endswith(self.quote_asset):
            return token
        return f"{token}{self.quote_asset}"

    def _fetch(self, symbol: str) -> float:
        try:
            ticker = self.client.get_ticker(symbol=symbol)
        except (BinanceAPIException, BinanceRequestException, ConnectionError) as exc:
            raise PriceFeedError(f"Binance ticker lookup failed for {symbol}: {exc}") from exc
        try:
            return float(ticker["priceChangePercent"])
        except (KeyError, TypeError, ValueError) as exc:
            raise PriceFeedError(f"Malformed Binance ticker for {symbol}: {ticker!r}") from exc

    async def get_recent_price_change_percent(self, symbol: str) -> float:
        # python-binance is synchronous; keep the event loop free.
        return await asyncio.to_thread(self._fetch, self._symbol(symbol))


def build_price_feed(name: str) -> Optional[PriceFeed]:
    """Resolve the PRICE_FEED setting to a feed instance (None disables token alerts)."""
    name = (name or "").strip().lower()
    if name == "none":
        return None
    if name == "binance":
        return BinancePriceFeed()
    if name == "simulated":
        return SimulatedPriceFeed()
    raise PriceFeedError(f"Unknown price feed {name!r}")


__all__ = [
    "BinancePriceFeed",
    "PriceFeed",
    "PriceFeedError",
    "SimulatedPriceFeed",
    "StaticPriceFeed",
    "build_price_feed",
]
