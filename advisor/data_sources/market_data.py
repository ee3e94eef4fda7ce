"""Market data client - klines, spot price, and futures context from Binance.

Spot: /api/v3/klines, /api/v3/ticker/price, /api/v3/depth
Futures: /fapi/v1/premiumIndex, /fapi/v1/openInterest

Each auxiliary figure (funding rate, open interest, depth) is fetched
independently and falls back to 0 on failure.
"""

from __future__ import annotations

import pandas as pd
import requests as req_lib

from advisor.analysis.models import MarketContext, MarketDepth
from advisor.config import SETTINGS
from advisor.utils.logger import setup_logger
from advisor.utils.rate_limiter import RATE_LIMIT_STATUSES, RateLimiter

logger = setup_logger("market_data")

_KLINE_COLUMNS = [
    "open_time", "Open", "High", "Low", "Close", "Volume", "close_time",
    "quote_volume", "trades", "taker_base", "taker_quote", "ignore",
]


class BinanceMarketClient:
    """Fetch OHLCV windows and auxiliary market figures."""

    def __init__(self, settings: dict | None = None):
        conf = settings if settings is not None else SETTINGS.get("market", {})
        self.symbol = conf.get("symbol", "BTCUSDT")
        self.interval = conf.get("interval", "30m")
        self.limit = int(conf.get("limit", 100))
        self.spot_url = conf.get("spot_url", "https://api.binance.com").rstrip("/")
        self.futures_url = conf.get("futures_url", "https://fapi.binance.com").rstrip("/")
        self.timeout = conf.get("timeout_seconds", 10)
        self._limiter = RateLimiter(conf.get("calls_per_minute", 60))

    def _get(self, url: str, params: dict):
        self._limiter.wait()
        resp = req_lib.get(url, params=params, timeout=self.timeout)
        if resp.status_code in RATE_LIMIT_STATUSES:
            seconds = self._limiter.back_off(resp.headers.get("Retry-After"))
            logger.warning("Binance rate limit (%s), backing off %.0fs", resp.status_code, seconds)
        resp.raise_for_status()
        return resp.json()

    def get_klines(
        self, symbol: str | None = None, interval: str | None = None, limit: int | None = None,
    ) -> pd.DataFrame:
        """Get a chronological OHLCV window indexed by bar open time (UTC).

        Returns an empty DataFrame when the request fails.
        """
        symbol = symbol or self.symbol
        params = {
            "symbol": symbol,
            "interval": interval or self.interval,
            "limit": limit or self.limit,
        }
        logger.info("Fetching klines: %s (interval=%s, limit=%s)",
                    symbol, params["interval"], params["limit"])
        try:
            rows = self._get(f"{self.spot_url}/api/v3/klines", params)
        except Exception as e:
            logger.warning("Kline fetch failed for %s: %s", symbol, e)
            return pd.DataFrame()
        if not rows:
            return pd.DataFrame()

        df = pd.DataFrame([row[: len(_KLINE_COLUMNS)] for row in rows], columns=_KLINE_COLUMNS)
        df["open_time"] = pd.to_datetime(df["open_time"], unit="ms", utc=True)
        df = df.set_index("open_time").sort_index()
        for col in ["Open", "High", "Low", "Close", "Volume"]:
            df[col] = pd.to_numeric(df[col], errors="coerce")
        df = df[["Open", "High", "Low", "Close", "Volume"]].dropna(subset=["Close"])
        bad_volume = int(df["Volume"].isna().sum())
        if bad_volume:
            logger.warning("Binance: %d bars for %s had unparsable volume, using 0", bad_volume, symbol)
            df = df.assign(Volume=df["Volume"].fillna(0.0))
        logger.info("Binance: got %d bars for %s", len(df), symbol)
        return df

    def get_current_price(self, symbol: str | None = None) -> float:
        """Latest spot price, 0.0 on failure."""
        symbol = symbol or self.symbol
        try:
            data = self._get(f"{self.spot_url}/api/v3/ticker/price", {"symbol": symbol})
            return float(data["price"])
        except Exception as e:
            logger.warning("Error fetching current price for %s: %s", symbol, e)
            return 0.0

    def get_funding_rate(self, symbol: str | None = None) -> float:
        """Last funding rate in percent, 0.0 on failure."""
        symbol = symbol or self.symbol
        try:
            data = self._get(f"{self.futures_url}/fapi/v1/premiumIndex", {"symbol": symbol})
            return float(data["lastFundingRate"]) * 100
        except Exception as e:
            logger.warning("Error fetching funding rate for %s: %s", symbol, e)
            return 0.0

    def get_open_interest(self, symbol: str | None = None) -> float:
        """Open interest in contracts, 0.0 on failure."""
        symbol = symbol or self.symbol
        try:
            data = self._get(f"{self.futures_url}/fapi/v1/openInterest", {"symbol": symbol})
            return float(data["openInterest"])
        except Exception as e:
            logger.warning("Error fetching open interest for %s: %s", symbol, e)
            return 0.0

    def get_market_depth(self, symbol: str | None = None, limit: int = 100) -> MarketDepth:
        """Order-book pressure: sum of price * quantity per side."""
        symbol = symbol or self.symbol
        try:
            data = self._get(f"{self.spot_url}/api/v3/depth", {"symbol": symbol, "limit": limit})
            buy = sum(float(p) * float(q) for p, q in data.get("bids", []))
            sell = sum(float(p) * float(q) for p, q in data.get("asks", []))
            return MarketDepth(buy_pressure=buy, sell_pressure=sell)
        except Exception as e:
            logger.warning("Error fetching market depth for %s: %s", symbol, e)
            return MarketDepth()

    def get_market_context(self, symbol: str | None = None) -> MarketContext:
        """Funding rate, open interest, and depth, each independently defaulted."""
        return MarketContext(
            funding_rate=self.get_funding_rate(symbol),
            open_interest=self.get_open_interest(symbol),
            depth=self.get_market_depth(symbol),
        )
