"""Technical analysis orchestrator for one OHLCV window.

Turns a kline DataFrame (columns Open/High/Low/Close/Volume, chronological)
into per-row chart columns and an :class:`IndicatorSnapshot` that the advice
strategies consume.  Only Close and Volume feed the indicators.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

import numpy as np
import pandas as pd

from advisor.analysis.models import FibonacciLevels, IndicatorSnapshot
from advisor.analysis.oscillators import (
    momentum_indicators,
    on_balance_volume,
    rsi,
    stochastic_d,
    stochastic_k,
)
from advisor.analysis.patterns import analyze_price_patterns
from advisor.analysis.primitives import bollinger_bands, macd, moving_average
from advisor.analysis.sentiment import market_sentiment
from advisor.analysis.structure import (
    elliott_waves,
    fibonacci_levels,
    find_pivots,
    support_resistance,
    volume_profile,
)
from advisor.utils.logger import setup_logger

logger = setup_logger("technical")

_HISTORY_ROWS = 48
_DEFAULT_INTERVAL_MINUTES = 30
_MINUTES_PER_DAY = 24 * 60
_INTERVAL_UNITS = {"m": 1, "h": 60, "d": 1440, "w": 10080}


def _pct_change(latest: float, first: float) -> float:
    return (latest - first) / first * 100 if first else 0.0


def interval_minutes(interval: str) -> int:
    """Minutes per bar for a Binance interval string such as ``"30m"`` or ``"4h"``.

    Unknown strings fall back to 30 minutes.
    """
    try:
        return int(interval[:-1]) * _INTERVAL_UNITS[interval[-1]]
    except (KeyError, ValueError, TypeError, IndexError):
        return _DEFAULT_INTERVAL_MINUTES


def change_over_day(series, bar_minutes: int = _DEFAULT_INTERVAL_MINUTES, latest=None) -> float:
    """Percent change of *latest* against the sample 24 h earlier.

    Windows shorter than a day compare against their first sample.
    """
    if len(series) == 0:
        return 0.0
    bars = max(1, _MINUTES_PER_DAY // max(1, bar_minutes))
    latest = float(series[-1]) if latest is None else float(latest)
    reference = float(series[-bars - 1]) if len(series) > bars else float(series[0])
    return _pct_change(latest, reference)


class TechnicalAnalyzer:
    """Compute chart series, patterns, structure, and a strategy snapshot."""

    # ------------------------------------------------------------------
    # 1. Per-row chart columns
    # ------------------------------------------------------------------
    def compute_indicators(self, df: pd.DataFrame) -> pd.DataFrame:
        """Add indicator columns to a copy of an OHLCV DataFrame.

        Scalar indicators (MACD, Bollinger bands) are evaluated on expanding
        prefixes so each row only sees data available at that bar; rows
        without enough history carry the neutral default 0.
        """
        r = self._clean(df)
        n = len(r)
        close = r["Close"].values.astype(float)
        volume = r["Volume"].values.astype(float)

        r["RSI_14"] = rsi(close, 14)
        r["Stoch_K"] = stochastic_k(close, 14)
        r["Stoch_D"] = stochastic_d(r["Stoch_K"].values, 3)
        r["OBV"] = on_balance_volume(close, volume)
        r["ROC_14"] = momentum_indicators(close, 14)["roc"]

        macd_col = np.zeros(n)
        upper, mid, lower = np.zeros(n), np.zeros(n), np.zeros(n)
        for i in range(n):
            prefix = close[: i + 1]
            macd_col[i] = macd(prefix)
            bands = bollinger_bands(prefix)
            upper[i], mid[i], lower[i] = bands.upper, bands.middle, bands.lower
        r["MACD"] = macd_col
        r["BB_upper"] = upper
        r["BB_mid"] = mid
        r["BB_lower"] = lower

        # Wave labels cover only the trailing segmentation window
        wave = np.zeros(n, dtype=int)
        waves = elliott_waves(close)
        if waves is not None and waves.wave_labels:
            wave[n - len(waves.wave_labels):] = waves.wave_labels
        r["wave"] = wave

        return r

    # ------------------------------------------------------------------
    # 2. Strategy snapshot
    # ------------------------------------------------------------------
    def snapshot(
        self,
        df: pd.DataFrame,
        current_price: Optional[float] = None,
        history_rows: int = _HISTORY_ROWS,
        now: Optional[datetime] = None,
        bar_minutes: int = _DEFAULT_INTERVAL_MINUTES,
    ) -> IndicatorSnapshot:
        """Derive every indicator the strategies need from *df*.

        Raises:
            ValueError: *df* has no rows.
        """
        if df is None or df.empty:
            raise ValueError("No price data")

        ind = self.compute_indicators(df)
        if ind.empty:
            raise ValueError("No finite price data")
        prices = ind["Close"].values.astype(float)
        volumes = ind["Volume"].values.astype(float)
        times = self._timestamps(ind)
        price = float(current_price) if current_price else float(prices[-1])

        rsi_values = ind["RSI_14"].values.astype(float)
        macd_value = macd(prices)
        bands = bollinger_bands(prices)
        patterns = analyze_price_patterns(
            prices, "events", timestamps=times, now=now, interval_minutes=bar_minutes,
        )
        flags = analyze_price_patterns(prices, "flags")
        fib = fibonacci_levels(prices) or FibonacciLevels.zeros()

        snap = IndicatorSnapshot(
            current_price=price,
            prices=prices.tolist(),
            volumes=volumes.tolist(),
            times=times or [],
            rsi_values=rsi_values.tolist(),
            macd=macd_value,
            bands=bands,
            ma50=moving_average(prices, 50),
            ma200=moving_average(prices, 200),
            sentiment=market_sentiment(
                float(rsi_values[-1]), macd_value, price, bands.upper, bands.lower,
            ),
            stochastic_k=float(ind["Stoch_K"].iloc[-1]),
            stochastic_d=float(ind["Stoch_D"].iloc[-1]),
            obv=float(ind["OBV"].iloc[-1]),
            patterns=patterns,
            flags=flags,
            fibonacci=fib,
            support_resistance=support_resistance(prices),
            waves=elliott_waves(prices),
            volume_profile=volume_profile(prices, volumes),
            price_change_24h=change_over_day(prices, bar_minutes, latest=price),
            volume_change_24h=change_over_day(volumes, bar_minutes),
            history=self._history(ind, history_rows),
        )
        logger.info(
            "Snapshot: %d bars, price=%.2f rsi=%.1f macd=%.4f patterns=%d",
            len(prices), price, snap.rsi, macd_value, len(patterns),
        )
        return snap

    @staticmethod
    def _clean(df: pd.DataFrame) -> pd.DataFrame:
        """Copy of *df* without non-finite closes; non-finite volume becomes 0."""
        r = df.copy()
        close = pd.to_numeric(r["Close"], errors="coerce")
        volume = pd.to_numeric(r["Volume"], errors="coerce")
        bad_close = ~np.isfinite(close.values.astype(float))
        bad_volume = ~np.isfinite(volume.values.astype(float))
        if bad_close.any() or bad_volume.any():
            logger.warning(
                "Dropping %d bars with non-finite close, zeroing %d non-finite volumes",
                int(bad_close.sum()), int(bad_volume.sum()),
            )
        r["Close"] = close
        r["Volume"] = volume.where(~bad_volume, 0.0)
        return r[~bad_close].copy()

    @staticmethod
    def _timestamps(df: pd.DataFrame) -> Optional[List[datetime]]:
        if isinstance(df.index, pd.DatetimeIndex):
            return list(df.index.to_pydatetime())
        return None

    @staticmethod
    def _history(ind: pd.DataFrame, rows: int) -> List[dict]:
        """Trailing rows in the shape the language-model prompt lists."""
        history = []
        for ts, row in ind.tail(rows).iterrows():
            history.append({
                "time": ts.isoformat() if hasattr(ts, "isoformat") else str(ts),
                "price": round(float(row["Close"]), 2),
                "volume": round(float(row["Volume"]), 4),
                "rsi": round(float(row["RSI_14"]), 2),
                "macd": round(float(row["MACD"]), 4),
                "bollingerUpper": round(float(row["BB_upper"]), 2),
                "bollingerLower": round(float(row["BB_lower"]), 2),
            })
        return history

    # ------------------------------------------------------------------
    # 3. Full analysis for charting / JSON output
    # ------------------------------------------------------------------
    def full_analysis(
        self,
        df: pd.DataFrame,
        current_price: Optional[float] = None,
        bar_minutes: int = _DEFAULT_INTERVAL_MINUTES,
    ) -> dict:
        """Snapshot plus chart-only series (pivots, momentum) as a dict."""
        snap = self.snapshot(df, current_price=current_price, bar_minutes=bar_minutes)
        result = snap.to_dict()
        result["pivots"] = [p.to_dict() for p in find_pivots(snap.prices)]
        result["momentum"] = momentum_indicators(snap.prices)
        result["rsiSeries"] = [round(v, 2) for v in snap.rsi_values]
        return result
