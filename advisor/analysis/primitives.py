"""Leaf series math: moving averages, MACD scalar, Bollinger bands, ROC.

All functions accept any sequence of floats (list, numpy array, pandas
Series) and never raise on short input; each returns the documented neutral
value instead, which callers must treat as "insufficient data".
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from advisor.analysis.models import Bands

_MACD_FAST = 12
_MACD_SLOW = 26


def as_array(series: Sequence[float]) -> np.ndarray:
    """Return *series* as a 1-D float array (no copy when already one)."""
    return np.asarray(series, dtype=float).reshape(-1)


def moving_average(series: Sequence[float], period: int) -> float:
    """Arithmetic mean of the last *period* values, 0.0 when too short."""
    arr = as_array(series)
    if period <= 0 or len(arr) < period:
        return 0.0
    return float(arr[-period:].mean())


def exponential_moving_average(series: Sequence[float], period: int) -> float:
    """EMA over the trailing *period* values with k = 2 / (period + 1).

    The recursion is seeded with the sample immediately before the window.
    When the window spans the whole series the first window value is the
    seed.  Returns 0.0 when fewer than *period* samples are available.
    """
    arr = as_array(series)
    if period <= 0 or len(arr) < period:
        return 0.0
    k = 2.0 / (period + 1)
    window = arr[-period:]
    ema = float(arr[-period - 1]) if len(arr) > period else float(window[0])
    for price in window:
        ema = float(price) * k + ema * (1.0 - k)
    return ema


def macd(series: Sequence[float]) -> float:
    """One-shot MACD value: EMA(12) - EMA(26); 0.0 below 26 samples."""
    arr = as_array(series)
    if len(arr) < _MACD_SLOW:
        return 0.0
    return exponential_moving_average(arr, _MACD_FAST) - exponential_moving_average(arr, _MACD_SLOW)


def bollinger_bands(
    series: Sequence[float], period: int = 20, std_dev_multiplier: float = 2.0,
) -> Bands:
    """SMA(*period*) +/- *std_dev_multiplier* population standard deviations."""
    arr = as_array(series)
    if period <= 0 or len(arr) < period:
        return Bands.zeros()
    window = arr[-period:]
    middle = float(window.mean())
    std = float(np.sqrt(np.mean((window - middle) ** 2)))
    return Bands(
        upper=middle + std * std_dev_multiplier,
        middle=middle,
        lower=middle - std * std_dev_multiplier,
    )


def rate_of_change(series: Sequence[float], period: int = 14) -> np.ndarray:
    """Percent change against the sample *period* steps back, per sample.

    The first *period* entries (and any with a zero reference) are 0.0.
    """
    arr = as_array(series)
    roc = np.zeros(len(arr))
    if period <= 0 or len(arr) <= period:
        return roc
    ref = arr[:-period]
    cur = arr[period:]
    safe_ref = np.where(ref != 0, ref, 1.0)
    roc[period:] = np.where(ref != 0, (cur - ref) / safe_ref * 100.0, 0.0)
    return roc
