"""Momentum and volume-flow oscillators computed per sample."""

from __future__ import annotations

from typing import Dict, List, Sequence

import numpy as np

from advisor.analysis.primitives import as_array, rate_of_change

RSI_OVERBOUGHT = 70.0
RSI_OVERSOLD = 30.0
_RSI_NEUTRAL = 50.0


def rsi(series: Sequence[float], period: int = 14) -> np.ndarray:
    """Wilder-smoothed RSI with one value per input sample.

    Indices before *period* hold the neutral seed 50, as does every index
    when fewer than ``period + 1`` samples exist.  A zero average loss
    saturates at 100 while gains exist and stays at 50 on a flat window.
    """
    arr = as_array(series)
    n = len(arr)
    out = np.full(n, _RSI_NEUTRAL)
    if period <= 0 or n < period + 1:
        return out

    deltas = np.diff(arr)
    gains = np.where(deltas > 0, deltas, 0.0)
    losses = np.where(deltas < 0, -deltas, 0.0)

    avg_gain = float(gains[:period].mean())
    avg_loss = float(losses[:period].mean())
    out[period] = _rsi_value(avg_gain, avg_loss)

    for i in range(period + 1, n):
        avg_gain = (avg_gain * (period - 1) + gains[i - 1]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i - 1]) / period
        out[i] = _rsi_value(avg_gain, avg_loss)
    return out


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_loss <= 0:
        return 100.0 if avg_gain > 0 else _RSI_NEUTRAL
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def stochastic_k(series: Sequence[float], period: int = 14) -> np.ndarray:
    """%K per sample over a rolling window trimmed at the series start.

    A flat window (high == low) uses a denominator of 1, giving 0.
    """
    arr = as_array(series)
    out = np.zeros(len(arr))
    if period <= 0:
        return out
    for i in range(len(arr)):
        window = arr[max(0, i - period + 1): i + 1]
        high, low = float(window.max()), float(window.min())
        span = high - low
        out[i] = (arr[i] - low) / (span if span > 0 else 1.0) * 100.0
    return out


def stochastic_d(k_values: Sequence[float], period: int = 3) -> np.ndarray:
    """%D: trailing mean of %K, trimmed at the series start."""
    arr = as_array(k_values)
    out = np.zeros(len(arr))
    if period <= 0:
        return out
    for i in range(len(arr)):
        out[i] = float(arr[max(0, i - period + 1): i + 1].mean())
    return out


def on_balance_volume(prices: Sequence[float], volumes: Sequence[float]) -> np.ndarray:
    """Cumulative volume flow seeded with the first volume sample."""
    p = as_array(prices)
    v = as_array(volumes)
    n = min(len(p), len(v))
    out = np.zeros(n)
    if n == 0:
        return out
    out[0] = v[0]
    for i in range(1, n):
        if p[i] > p[i - 1]:
            out[i] = out[i - 1] + v[i]
        elif p[i] < p[i - 1]:
            out[i] = out[i - 1] - v[i]
        else:
            out[i] = out[i - 1]
    return out


def rsi_zone(value: float) -> str:
    if value > RSI_OVERBOUGHT:
        return "overbought"
    if value < RSI_OVERSOLD:
        return "oversold"
    return "neutral"


def momentum_indicators(series: Sequence[float], period: int = 14) -> Dict[str, List]:
    """ROC series plus the RSI zone label for every sample."""
    return {
        "roc": rate_of_change(series, period).tolist(),
        "rsi_trend": [rsi_zone(v) for v in rsi(series, period)],
    }
