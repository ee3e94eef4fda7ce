"""Structural analyzers: pivot-point S/R, Fibonacci levels, local pivots,
Elliott-wave segmentation, and the volume-by-price profile."""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

import numpy as np

from advisor.analysis.models import (
    FIBONACCI_RATIOS,
    ElliottWaveResult,
    FibonacciLevels,
    Pivot,
    SupportResistance,
    VolumeProfile,
    Wave,
)
from advisor.analysis.primitives import as_array
from advisor.utils.logger import setup_logger

logger = setup_logger("structure")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
_SR_MIN_SAMPLES = 10
_SR_LOOKBACK = 100
_PIVOT_HALF_WINDOW = 3
_PIVOT_THRESHOLD_PCT = 0.002    # 0.2 % of the window max
_WAVE_WINDOW = 50
_WAVE_NOISE_PCT = 0.005         # 0.5 % of the window max
_MAX_WAVES = 5
PROFILE_BUCKETS = 20


def support_resistance(series: Sequence[float]) -> SupportResistance:
    """Classic pivot-point support/resistance over the last 100 samples."""
    arr = as_array(series)
    if len(arr) < _SR_MIN_SAMPLES:
        return SupportResistance(0.0, 0.0)
    recent = arr[-_SR_LOOKBACK:]
    high, low, close = float(recent.max()), float(recent.min()), float(recent[-1])
    pivot = (high + low + close) / 3
    return SupportResistance(
        support=pivot - (high - pivot),
        resistance=pivot + (pivot - low),
    )


def fibonacci_levels(series: Sequence[float]) -> Optional[FibonacciLevels]:
    """Retracement/extension levels anchored on the window's high and low.

    ``level0`` is the high, ``level1000`` the low; ratios above 1 extend
    below the low.  Returns ``None`` with fewer than two samples.
    """
    arr = as_array(series)
    if len(arr) < 2:
        return None
    high, low = float(arr.max()), float(arr.min())
    diff = high - low
    levels = {}
    for name, ratio in FIBONACCI_RATIOS.items():
        if ratio == 0.0:
            levels[name] = high
        elif ratio == 1.0:
            levels[name] = low
        else:
            levels[name] = high - diff * ratio
    return FibonacciLevels(**levels)


def find_pivots(series: Sequence[float]) -> List[Pivot]:
    """Local extrema with a 3-sample half-window and a 0.2 % noise threshold.

    A sample is a pivot high when it exceeds the maxima of both neighbouring
    sub-windows by more than the threshold; pivot lows mirror the rule.
    """
    arr = as_array(series)
    n = len(arr)
    w = _PIVOT_HALF_WINDOW
    if n < 2 * w + 1:
        return []
    threshold = float(arr.max()) * _PIVOT_THRESHOLD_PCT
    pivots: List[Pivot] = []
    for i in range(w, n - w):
        left = arr[i - w: i]
        right = arr[i + 1: i + w + 1]
        price = float(arr[i])
        if price - left.max() > threshold and price - right.max() > threshold:
            pivots.append(Pivot(i, "high", price))
        elif left.min() - price > threshold and right.min() - price > threshold:
            pivots.append(Pivot(i, "low", price))
    return pivots


def elliott_waves(series: Sequence[float]) -> Optional[ElliottWaveResult]:
    """Label up to five directional legs over the trailing 50 samples.

    The walk runs over the window's pivots, anchored at the first and last
    sample.  Returns ``None`` below 50 samples and an empty result if the
    segmentation itself fails.
    """
    arr = as_array(series)
    if len(arr) < _WAVE_WINDOW:
        return None
    try:
        window = arr[-_WAVE_WINDOW:]
        if not np.all(np.isfinite(window)):
            raise ValueError("window contains non-finite prices")
        pivots = _anchor_pivots(window, find_pivots(window))
        waves, labels, current = _identify_waves(window, pivots)
        return ElliottWaveResult(
            prices=window.tolist(),
            wave_labels=labels,
            current_wave=current,
            waves=waves,
        )
    except Exception as exc:
        logger.error("Elliott wave calculation failed: %s", exc)
        return ElliottWaveResult()


def _anchor_pivots(window: np.ndarray, pivots: List[Pivot]) -> List[Pivot]:
    """Add the window's first and last sample as boundary pivots."""
    last = len(window) - 1
    first_price, last_price = float(window[0]), float(window[last])

    next_price = pivots[0].price if pivots else last_price
    start = Pivot(0, "low" if first_price <= next_price else "high", first_price)

    prev_price = pivots[-1].price if pivots else first_price
    end = Pivot(last, "high" if last_price >= prev_price else "low", last_price)
    return [start, *pivots, end]


def _identify_waves(
    window: np.ndarray, pivots: List[Pivot],
) -> Tuple[List[Wave], List[int], int]:
    labels = [0] * len(window)
    waves: List[Wave] = []
    current = 0
    min_change = float(window.max()) * _WAVE_NOISE_PCT

    for prev, pivot in zip(pivots, pivots[1:]):
        if abs(pivot.price - prev.price) < min_change:
            continue
        if current >= _MAX_WAVES:
            break
        current += 1
        waves.append(Wave(prev, pivot, current))
        for j in range(prev.index, pivot.index + 1):
            labels[j] = current
    return waves, labels, current


def volume_profile(
    prices: Sequence[float], volumes: Sequence[float], buckets: int = PROFILE_BUCKETS,
) -> VolumeProfile:
    """Histogram of volume across equal-width price buckets over [min, max].

    The top of the range falls into the last bucket, so the histogram always
    sums to the total volume.
    """
    p = as_array(prices)
    v = as_array(volumes)
    if len(p) != len(v):
        logger.warning("Volume profile: %d prices vs %d volumes, truncating", len(p), len(v))
    n = min(len(p), len(v))
    if n == 0:
        return VolumeProfile([0.0] * buckets, [0.0] * buckets)
    p, v = p[:n], v[:n]

    low, high = float(p.min()), float(p.max())
    interval = (high - low) / buckets
    if interval > 0:
        idx = np.floor((p - low) / interval).astype(int)
    else:
        idx = np.zeros(n, dtype=int)
    idx = np.clip(idx, 0, buckets - 1)

    profile = np.bincount(idx, weights=v, minlength=buckets)
    return VolumeProfile(
        profile=[float(x) for x in profile],
        price_points=[low + i * interval for i in range(buckets)],
    )
