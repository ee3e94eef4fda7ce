"""Close-only candle heuristics and the backward pattern scanner.

The detectors look at a short trailing sub-window of closing prices and use
fixed percentage thresholds.  They are boolean classifiers, not calibrated
models.  ``analyze_price_patterns`` is the single entry point with two
explicit output variants:

* ``"events"`` - list of :class:`Pattern` entries, newest first
* ``"flags"``  - one :class:`CandleFlags` record for the latest sample
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Union

import numpy as np

from advisor.analysis.models import CandleFlags, Pattern
from advisor.analysis.primitives import as_array

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
SCAN_WINDOW = 10
_DOJI_BODY_PCT = 0.001          # body / average price
_MORNING_STAR_BODY_RATIO = 0.3
_HAMMER_SHADOW_MULT = 2.0
_REVERSAL_MOVE_PCT = 0.01       # of the window average
_CONTINUATION_MOVE_PCT = 0.005
_DEFAULT_INTERVAL_MINUTES = 30

_DESCRIPTIONS = {
    ("reversal", "upward"): "The downtrend may be turning upward",
    ("reversal", "downward"): "The uptrend may be turning downward",
    ("continuation", "upward"): "The current uptrend is likely to continue",
    ("continuation", "downward"): "The current downtrend is likely to continue",
}


# ---------------------------------------------------------------------------
# Candle detectors
# ---------------------------------------------------------------------------
def is_doji(prices: Sequence[float]) -> bool:
    """Last body smaller than 0.1 % of the two closes' average."""
    arr = as_array(prices)
    if len(arr) < 2:
        return False
    last, prev = float(arr[-1]), float(arr[-2])
    average = (last + prev) / 2
    if average == 0:
        return False
    return abs(last - prev) / abs(average) < _DOJI_BODY_PCT


def is_morning_star(prices: Sequence[float]) -> bool:
    """Falling candle, small middle body, then a rise."""
    arr = as_array(prices)
    if len(arr) < 3:
        return False
    first, second, third = (float(x) for x in arr[-3:])
    ref = float(arr[-4]) if len(arr) >= 4 else first
    small_body = abs(second - ref) < abs(first - ref) * _MORNING_STAR_BODY_RATIO
    return first > second and small_body and third > second


def is_hammer(prices: Sequence[float]) -> bool:
    """Rising close whose lower shadow is more than twice the body.

    With closes only, the body is the last move and the lower shadow is how
    far the trailing three-sample low sits under that body.
    """
    arr = as_array(prices)
    if len(arr) < 3:
        return False
    last, prev = float(arr[-1]), float(arr[-2])
    body = abs(last - prev)
    lower_shadow = min(last, prev) - float(arr[-3:].min())
    return last > prev and lower_shadow > body * _HAMMER_SHADOW_MULT


def _window_move(segment: np.ndarray):
    last, prev = float(segment[-1]), float(segment[-2])
    average = float(segment.mean())
    rising_trend = last > float(segment[0])
    return last, prev, abs(last - prev), abs(average), rising_trend


def is_reversal_pattern(segment: Sequence[float]) -> bool:
    """Strong last move (> 1 % of the average) against the window's net trend."""
    arr = as_array(segment)
    if len(arr) < 2:
        return False
    last, prev, move, average, rising = _window_move(arr)
    return move > average * _REVERSAL_MOVE_PCT and (
        (rising and last < prev) or (not rising and last > prev)
    )


def is_continuation_pattern(segment: Sequence[float]) -> bool:
    """Last move (> 0.5 % of the average) in the window's trend direction."""
    arr = as_array(segment)
    if len(arr) < 2:
        return False
    last, prev, move, average, rising = _window_move(arr)
    return move > average * _CONTINUATION_MOVE_PCT and (
        (rising and last > prev) or (not rising and last < prev)
    )


# ---------------------------------------------------------------------------
# Strength heuristics (0-100)
# ---------------------------------------------------------------------------
def trend_strength(prices: Sequence[float]) -> float:
    """Share of consecutive moves that keep the previous move's direction."""
    changes = np.diff(as_array(prices))
    if len(changes) == 0:
        return 0.0
    signs = np.sign(changes)
    consistent = 1 + int(np.sum(signs[1:] == signs[:-1]))
    return consistent / len(changes) * 100


def price_volatility(prices: Sequence[float]) -> float:
    """Population std of percent returns, scaled by 10 and capped at 100."""
    arr = as_array(prices)
    if len(arr) < 2:
        return 0.0
    base = arr[:-1]
    safe = np.where(base != 0, base, 1.0)
    returns = np.where(base != 0, np.diff(arr) / safe * 100, 0.0)
    return float(min(100.0, returns.std() * 10))


def move_strength(prices: Sequence[float]) -> float:
    """Average net move relative to the latest price, scaled by 1000."""
    arr = as_array(prices)
    if len(arr) < 2 or arr[-1] == 0:
        return 0.0
    avg_change = abs(float(np.diff(arr).mean()))
    return float(min(100.0, avg_change / abs(arr[-1]) * 1000))


def momentum_strength(prices: Sequence[float]) -> float:
    """Absolute rate of change over the window, doubled and capped."""
    arr = as_array(prices)
    if len(arr) < 2 or arr[0] == 0:
        return 0.0
    roc = (arr[-1] - arr[0]) / arr[0] * 100
    return float(min(100.0, abs(roc) * 2))


def pattern_strength(prices: Sequence[float]) -> float:
    """Weighted blend: volatility 40 %, move 30 %, momentum 30 %."""
    return (
        price_volatility(prices) * 0.4
        + move_strength(prices) * 0.3
        + momentum_strength(prices) * 0.3
    )


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------
def detect_pattern_events(
    prices: Sequence[float],
    timestamps: Optional[Sequence[datetime]] = None,
    now: Optional[datetime] = None,
    interval_minutes: int = _DEFAULT_INTERVAL_MINUTES,
) -> List[Pattern]:
    """Slide an 11-sample window backward from the newest sample.

    Each position that qualifies as a reversal or continuation yields one
    :class:`Pattern`, so the list is naturally newest-first.  Without
    *timestamps*, times are back-filled from *now* at *interval_minutes*.
    """
    arr = as_array(prices)
    n = len(arr)
    if timestamps is not None and len(timestamps) != n:
        timestamps = None
    now = now or datetime.now()

    patterns: List[Pattern] = []
    for i in range(n - 1, SCAN_WINDOW - 1, -1):
        segment = arr[i - SCAN_WINDOW: i + 1]
        if is_reversal_pattern(segment):
            kind = "reversal"
        elif is_continuation_pattern(segment):
            kind = "continuation"
        else:
            continue
        direction = "upward" if arr[i] > arr[i - 1] else "downward"
        when = (
            timestamps[i] if timestamps is not None
            else now - timedelta(minutes=(n - i) * interval_minutes)
        )
        patterns.append(Pattern(
            type=kind,
            sub_type=direction,
            price=float(arr[i]),
            time=when,
            description=_DESCRIPTIONS[(kind, direction)],
            index=i,
            strength=pattern_strength(segment),
        ))
    return patterns


def detect_pattern_flags(prices: Sequence[float]) -> CandleFlags:
    """Boolean candle flags for the most recent sample."""
    arr = as_array(prices)
    tail = arr[-(SCAN_WINDOW + 1):]
    return CandleFlags(
        is_doji=is_doji(arr),
        is_morning_star=is_morning_star(arr),
        is_hammer=is_hammer(arr),
        is_reversal=len(tail) > SCAN_WINDOW and is_reversal_pattern(tail),
        is_continuation=len(tail) > SCAN_WINDOW and is_continuation_pattern(tail),
    )


def analyze_price_patterns(
    prices: Sequence[float],
    variant: str = "events",
    **kwargs,
) -> Union[List[Pattern], CandleFlags]:
    """Run the pattern detector and return the requested output variant.

    Raises:
        ValueError: *variant* is neither ``"events"`` nor ``"flags"``.
    """
    if variant == "events":
        return detect_pattern_events(prices, **kwargs)
    if variant == "flags":
        return detect_pattern_flags(prices)
    raise ValueError(f"Unknown pattern variant: {variant!r}")
