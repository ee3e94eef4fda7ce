"""Composite 0-100 market sentiment from RSI, MACD sign, and band position.

Breakpoints:
    RSI   - 40 at/below 30, 0 at/above 70, linear in between
    MACD  - flat 30 when positive
    Bands - 30 below 0.3 of the band width, 0 above 0.7, linear in between
"""

from __future__ import annotations

_RSI_MAX_SCORE = 40.0
_MACD_SCORE = 30.0
_BB_MAX_SCORE = 30.0
_RSI_LOW, _RSI_HIGH = 30.0, 70.0
_BB_LOW, _BB_HIGH = 0.3, 0.7


def rsi_score(rsi: float) -> float:
    if rsi > _RSI_HIGH:
        return 0.0
    if rsi < _RSI_LOW:
        return _RSI_MAX_SCORE
    return (_RSI_HIGH - rsi) / (_RSI_HIGH - _RSI_LOW) * _RSI_MAX_SCORE


def band_position(price: float, bb_upper: float, bb_lower: float):
    """Normalised position of *price* inside the band, ``None`` if degenerate."""
    width = bb_upper - bb_lower
    if width <= 0:
        return None
    return (price - bb_lower) / width


def band_score(price: float, bb_upper: float, bb_lower: float) -> float:
    position = band_position(price, bb_upper, bb_lower)
    if position is None:
        return 0.0
    if position < _BB_LOW:
        return _BB_MAX_SCORE
    if position > _BB_HIGH:
        return 0.0
    return (_BB_HIGH - position) / (_BB_HIGH - _BB_LOW) * _BB_MAX_SCORE


def market_sentiment(
    rsi: float, macd: float, price: float, bb_upper: float, bb_lower: float,
) -> float:
    """Sum of the three sub-scores, clamped to [0, 100]."""
    score = rsi_score(rsi) + (_MACD_SCORE if macd > 0 else 0.0) + band_score(price, bb_upper, bb_lower)
    return max(0.0, min(100.0, score))
