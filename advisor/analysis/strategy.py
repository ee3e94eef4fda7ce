"""Rule-based trading strategy engine.

Single-shot evaluation with no state between calls:

1. trend      - "up" when the MACD scalar is positive, else "down"
2. volatility - Bollinger width as a percent of the middle band
3. pattern    - newest detected pattern: reversal up, reversal down, or none
4. risk       - multiplier 1.5 / 2.0 / 2.5 for volatility < 20 / < 40 / above
5. levels     - entry, stop-loss, take-profit per pattern branch; the entry
                never exceeds the current price
6. narrative  - deterministic templates filled with the computed values
"""

from __future__ import annotations

import math
from typing import Any, Optional, Sequence, Union

from advisor.analysis.base import BaseAdviceStrategy
from advisor.analysis.models import (
    AdviceAnalysis,
    Bands,
    IndicatorSnapshot,
    MarketContext,
    Pattern,
    TradeLevels,
    TradingAdvice,
)
from advisor.analysis.narratives import NarrativeBank, NarrativeFeatures, load_narrative_bank
from advisor.analysis.primitives import as_array
from advisor.utils.logger import setup_logger

logger = setup_logger("strategy")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
_VOLUME_LOOKBACK = 5
_NARRATIVE_HIGH_VOLATILITY = 30.0   # percent band width
_LOWER_BAND_ENTRY = 1.01            # entry just above the lower band
_REVERSAL_UP_STOP = 0.99
_REVERSAL_DOWN_ENTRY = 0.98
_REVERSAL_DOWN_STOP = 0.98
_DEFAULT_STOP = 0.985
_DEFAULT_REWARD_MULT = 2.0


def trend_direction(macd_value: float) -> str:
    return "up" if macd_value > 0 else "down"


def band_volatility(bands: Bands) -> float:
    """Band width as a percent of the middle band; 0.0 for a zero middle."""
    if bands.middle == 0:
        return 0.0
    return (bands.upper - bands.lower) / bands.middle * 100


def risk_multiplier(volatility: float) -> float:
    if volatility < 20:
        return 1.5
    if volatility < 40:
        return 2.0
    return 2.5


def classify_pattern(pattern: Union[Pattern, dict, None]) -> str:
    """Map the newest pattern to ``reversal_up``, ``reversal_down`` or ``none``.

    Accepts :class:`Pattern` records or their ``to_dict`` form.
    """
    if pattern is None:
        return "none"
    if isinstance(pattern, dict):
        kind = pattern.get("type", "")
        direction = pattern.get("subType", pattern.get("sub_type", ""))
    else:
        kind, direction = pattern.type, pattern.sub_type
    if kind != "reversal":
        return "none"
    if direction == "upward":
        return "reversal_up"
    if direction == "downward":
        return "reversal_down"
    return "none"


def volume_trend(volumes: Sequence[float]) -> tuple[str, float]:
    """Latest volume against the trailing 5-sample mean.

    Returns the trend label and the percent change versus that mean.
    """
    recent = as_array(volumes)[-_VOLUME_LOOKBACK:]
    if len(recent) == 0:
        return "decreasing", 0.0
    average = float(recent.mean())
    latest = float(recent[-1])
    change = (latest - average) / average * 100 if average else 0.0
    return ("increasing" if latest > average else "decreasing"), change


def compute_trade_levels(
    current_price: float,
    macd_value: float,
    bands: Bands,
    patterns: Sequence[Any],
) -> TradeLevels:
    """Entry, stop-loss, and take-profit for the newest pattern's branch."""
    volatility = band_volatility(bands)
    risk = risk_multiplier(volatility)
    branch = classify_pattern(patterns[0] if patterns else None)
    lower_entry = bands.lower * _LOWER_BAND_ENTRY

    if branch == "reversal_up":
        buy_target = min(current_price, lower_entry)
        stop_loss = min(current_price * _REVERSAL_UP_STOP, bands.lower)
        take_profit = current_price + (current_price - stop_loss) * risk
    elif branch == "reversal_down":
        buy_target = min(current_price, max(lower_entry, current_price * _REVERSAL_DOWN_ENTRY))
        stop_loss = buy_target * _REVERSAL_DOWN_STOP
        take_profit = bands.middle
    else:
        buy_target = min(current_price, lower_entry)
        stop_loss = min(current_price * _DEFAULT_STOP, bands.lower)
        take_profit = current_price + (current_price - stop_loss) * _DEFAULT_REWARD_MULT

    return TradeLevels(
        buy_target=buy_target,
        stop_loss=stop_loss,
        take_profit=take_profit,
        branch=branch,
        risk_multiplier=risk,
        volatility=volatility,
    )


def _price_str(value: float) -> str:
    return f"{value:.2f}"


def _entry_str(buy_target: float, current_price: float) -> str:
    """Format the entry, rounding down when rounding would pass the price."""
    text = _price_str(buy_target)
    if float(text) > current_price:
        text = _price_str(math.floor(buy_target * 100) / 100)
    return text


def rsi_status(rsi: float) -> str:
    if rsi > 70:
        return "is in overbought territory"
    if rsi < 30:
        return "is oversold and a rebound is possible"
    if rsi > 60:
        return "is in the bullish zone"
    if rsi < 40:
        return "is in the bearish zone"
    return "is neutral"


def band_position_label(price: float, bands: Bands) -> str:
    upper_dist = abs(price - bands.upper)
    middle_dist = abs(price - bands.middle)
    lower_dist = abs(price - bands.lower)
    if upper_dist < middle_dist and upper_dist < lower_dist:
        return "near the upper band"
    if lower_dist < middle_dist and lower_dist < upper_dist:
        return "near the lower band"
    return "near the middle band"


def analyze_trading_strategy(
    current_price: float,
    rsi_values: Sequence[float],
    macd_value: float,
    bands: Union[Bands, dict],
    patterns: Sequence[Any],
    volumes: Sequence[float],
    bank: Optional[NarrativeBank] = None,
) -> TradingAdvice:
    """Evaluate the rule set once and return a :class:`TradingAdvice`.

    Callers must supply a full window (50+ samples recommended); the engine
    itself never receives "no data".
    """
    if isinstance(bands, dict):
        bands = Bands(bands["upper"], bands["middle"], bands["lower"])
    bank = bank or NarrativeBank()

    levels = compute_trade_levels(current_price, macd_value, bands, patterns)
    trend = trend_direction(macd_value)
    rsi_values = as_array(rsi_values)
    last_rsi = float(rsi_values[-1]) if len(rsi_values) else 50.0
    vol_label, vol_change = volume_trend(volumes)

    buy_target = _entry_str(levels.buy_target, current_price)
    stop_loss = _price_str(levels.stop_loss)
    take_profit = _price_str(levels.take_profit)

    features = NarrativeFeatures(
        trend_up=trend == "up",
        high_volatility=levels.volatility > _NARRATIVE_HIGH_VOLATILITY,
        volume_increasing=vol_label == "increasing",
        reversal=levels.branch != "none",
    )
    values = {
        "trend_label": "upward" if trend == "up" else "downward",
        "rsi": last_rsi,
        "rsi_status": rsi_status(last_rsi),
        "macd": macd_value,
        "price": current_price,
        "upper": bands.upper,
        "middle": bands.middle,
        "lower": bands.lower,
        "volatility": levels.volatility,
        "band_position": band_position_label(current_price, bands),
        "volume_trend": vol_label,
        "volume_change": vol_change,
        "pattern": levels.branch.replace("_", " "),
        "buy_target": buy_target,
        "stop_loss": stop_loss,
        "take_profit": take_profit,
    }
    analysis = AdviceAnalysis(
        **{category: bank.render(category, features, values)
           for category in ("trend", "technical", "volume", "conclusion")}
    )
    logger.debug(
        "Strategy branch=%s trend=%s volatility=%.2f entry=%s",
        levels.branch, trend, levels.volatility, buy_target,
    )
    return TradingAdvice(
        buy_target=buy_target,
        stop_loss=stop_loss,
        take_profit=take_profit,
        analysis=analysis,
        source="rule_based",
    )


class RuleBasedStrategy(BaseAdviceStrategy):
    """Local, network-free advice from the rule set above."""

    name = "rule_based"

    def __init__(self, bank: Optional[NarrativeBank] = None) -> None:
        if bank is None:
            from advisor.config import SETTINGS
            bank = load_narrative_bank(SETTINGS.get("advice", {}).get("narrative_bank"))
        self._bank = bank

    def advise(
        self, snapshot: IndicatorSnapshot, market: Optional[MarketContext] = None,
    ) -> TradingAdvice:
        return analyze_trading_strategy(
            current_price=snapshot.current_price,
            rsi_values=snapshot.rsi_values,
            macd_value=snapshot.macd,
            bands=snapshot.bands,
            patterns=snapshot.patterns,
            volumes=snapshot.volumes,
            bank=self._bank,
        )
