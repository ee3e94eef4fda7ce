"""Narrative template bank for the rule-based trading advice.

Text is data: a :class:`NarrativeBank` maps each advice category to feature
buckets, and each bucket to a list of ``str.format`` templates.  The
template is picked deterministically from the computed feature buckets, so
identical inputs always produce identical prose.  A YAML file with the same
nesting can replace the built-in bank.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from advisor.config import PROJECT_ROOT
from advisor.utils.logger import setup_logger

logger = setup_logger("narratives")

CATEGORIES = ("trend", "technical", "volume", "conclusion")

BUCKETS = {
    "trend": ("up", "down"),
    "technical": ("high", "low"),
    "volume": ("increasing", "decreasing"),
    "conclusion": ("reversal", "continuation"),
}

# Every template reports the values its category is responsible for:
# trend -> direction with RSI/MACD, technical -> volatility regime and band
# position, volume -> trend vs the 5-sample average with percent change,
# conclusion -> entry, stop-loss, and take-profit.
DEFAULT_TEMPLATES: Dict[str, Dict[str, List[str]]] = {
    "trend": {
        "up": [
            "The market is in an uptrend. RSI ({rsi:.1f}) {rsi_status}, and MACD at "
            "{macd:.2f} confirms upward momentum as price works toward the upper "
            "Bollinger band (${upper:.2f}).",
            "Technicals point to an uptrend: price (${price:.2f}) holds above the "
            "band middle (${middle:.2f}) with RSI at {rsi:.1f} and a positive MACD "
            "of {macd:.2f}.",
            "The uptrend is intact. RSI ({rsi:.1f}) {rsi_status} and MACD ({macd:.2f}) "
            "stays positive, leaving room for further gains.",
        ],
        "down": [
            "The market is in a downtrend. RSI ({rsi:.1f}) {rsi_status}, and MACD at "
            "{macd:.2f} shows persistent downward momentum toward the lower "
            "Bollinger band (${lower:.2f}).",
            "Technicals favour a downtrend: price (${price:.2f}) trades below the "
            "band middle (${middle:.2f}) with RSI at {rsi:.1f} and a non-positive "
            "MACD of {macd:.2f}.",
            "The downtrend continues. RSI ({rsi:.1f}) {rsi_status} while MACD "
            "({macd:.2f}) stays weak, so further downside remains possible.",
        ],
    },
    "technical": {
        "high": [
            "Volatility is high at {volatility:.1f}% of the band middle. Price sits "
            "{band_position} of the Bollinger band (${lower:.2f} - ${upper:.2f}); "
            "expect sharp swings and manage risk tightly.",
            "The bands have widened to {volatility:.1f}%, a high-volatility regime. "
            "With price {band_position}, abrupt reversals are possible.",
            "High volatility ({volatility:.1f}%): price is {band_position} and moves "
            "between the bands can be large, so a firm stop-loss matters.",
        ],
        "low": [
            "Volatility is contained at {volatility:.1f}%. Price sits {band_position} "
            "of the Bollinger band (${lower:.2f} - ${upper:.2f}) and orderly moves "
            "are expected.",
            "The band width holds at {volatility:.1f}%, a calm regime. Price trades "
            "{band_position}, favouring gradual, predictable moves.",
            "Low volatility ({volatility:.1f}%): with price {band_position}, "
            "trend-following entries are easier to manage.",
        ],
    },
    "volume": {
        "increasing": [
            "Volume is rising: the latest bar is {volume_change:+.1f}% versus the "
            "5-bar average, adding conviction to the {trend_label} move.",
            "Participation is picking up, with volume {volume_change:+.1f}% against "
            "the recent 5-bar average behind the {trend_label} trend.",
            "Volume expansion of {volume_change:+.1f}% over the 5-bar average "
            "supports continuation of the {trend_label} trend.",
        ],
        "decreasing": [
            "Volume is fading: the latest bar is {volume_change:+.1f}% versus the "
            "5-bar average, so the {trend_label} move lacks confirmation.",
            "Participation is thinning, with volume {volume_change:+.1f}% against the "
            "recent 5-bar average; wait for volume before trusting the "
            "{trend_label} trend.",
            "Volume contraction of {volume_change:+.1f}% versus the 5-bar average "
            "signals a wait-and-see market.",
        ],
    },
    "conclusion": {
        "reversal": [
            "A {pattern} pattern suggests a possible trend change. Consider entry "
            "near ${buy_target}, stop-loss at ${stop_loss}, and take-profit at "
            "${take_profit}.",
            "{pattern} signal detected. Respect the stop-loss (${stop_loss}) and "
            "take-profit (${take_profit}) around an entry of ${buy_target}.",
            "Reversal setup ({pattern}): entry ${buy_target}, stop ${stop_loss}, "
            "target ${take_profit}. Size positions conservatively.",
        ],
        "continuation": [
            "The current trend is expected to continue. Plan entry near "
            "${buy_target} with a stop-loss at ${stop_loss} and take-profit at "
            "${take_profit}.",
            "The prevailing {trend_label} trend remains valid. Trade the range with "
            "entry ${buy_target}, stop ${stop_loss}, target ${take_profit}.",
            "Trend health looks sound. Reference levels: entry ${buy_target}, "
            "stop-loss ${stop_loss}, take-profit ${take_profit}.",
        ],
    },
}


class _Placeholder:
    """Stands in for an unknown field and re-emits it, format spec included."""

    def __init__(self, key: str):
        self.key = key

    def __format__(self, spec: str) -> str:
        return "{" + self.key + (":" + spec if spec else "") + "}"


class _KeepMissing(dict):
    def __missing__(self, key):
        return _Placeholder(key)


@dataclass(frozen=True)
class NarrativeFeatures:
    """Feature buckets that drive template selection."""

    trend_up: bool
    high_volatility: bool
    volume_increasing: bool
    reversal: bool

    @property
    def variant(self) -> int:
        return int(self.trend_up) + 2 * int(self.high_volatility) + 4 * int(self.volume_increasing)

    def bucket(self, category: str) -> str:
        if category == "trend":
            return "up" if self.trend_up else "down"
        if category == "technical":
            return "high" if self.high_volatility else "low"
        if category == "volume":
            return "increasing" if self.volume_increasing else "decreasing"
        return "reversal" if self.reversal else "continuation"


class NarrativeBank:
    """Category -> bucket -> templates, validated on construction."""

    def __init__(self, templates: Optional[Dict[str, Dict[str, List[str]]]] = None):
        self.templates = templates or DEFAULT_TEMPLATES
        for category in CATEGORIES:
            for bucket in BUCKETS[category]:
                entries = self.templates.get(category, {}).get(bucket)
                if not entries:
                    raise ValueError(f"Narrative bank has no templates for {category}/{bucket}")

    def select(self, category: str, features: NarrativeFeatures) -> str:
        entries = self.templates[category][features.bucket(category)]
        return entries[features.variant % len(entries)]

    def render(self, category: str, features: NarrativeFeatures, values: dict) -> str:
        """Fill the selected template; a template that cannot be formatted is returned as-is."""
        template = self.select(category, features)
        try:
            return template.format_map(_KeepMissing(values))
        except (ValueError, TypeError, AttributeError, IndexError) as e:
            logger.warning("Narrative template for %s could not be filled: %s", category, e)
            return template


def load_narrative_bank(path: Optional[str] = None) -> NarrativeBank:
    """Load a bank from YAML, or the built-in one when *path* is empty.

    Relative paths are resolved against the project root.
    """
    if not path:
        return NarrativeBank()
    bank_path = Path(path)
    if not bank_path.is_absolute():
        bank_path = PROJECT_ROOT / bank_path
    with open(bank_path) as f:
        return NarrativeBank(yaml.safe_load(f) or {})
