"""Record types shared by the indicator, pattern, and strategy modules.

Every record is a plain dataclass recomputed on each analysis pass; none of
them carries state between calls.  ``to_dict`` produces JSON-ready output for
the dashboard and the language-model payload.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional


@dataclass(frozen=True)
class Bands:
    upper: float
    middle: float
    lower: float

    @classmethod
    def zeros(cls) -> "Bands":
        return cls(0.0, 0.0, 0.0)

    @property
    def width(self) -> float:
        return self.upper - self.lower

    def to_dict(self) -> dict:
        return {"upper": self.upper, "middle": self.middle, "lower": self.lower}


@dataclass(frozen=True)
class SupportResistance:
    support: float
    resistance: float

    def to_dict(self) -> dict:
        return {"support": self.support, "resistance": self.resistance}


@dataclass(frozen=True)
class Pivot:
    index: int
    type: str      # high / low
    price: float

    def to_dict(self) -> dict:
        return {"index": self.index, "type": self.type, "price": self.price}


@dataclass
class Pattern:
    type: str               # reversal / continuation
    sub_type: str           # upward / downward
    price: float
    time: datetime
    description: str
    index: int = -1         # position in the scanned series
    strength: float = 0.0   # 0-100 heuristic confidence of the window

    @property
    def is_reversal(self) -> bool:
        return self.type == "reversal"

    @property
    def is_upward(self) -> bool:
        return self.sub_type == "upward"

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "subType": self.sub_type,
            "price": self.price,
            "time": self.time.isoformat(),
            "description": self.description,
            "index": self.index,
            "strength": round(self.strength, 2),
        }


@dataclass(frozen=True)
class CandleFlags:
    is_doji: bool = False
    is_morning_star: bool = False
    is_hammer: bool = False
    is_reversal: bool = False
    is_continuation: bool = False

    def to_dict(self) -> dict:
        return {
            "isDoji": self.is_doji,
            "isMorningStar": self.is_morning_star,
            "isHammer": self.is_hammer,
            "isReversal": self.is_reversal,
            "isContinuation": self.is_continuation,
        }


# Ratio of the high-low range for each named level; levels past 100 % are
# extensions measured down from the low.
FIBONACCI_RATIOS: Dict[str, float] = {
    "level0": 0.0,
    "level236": 0.236,
    "level382": 0.382,
    "level500": 0.5,
    "level618": 0.618,
    "level786": 0.786,
    "level1000": 1.0,
    "level1128": 1.128,
    "level1236": 1.236,
    "level1382": 1.382,
    "level1500": 1.5,
}


@dataclass(frozen=True)
class FibonacciLevels:
    level0: float
    level236: float
    level382: float
    level500: float
    level618: float
    level786: float
    level1000: float
    level1128: float
    level1236: float
    level1382: float
    level1500: float

    @classmethod
    def zeros(cls) -> "FibonacciLevels":
        """All-zero level map callers substitute for a ``None`` result."""
        return cls(**{name: 0.0 for name in FIBONACCI_RATIOS})

    def to_dict(self) -> dict:
        return {name: getattr(self, name) for name in FIBONACCI_RATIOS}


@dataclass(frozen=True)
class Wave:
    start: Pivot
    end: Pivot
    wave_number: int

    def to_dict(self) -> dict:
        return {
            "start": self.start.to_dict(),
            "end": self.end.to_dict(),
            "waveNumber": self.wave_number,
        }


@dataclass
class ElliottWaveResult:
    prices: List[float] = field(default_factory=list)
    wave_labels: List[int] = field(default_factory=list)
    current_wave: int = 0
    waves: List[Wave] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.wave_labels

    def to_dict(self) -> dict:
        return {
            "labels": [str(i) for i in range(len(self.prices))],
            "prices": self.prices,
            "waveLabels": self.wave_labels,
            "currentWave": self.current_wave,
            "impulseWaves": [w.to_dict() for w in self.waves],
        }


@dataclass
class VolumeProfile:
    profile: List[float]
    price_points: List[float]

    @property
    def point_of_control(self) -> float:
        """Lower bound of the bucket holding the most volume."""
        if not self.profile or max(self.profile) <= 0:
            return 0.0
        return self.price_points[self.profile.index(max(self.profile))]

    def to_dict(self) -> dict:
        return {
            "profile": self.profile,
            "pricePoints": self.price_points,
            "pointOfControl": self.point_of_control,
        }


@dataclass(frozen=True)
class TradeLevels:
    buy_target: float
    stop_loss: float
    take_profit: float
    branch: str             # reversal_up / reversal_down / default
    risk_multiplier: float
    volatility: float


@dataclass(frozen=True)
class AdviceAnalysis:
    trend: str
    technical: str
    volume: str
    conclusion: str

    def to_dict(self) -> dict:
        return {
            "trend": self.trend,
            "technical": self.technical,
            "volume": self.volume,
            "conclusion": self.conclusion,
        }


_ADVICE_PRICE_KEYS = ("buyTarget", "stopLoss", "takeProfit")
_ADVICE_ANALYSIS_KEYS = ("trend", "technical", "volume", "conclusion")


@dataclass(frozen=True)
class TradingAdvice:
    buy_target: str
    stop_loss: str
    take_profit: str
    analysis: AdviceAnalysis
    source: str = "rule_based"

    def to_dict(self) -> dict:
        return {
            "buyTarget": self.buy_target,
            "stopLoss": self.stop_loss,
            "takeProfit": self.take_profit,
            "analysis": self.analysis.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict, source: str = "llm") -> "TradingAdvice":
        """Validate an advice JSON object and build a record from it.

        Raises:
            ValueError: a price or analysis field is missing or empty.
        """
        if not isinstance(data, dict):
            raise ValueError("Advice must be a JSON object")
        missing = [k for k in _ADVICE_PRICE_KEYS if not data.get(k)]
        analysis = data.get("analysis")
        if not isinstance(analysis, dict):
            missing.append("analysis")
            analysis = {}
        else:
            missing.extend(k for k in _ADVICE_ANALYSIS_KEYS if k not in analysis)
        if missing:
            raise ValueError(f"Invalid advice format, missing: {', '.join(missing)}")
        return cls(
            buy_target=str(data["buyTarget"]),
            stop_loss=str(data["stopLoss"]),
            take_profit=str(data["takeProfit"]),
            analysis=AdviceAnalysis(
                **{k: str(analysis[k]) for k in _ADVICE_ANALYSIS_KEYS}
            ),
            source=source,
        )


@dataclass(frozen=True)
class MarketDepth:
    buy_pressure: float = 0.0
    sell_pressure: float = 0.0

    def to_dict(self) -> dict:
        return {"buyPressure": self.buy_pressure, "sellPressure": self.sell_pressure}


@dataclass
class MarketContext:
    """Auxiliary futures / order-book inputs, each defaulting to 0."""

    funding_rate: float = 0.0
    open_interest: float = 0.0
    depth: MarketDepth = field(default_factory=MarketDepth)

    def to_dict(self) -> dict:
        return {
            "fundingRate": self.funding_rate,
            "openInterest": self.open_interest,
            "marketDepth": self.depth.to_dict(),
        }


@dataclass
class IndicatorSnapshot:
    """Everything one analysis pass derives from an OHLCV window."""

    current_price: float
    prices: List[float]
    volumes: List[float]
    times: List[datetime]
    rsi_values: List[float]
    macd: float
    bands: Bands
    ma50: float
    ma200: float
    sentiment: float
    stochastic_k: float
    stochastic_d: float
    obv: float
    patterns: List[Pattern]
    flags: CandleFlags
    fibonacci: FibonacciLevels
    support_resistance: SupportResistance
    waves: Optional[ElliottWaveResult]
    volume_profile: VolumeProfile
    price_change_24h: float
    volume_change_24h: float
    history: List[dict] = field(default_factory=list)

    @property
    def rsi(self) -> float:
        return self.rsi_values[-1] if self.rsi_values else 50.0

    @property
    def volume(self) -> float:
        return self.volumes[-1] if self.volumes else 0.0

    def to_dict(self) -> dict:
        return {
            "price": round(self.current_price, 2),
            "priceChange24h": round(self.price_change_24h, 2),
            "volume": round(self.volume, 4),
            "volumeChange24h": round(self.volume_change_24h, 2),
            "rsi": round(self.rsi, 2),
            "macd": round(self.macd, 4),
            "ma50": round(self.ma50, 2),
            "ma200": round(self.ma200, 2),
            "bollinger": self.bands.to_dict(),
            "marketSentiment": round(self.sentiment, 2),
            "stochastic": {
                "k": round(self.stochastic_k, 2),
                "d": round(self.stochastic_d, 2),
            },
            "obv": round(self.obv, 4),
            "pricePatterns": self.flags.to_dict(),
            "patterns": [p.to_dict() for p in self.patterns],
            "fibonacciLevels": self.fibonacci.to_dict(),
            "supportResistance": self.support_resistance.to_dict(),
            "elliottWaves": self.waves.to_dict() if self.waves is not None else None,
            "volumeProfile": self.volume_profile.to_dict(),
        }
