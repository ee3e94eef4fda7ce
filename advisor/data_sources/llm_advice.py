"""Language-model trading advice using Claude.

The model receives the current indicator snapshot, the recent bar history,
Fibonacci levels, and futures/order-book context, and must answer with a
JSON object in the TradingAdvice shape.  Any failure yields ``None`` so the
caller can try another strategy.
"""

from __future__ import annotations

import json
from typing import Optional

from advisor.analysis.base import BaseAdviceStrategy
from advisor.analysis.models import (
    IndicatorSnapshot,
    MarketContext,
    TradingAdvice,
)
from advisor.config import Keys, SETTINGS
from advisor.utils.logger import setup_logger

logger = setup_logger("llm_advice")

ADVICE_SYSTEM_PROMPT = """\
You are a cryptocurrency trading expert. Analyse the market data you are
given, use the Fibonacci levels as reference, and propose the best entry
price (buyTarget), stop-loss (stopLoss) and take-profit (takeProfit).
The entry price must NOT be higher than the current price.

Return ONLY a JSON object with EXACTLY this structure (no markdown):

{
  "buyTarget": "<price>",
  "stopLoss": "<price>",
  "takeProfit": "<price>",
  "analysis": {
    "trend": "<overall market trend analysis>",
    "technical": "<technical indicator analysis>",
    "volume": "<volume analysis>",
    "conclusion": "<overall conclusion>"
  }
}\
"""

_FIB_LABELS = [
    ("level0", "0%"), ("level236", "23.6%"), ("level382", "38.2%"),
    ("level500", "50%"), ("level618", "61.8%"), ("level786", "78.6%"),
    ("level1000", "100%"), ("level1236", "123.6%"), ("level1500", "150%"),
]


def build_payload(
    snapshot: IndicatorSnapshot,
    market: Optional[MarketContext] = None,
    history_rows: Optional[int] = None,
) -> dict:
    """Assemble the structured request body from a snapshot."""
    market = market or MarketContext()
    data = snapshot.to_dict()
    history = snapshot.history
    if history_rows is not None:
        history = history[-history_rows:] if history_rows > 0 else []
    return {
        "price": data["price"],
        "priceChange24h": data["priceChange24h"],
        "volume": data["volume"],
        "volumeChange24h": data["volumeChange24h"],
        "rsi": data["rsi"],
        "macd": data["macd"],
        "ma50": data["ma50"],
        "ma200": data["ma200"],
        "bollingerUpper": round(snapshot.bands.upper, 2),
        "bollingerLower": round(snapshot.bands.lower, 2),
        "marketSentiment": data["marketSentiment"],
        "stochastic": data["stochastic"],
        "obv": data["obv"],
        "pricePatterns": data["pricePatterns"],
        "fibonacciLevels": data["fibonacciLevels"],
        "historicalData": history,
        **market.to_dict(),
    }


def build_prompt(payload: dict) -> str:
    """Render the payload as the user message."""
    sections = ["# Current market data\n", "## Recent bars"]
    for h in payload.get("historicalData", []):
        sections.append(
            f"- {h['time']}: price ${h['price']}, volume {h['volume']}, RSI {h['rsi']}, "
            f"MACD {h['macd']}, bands ${h['bollingerUpper']} / ${h['bollingerLower']}"
        )
    if not payload.get("historicalData"):
        sections.append("No history available.")

    sections.append("\n## Price")
    sections.append(f"- Current price: ${payload['price']}")
    sections.append(f"- 24h change: {payload['priceChange24h']}%")

    sections.append("\n## Fibonacci levels")
    fib = payload.get("fibonacciLevels", {})
    for key, label in _FIB_LABELS:
        sections.append(f"- {label}: ${fib.get(key, 0)}")

    sections.append("\n## Indicators")
    sections.append(f"- RSI (14): {payload['rsi']}")
    sections.append(f"- MACD: {payload['macd']}")
    sections.append(f"- MA50: ${payload['ma50']}")
    sections.append(f"- MA200: ${payload['ma200']}")
    sections.append(
        f"- Bollinger bands: upper ${payload['bollingerUpper']} / lower ${payload['bollingerLower']}"
    )
    sections.append(
        f"- Stochastic: K({payload['stochastic']['k']}), D({payload['stochastic']['d']})"
    )
    sections.append(f"- OBV: {payload['obv']}")

    sections.append("\n## Volume")
    sections.append(f"- Current volume: {payload['volume']}")
    sections.append(f"- 24h change: {payload['volumeChange24h']}%")

    sections.append("\n## Sentiment and patterns")
    sections.append(f"- Market sentiment index: {payload['marketSentiment']}")
    flags = payload.get("pricePatterns", {})
    sections.append(f"- Doji: {flags.get('isDoji', False)}")
    sections.append(f"- Morning star: {flags.get('isMorningStar', False)}")
    sections.append(f"- Hammer: {flags.get('isHammer', False)}")

    depth = payload.get("marketDepth", {})
    sections.append("\n## Order book and futures")
    sections.append(f"- Buy pressure: {depth.get('buyPressure', 0)}")
    sections.append(f"- Sell pressure: {depth.get('sellPressure', 0)}")
    sections.append(f"- Funding rate: {payload.get('fundingRate', 0)}%")
    sections.append(f"- Open interest: {payload.get('openInterest', 0)}")
    return "\n".join(sections)


def parse_advice(raw_text: str) -> TradingAdvice:
    """Strip code fences, parse JSON, and validate the advice shape.

    Raises:
        ValueError: the text is not valid advice JSON.
    """
    text = raw_text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
        text = text.strip()
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Advice response is not valid JSON: {e}") from e
    return TradingAdvice.from_dict(data, source="llm")


def entry_within_price(advice: TradingAdvice, current_price: float) -> bool:
    """True when the advised entry parses as a number no higher than *current_price*."""
    try:
        entry = float(str(advice.buy_target).replace(",", "").lstrip("$").strip())
    except ValueError:
        return False
    return entry <= current_price


class LLMAdviceClient:
    """Request trading advice from Claude."""

    def __init__(self, model: Optional[str] = None, settings: Optional[dict] = None):
        conf = settings if settings is not None else SETTINGS.get("llm", {})
        self.model = model or conf.get("model", "claude-sonnet-4-5-20250929")
        self.max_tokens = conf.get("max_tokens", 800)
        self.temperature = conf.get("temperature", 0.7)
        self.history_rows = conf.get("history_rows", 48)
        self._client = None

    @property
    def client(self):
        if self._client is None:
            if not Keys.ANTHROPIC:
                raise RuntimeError(
                    "ANTHROPIC_API_KEY not set. Add it to your .env file."
                )
            import anthropic
            self._client = anthropic.Anthropic(api_key=Keys.ANTHROPIC)
        return self._client

    def advise(self, payload: dict) -> Optional[TradingAdvice]:
        """Send *payload* to the model; ``None`` when anything goes wrong."""
        logger.info("Requesting LLM trading advice (price=%s)", payload.get("price"))
        raw_text = ""
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=ADVICE_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": build_prompt(payload)}],
            )
            raw_text = response.content[0].text if response.content else ""
            if not raw_text.strip():
                raise ValueError("LLM response is empty")
            return parse_advice(raw_text)
        except ValueError as e:
            logger.error("Invalid LLM advice: %s", e)
            logger.debug("Raw response: %s", raw_text)
            return None
        except Exception as e:
            logger.error("LLM advice request failed: %s", e)
            return None


class LLMStrategy(BaseAdviceStrategy):
    """Advice strategy backed by :class:`LLMAdviceClient`."""

    name = "llm"

    def __init__(self, client: Optional[LLMAdviceClient] = None) -> None:
        self._client = client or LLMAdviceClient()

    def advise(
        self, snapshot: IndicatorSnapshot, market: Optional[MarketContext] = None,
    ) -> Optional[TradingAdvice]:
        payload = build_payload(snapshot, market, self._client.history_rows)
        advice = self._client.advise(payload)
        if advice is None:
            return None
        if not entry_within_price(advice, snapshot.current_price):
            logger.warning(
                "Rejecting LLM advice: entry %s is above the current price %.2f",
                advice.buy_target, snapshot.current_price,
            )
            return None
        return advice
