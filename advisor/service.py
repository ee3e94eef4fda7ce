"""AdviceService: fetch a window, analyze it, and ask the strategies for advice."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from advisor.analysis.models import IndicatorSnapshot, MarketContext, TradingAdvice
from advisor.analysis.registry import StrategyRegistry, get_registry
from advisor.analysis.technical import TechnicalAnalyzer, interval_minutes
from advisor.config import SETTINGS
from advisor.data_sources.market_data import BinanceMarketClient
from advisor.utils.cache import AdviceCache
from advisor.utils.logger import setup_logger

logger = setup_logger("service")


@dataclass
class AdviceResult:
    """Outcome of one advice run."""

    symbol: str
    strategy: str
    advice: TradingAdvice
    snapshot: IndicatorSnapshot
    market: MarketContext

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "strategy": self.strategy,
            "advice": self.advice.to_dict(),
            "indicators": self.snapshot.to_dict(),
            "market": self.market.to_dict(),
        }


class AdviceService:
    """Single entry point the CLI (or a dashboard) calls for advice."""

    def __init__(
        self,
        client: Optional[BinanceMarketClient] = None,
        analyzer: Optional[TechnicalAnalyzer] = None,
        registry: Optional[StrategyRegistry] = None,
        cache: Optional[AdviceCache] = None,
        settings: Optional[dict] = None,
    ):
        conf = settings if settings is not None else SETTINGS.get("advice", {})
        self.min_samples = int(conf.get("min_samples", 50))
        self.history_rows = int(SETTINGS.get("llm", {}).get("history_rows", 48))
        self.client = client or BinanceMarketClient()
        self.analyzer = analyzer or TechnicalAnalyzer()
        self._registry = registry
        self.cache = cache or AdviceCache("advice")

    @property
    def registry(self) -> StrategyRegistry:
        if self._registry is None:
            self._registry = get_registry()
        return self._registry

    def snapshot(self, symbol: Optional[str] = None) -> IndicatorSnapshot:
        """Fetch the kline window for *symbol* and derive its indicators.

        Raises:
            ValueError: fewer than ``min_samples`` bars were returned.
        """
        symbol = symbol or self.client.symbol
        df = self.client.get_klines(symbol)
        if len(df) < self.min_samples:
            raise ValueError(
                f"Need at least {self.min_samples} samples for {symbol}, got {len(df)}"
            )
        price = self.client.get_current_price(symbol)
        return self.analyzer.snapshot(
            df,
            current_price=price,
            history_rows=self.history_rows,
            bar_minutes=interval_minutes(self.client.interval),
        )

    def run(self, symbol: Optional[str] = None, strategy: Optional[str] = None) -> AdviceResult:
        """Produce advice for *symbol*, trying strategies in registry order.

        When *strategy* is given only that strategy is tried.

        Raises:
            ValueError: unknown strategy name or too-short window.
            RuntimeError: no strategy produced advice.
        """
        symbol = symbol or self.client.symbol
        if strategy is not None:
            chosen = self.registry.get(strategy)
            if chosen is None:
                raise ValueError(
                    f"Unknown strategy: {strategy}. "
                    f"Available: {', '.join(self.registry.names())}"
                )
            candidates = [chosen]
        else:
            candidates = self.registry.ordered()

        snap = self.snapshot(symbol)
        market = self.client.get_market_context(symbol)

        for candidate in candidates:
            logger.info("Trying strategy %s for %s", candidate.name, symbol)
            try:
                advice = candidate.advise(snap, market)
            except Exception as e:
                logger.error("Strategy %s failed: %s", candidate.name, e)
                continue
            if advice is None:
                logger.warning("Strategy %s returned no advice", candidate.name)
                continue

            result = AdviceResult(
                symbol=symbol,
                strategy=candidate.name,
                advice=advice,
                snapshot=snap,
                market=market,
            )
            self.cache.set(symbol, {
                **advice.to_dict(),
                "source": advice.source,
                "strategy": candidate.name,
                "price": snap.current_price,
                "generatedAt": datetime.now(timezone.utc).isoformat(),
            })
            logger.info(
                "Advice for %s from %s: entry=%s stop=%s target=%s",
                symbol, candidate.name, advice.buy_target, advice.stop_loss, advice.take_profit,
            )
            return result

        raise RuntimeError(f"No strategy produced advice for {symbol}")

    def last(self, symbol: Optional[str] = None) -> dict | None:
        """Most recent cached advice for *symbol*, if still fresh."""
        return self.cache.get(symbol or self.client.symbol)
