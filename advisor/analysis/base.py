"""Base class for advice strategies."""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from advisor.analysis.models import IndicatorSnapshot, MarketContext, TradingAdvice


class BaseAdviceStrategy(ABC):
    """Interface every advice strategy must implement.

    To add a strategy:
    1. Define a class that extends BaseAdviceStrategy
    2. Implement name and advise()
    3. Register it in configs/settings.yaml under advice.registry
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name used as key in the registry."""
        ...

    @abstractmethod
    def advise(
        self, snapshot: IndicatorSnapshot, market: Optional[MarketContext] = None,
    ) -> Optional[TradingAdvice]:
        """Produce trading advice for one analysis snapshot.

        Args:
            snapshot: Indicators derived from the current OHLCV window
            market: Optional funding / open-interest / depth inputs

        Returns:
            TradingAdvice, or None when the strategy cannot answer right now.
        """
        ...
