"""Shared pytest fixtures for the chart advisor test suite.

Provides synthetic market data with a fixed random seed for reproducibility.
All fixtures are independent of external APIs.
"""

from datetime import datetime, timezone

import numpy as np
import pandas as pd
import pytest

from advisor.analysis.models import (
    AdviceAnalysis,
    Bands,
    MarketContext,
    MarketDepth,
    TradingAdvice,
)


# ---------------------------------------------------------------------------
# 1. Price / volume fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_prices():
    """100 closes from a geometric random walk around 50 000, seeded at 42."""
    np.random.seed(42)
    log_returns = np.random.normal(0.0002, 0.004, 100)
    return 50_000.0 * np.exp(np.cumsum(log_returns))


@pytest.fixture
def sample_volumes():
    """100 positive volumes, seeded at 7."""
    np.random.seed(7)
    return np.random.uniform(50.0, 500.0, 100)


@pytest.fixture
def rising_prices():
    """60 strictly increasing closes from 100 to 160."""
    return np.linspace(100.0, 160.0, 60)


# ---------------------------------------------------------------------------
# 2. OHLCV fixture
# ---------------------------------------------------------------------------

def make_ohlcv(n=100, seed=42, start_price=50_000.0, trend=0.0002, vol=0.004):
    """Synthetic 30-minute kline DataFrame indexed by UTC open time."""
    np.random.seed(seed)
    index = pd.date_range(
        start=datetime(2024, 1, 1, tzinfo=timezone.utc), periods=n, freq="30min",
    )
    close = start_price * np.exp(np.cumsum(np.random.normal(trend, vol, n)))
    high = close * (1 + np.abs(np.random.normal(0.001, 0.002, n)))
    low = close * (1 - np.abs(np.random.normal(0.001, 0.002, n)))
    open_ = close * (1 + np.random.normal(0, 0.001, n))
    volume = np.random.uniform(50.0, 500.0, n)
    return pd.DataFrame(
        {"Open": open_, "High": high, "Low": low, "Close": close, "Volume": volume},
        index=index,
    )


@pytest.fixture
def sample_ohlcv():
    return make_ohlcv()


# ---------------------------------------------------------------------------
# 3. Advice fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_bands():
    return Bands(upper=51_000.0, middle=50_000.0, lower=49_000.0)


@pytest.fixture
def sample_market():
    return MarketContext(
        funding_rate=0.01,
        open_interest=12_345.0,
        depth=MarketDepth(buy_pressure=1_000_000.0, sell_pressure=900_000.0),
    )


@pytest.fixture
def sample_advice():
    return TradingAdvice(
        buy_target="49490.00",
        stop_loss="49000.00",
        take_profit="52000.00",
        analysis=AdviceAnalysis(
            trend="Uptrend.",
            technical="Low volatility.",
            volume="Volume rising.",
            conclusion="Trend continues.",
        ),
        source="llm",
    )
