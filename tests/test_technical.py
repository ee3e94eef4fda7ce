"""Tests for advisor.analysis.technical -- indicator columns, snapshot, full analysis."""

from datetime import datetime, timezone

import numpy as np
import pandas as pd
import pytest

from advisor.analysis.models import IndicatorSnapshot
from advisor.analysis.technical import TechnicalAnalyzer, change_over_day, interval_minutes


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_ohlcv(n=100, seed=42, start_price=50_000.0):
    """Synthetic 30-minute kline DataFrame without a datetime index."""
    np.random.seed(seed)
    close = start_price * np.exp(np.cumsum(np.random.normal(0.0002, 0.004, n)))
    volume = np.random.uniform(50.0, 500.0, n)
    return pd.DataFrame(
        {"Open": close, "High": close * 1.001, "Low": close * 0.999,
         "Close": close, "Volume": volume},
    )


class TestComputeIndicators:

    def setup_method(self):
        self.analyzer = TechnicalAnalyzer()

    def test_adds_expected_columns(self, sample_ohlcv):
        result = self.analyzer.compute_indicators(sample_ohlcv)
        for col in ["RSI_14", "Stoch_K", "Stoch_D", "OBV", "ROC_14",
                    "MACD", "BB_upper", "BB_mid", "BB_lower", "wave"]:
            assert col in result.columns

    def test_does_not_mutate_input(self, sample_ohlcv):
        before = sample_ohlcv.copy()
        self.analyzer.compute_indicators(sample_ohlcv)
        pd.testing.assert_frame_equal(sample_ohlcv, before)

    def test_short_prefix_rows_are_neutral(self, sample_ohlcv):
        result = self.analyzer.compute_indicators(sample_ohlcv)
        assert (result["MACD"].iloc[:25] == 0.0).all()
        assert (result["BB_mid"].iloc[:19] == 0.0).all()

    def test_wave_column_covers_trailing_window(self, sample_ohlcv):
        result = self.analyzer.compute_indicators(sample_ohlcv)
        assert (result["wave"].iloc[:50] == 0).all()
        assert result["wave"].between(0, 5).all()


class TestSnapshot:

    def setup_method(self):
        self.analyzer = TechnicalAnalyzer()

    def test_empty_frame_raises(self):
        with pytest.raises(ValueError, match="No price data"):
            self.analyzer.snapshot(pd.DataFrame())

    def test_snapshot_fields(self, sample_ohlcv):
        snap = self.analyzer.snapshot(sample_ohlcv)
        assert isinstance(snap, IndicatorSnapshot)
        assert snap.current_price == pytest.approx(sample_ohlcv["Close"].iloc[-1])
        assert len(snap.rsi_values) == len(sample_ohlcv)
        assert 0 <= snap.sentiment <= 100
        assert snap.ma200 == 0.0
        assert snap.ma50 > 0
        assert snap.waves is not None

    def test_current_price_override(self, sample_ohlcv):
        snap = self.analyzer.snapshot(sample_ohlcv, current_price=12_345.0)
        assert snap.current_price == 12_345.0

    def test_history_rows(self, sample_ohlcv):
        snap = self.analyzer.snapshot(sample_ohlcv, history_rows=10)
        assert len(snap.history) == 10
        assert set(snap.history[0]) == {
            "time", "price", "volume", "rsi", "macd", "bollingerUpper", "bollingerLower",
        }

    def test_pattern_times_come_from_index(self, sample_ohlcv):
        snap = self.analyzer.snapshot(sample_ohlcv)
        index_times = set(sample_ohlcv.index.to_pydatetime())
        assert all(p.time in index_times for p in snap.patterns)

    def test_without_datetime_index(self):
        df = _make_ohlcv(60)
        now = datetime(2024, 6, 1, tzinfo=timezone.utc)
        snap = self.analyzer.snapshot(df, now=now)
        assert snap.times == []
        assert all(p.time < now for p in snap.patterns)

    def test_to_dict_is_json_ready(self, sample_ohlcv):
        import json
        data = self.analyzer.snapshot(sample_ohlcv).to_dict()
        json.dumps(data)
        assert set(data["stochastic"]) == {"k", "d"}

    def test_nan_volume_is_zeroed(self, sample_ohlcv):
        import json
        df = sample_ohlcv.copy()
        df.iloc[-3, df.columns.get_loc("Volume")] = np.nan
        snap = self.analyzer.snapshot(df)
        assert snap.volumes[-3] == 0.0
        assert np.isfinite(snap.obv)
        assert np.isfinite(sum(snap.volume_profile.profile))
        json.dumps(snap.to_dict(), allow_nan=False)

    def test_nan_close_row_dropped(self, sample_ohlcv):
        df = sample_ohlcv.copy()
        df.iloc[10, df.columns.get_loc("Close")] = np.nan
        snap = self.analyzer.snapshot(df)
        assert len(snap.prices) == len(df) - 1
        assert np.all(np.isfinite(snap.rsi_values))

    def test_all_nan_closes_raise(self):
        df = _make_ohlcv(10)
        df["Close"] = np.nan
        with pytest.raises(ValueError, match="No finite price data"):
            self.analyzer.snapshot(df)

    def test_day_change_uses_bar_a_day_back(self, sample_ohlcv):
        snap = self.analyzer.snapshot(sample_ohlcv, bar_minutes=30)
        closes = sample_ohlcv["Close"].values
        expected = (closes[-1] - closes[-49]) / closes[-49] * 100
        assert snap.price_change_24h == pytest.approx(expected)


class TestFullAnalysis:

    def test_contains_chart_series(self, sample_ohlcv):
        result = TechnicalAnalyzer().full_analysis(sample_ohlcv)
        assert "pivots" in result
        assert len(result["momentum"]["roc"]) == len(sample_ohlcv)
        assert len(result["rsiSeries"]) == len(sample_ohlcv)
        assert np.isfinite(result["price"])


class TestDayChange:

    def test_interval_minutes(self):
        assert interval_minutes("30m") == 30
        assert interval_minutes("4h") == 240
        assert interval_minutes("1d") == 1440
        assert interval_minutes("bad") == 30
        assert interval_minutes("") == 30

    def test_compares_against_bar_a_day_back(self):
        series = [100.0] * 10 + [50.0] + [80.0] * 47 + [75.0]
        # 48 half-hour bars per day: the reference is series[-49]
        assert change_over_day(series, 30) == pytest.approx(50.0)

    def test_hourly_bars(self):
        series = list(np.linspace(100.0, 200.0, 50))
        assert change_over_day(series, 60) == pytest.approx(
            (series[-1] - series[-25]) / series[-25] * 100
        )

    def test_short_window_uses_first_sample(self):
        assert change_over_day([100.0, 110.0, 120.0], 30) == pytest.approx(20.0)

    def test_latest_override(self):
        assert change_over_day([100.0, 110.0], 30, latest=150.0) == pytest.approx(50.0)

    def test_empty_and_zero_reference(self):
        assert change_over_day([], 30) == 0.0
        assert change_over_day([0.0, 5.0], 30) == 0.0
