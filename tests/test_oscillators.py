"""Tests for advisor.analysis.oscillators -- RSI, stochastic, OBV, momentum."""

import numpy as np
import pytest

from advisor.analysis.oscillators import (
    RSI_OVERBOUGHT,
    momentum_indicators,
    on_balance_volume,
    rsi,
    rsi_zone,
    stochastic_d,
    stochastic_k,
)


class TestRSI:

    def test_length_matches_input(self, sample_prices):
        assert len(rsi(sample_prices)) == len(sample_prices)

    def test_values_within_bounds(self, sample_prices):
        values = rsi(sample_prices)
        assert np.all(values >= 0) and np.all(values <= 100)

    def test_leading_values_are_neutral(self, sample_prices):
        assert np.all(rsi(sample_prices, 14)[:14] == 50.0)

    def test_short_series_all_neutral(self):
        values = rsi([1.0, 2.0, 3.0], 14)
        assert values.tolist() == [50.0, 50.0, 50.0]

    def test_strictly_increasing_is_overbought(self):
        values = rsi(np.arange(1.0, 21.0), 14)
        assert values[-1] > RSI_OVERBOUGHT

    def test_strictly_decreasing_is_oversold(self):
        values = rsi(np.arange(20.0, 0.0, -1.0), 14)
        assert values[-1] < 30

    def test_flat_series_is_neutral(self):
        assert np.all(rsi([100.0] * 30) == 50.0)

    def test_wilder_seed_value(self):
        # 14 alternating +2 / -1 moves: avg gain 1.0, avg loss 0.5
        prices = [100.0]
        for i in range(14):
            prices.append(prices[-1] + (2.0 if i % 2 == 0 else -1.0))
        values = rsi(prices, 14)
        assert values[14] == pytest.approx(100 - 100 / (1 + 2.0))

    def test_empty_input(self):
        assert len(rsi([])) == 0


class TestStochastic:

    def test_k_within_bounds(self, sample_prices):
        k = stochastic_k(sample_prices)
        assert np.all(k >= 0) and np.all(k <= 100)

    def test_k_at_window_high_is_100(self):
        assert stochastic_k(np.arange(1.0, 20.0))[-1] == pytest.approx(100.0)

    def test_flat_window_is_zero(self):
        assert np.all(stochastic_k([5.0] * 10) == 0.0)

    def test_d_is_trailing_mean(self):
        d = stochastic_d([30.0, 60.0, 90.0, 0.0], 3)
        assert d[0] == pytest.approx(30.0)
        assert d[2] == pytest.approx(60.0)
        assert d[3] == pytest.approx(50.0)

    def test_non_positive_period_gives_zeros(self):
        assert np.all(stochastic_k([1.0, 2.0, 3.0], 0) == 0.0)
        assert np.all(stochastic_k([1.0, 2.0, 3.0], -5) == 0.0)
        assert np.all(stochastic_d([30.0, 60.0], 0) == 0.0)
        assert len(stochastic_d([30.0, 60.0], 0)) == 2


class TestOnBalanceVolume:

    def test_seeded_with_first_volume(self, sample_prices, sample_volumes):
        obv = on_balance_volume(sample_prices, sample_volumes)
        assert obv[0] == sample_volumes[0]

    def test_delta_sign_matches_price_move(self, sample_prices, sample_volumes):
        obv = on_balance_volume(sample_prices, sample_volumes)
        assert np.all(np.sign(np.diff(obv)) == np.sign(np.diff(sample_prices)))

    def test_unchanged_price_keeps_obv(self):
        obv = on_balance_volume([10.0, 10.0, 11.0, 9.0], [5.0, 3.0, 2.0, 4.0])
        assert obv.tolist() == [5.0, 5.0, 7.0, 3.0]

    def test_empty_input(self):
        assert len(on_balance_volume([], [])) == 0


class TestMomentumIndicators:

    def test_zone_labels(self):
        assert rsi_zone(75) == "overbought"
        assert rsi_zone(25) == "oversold"
        assert rsi_zone(50) == "neutral"

    def test_shapes(self, sample_prices):
        result = momentum_indicators(sample_prices)
        assert len(result["roc"]) == len(sample_prices)
        assert len(result["rsi_trend"]) == len(sample_prices)
        assert set(result["rsi_trend"]) <= {"overbought", "oversold", "neutral"}
