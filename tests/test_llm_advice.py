"""Tests for advisor.data_sources.llm_advice -- payload, prompt, parsing (mocked SDK)."""

import json
from dataclasses import replace
from unittest.mock import MagicMock, patch

import pytest

from advisor.analysis.technical import TechnicalAnalyzer
from advisor.data_sources.llm_advice import (
    LLMAdviceClient,
    LLMStrategy,
    build_payload,
    build_prompt,
    entry_within_price,
    parse_advice,
)

_ADVICE_JSON = {
    "buyTarget": "49500",
    "stopLoss": "48800",
    "takeProfit": "51200",
    "analysis": {
        "trend": "Uptrend",
        "technical": "Neutral RSI",
        "volume": "Rising",
        "conclusion": "Buy the dip",
    },
}


def _mock_response(text):
    block = MagicMock()
    block.text = text
    resp = MagicMock()
    resp.content = [block]
    return resp


@pytest.fixture
def snapshot(sample_ohlcv):
    return TechnicalAnalyzer().snapshot(sample_ohlcv)


class TestPayload:

    def test_contains_market_fields(self, snapshot, sample_market):
        payload = build_payload(snapshot, sample_market)
        for key in ["price", "priceChange24h", "volume", "volumeChange24h", "rsi", "macd",
                    "ma50", "ma200", "bollingerUpper", "bollingerLower", "marketSentiment",
                    "stochastic", "obv", "pricePatterns", "fibonacciLevels",
                    "historicalData", "fundingRate", "openInterest", "marketDepth"]:
            assert key in payload
        assert payload["fundingRate"] == 0.01
        assert payload["marketDepth"]["buyPressure"] == 1_000_000.0

    def test_history_trimmed(self, snapshot):
        payload = build_payload(snapshot, history_rows=5)
        assert len(payload["historicalData"]) == 5

    def test_missing_market_defaults_to_zero(self, snapshot):
        payload = build_payload(snapshot)
        assert payload["fundingRate"] == 0.0
        assert payload["marketDepth"] == {"buyPressure": 0.0, "sellPressure": 0.0}

    def test_prompt_lists_levels_and_depth(self, snapshot, sample_market):
        prompt = build_prompt(build_payload(snapshot, sample_market))
        assert "61.8%" in prompt
        assert "Funding rate: 0.01%" in prompt
        assert "RSI (14)" in prompt


class TestParseAdvice:

    def test_plain_json(self):
        advice = parse_advice(json.dumps(_ADVICE_JSON))
        assert advice.buy_target == "49500"
        assert advice.source == "llm"

    def test_fenced_json(self):
        advice = parse_advice("```json\n" + json.dumps(_ADVICE_JSON) + "\n```")
        assert advice.analysis.conclusion == "Buy the dip"

    def test_invalid_json(self):
        with pytest.raises(ValueError, match="not valid JSON"):
            parse_advice("not json")

    def test_missing_fields(self):
        with pytest.raises(ValueError, match="stopLoss"):
            parse_advice(json.dumps({"buyTarget": "1", "takeProfit": "2", "analysis": {}}))


class TestLLMAdviceClient:

    def setup_method(self):
        self.client = LLMAdviceClient(settings={"model": "test-model", "max_tokens": 100})

    def test_missing_key_raises(self):
        with patch("advisor.data_sources.llm_advice.Keys") as keys:
            keys.ANTHROPIC = ""
            with pytest.raises(RuntimeError, match="ANTHROPIC_API_KEY"):
                _ = self.client.client

    def test_advise_success(self):
        self.client._client = MagicMock()
        self.client._client.messages.create.return_value = _mock_response(json.dumps(_ADVICE_JSON))
        advice = self.client.advise({"price": 50_000, "historicalData": []})
        assert advice.take_profit == "51200"
        kwargs = self.client._client.messages.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["max_tokens"] == 100
        assert "entry price must NOT be higher" in kwargs["system"]

    def test_advise_bad_output_returns_none(self):
        self.client._client = MagicMock()
        self.client._client.messages.create.return_value = _mock_response("I cannot help")
        assert self.client.advise({"price": 1}) is None

    def test_advise_empty_output_returns_none(self):
        self.client._client = MagicMock()
        self.client._client.messages.create.return_value = _mock_response("   ")
        assert self.client.advise({"price": 1}) is None

    def test_advise_api_error_returns_none(self):
        self.client._client = MagicMock()
        self.client._client.messages.create.side_effect = ConnectionError("boom")
        assert self.client.advise({"price": 1}) is None

    def test_advise_without_key_returns_none(self):
        with patch("advisor.data_sources.llm_advice.Keys") as keys:
            keys.ANTHROPIC = ""
            assert self.client.advise({"price": 1}) is None


class TestLLMStrategy:

    def _client(self, advice):
        client = MagicMock()
        client.history_rows = 3
        client.advise.return_value = advice
        return client

    def test_delegates_to_client(self, snapshot, sample_market, sample_advice):
        advice = replace(sample_advice, buy_target=f"{snapshot.current_price * 0.99:.2f}")
        client = self._client(advice)
        strategy = LLMStrategy(client=client)
        assert strategy.name == "llm"
        assert strategy.advise(snapshot, sample_market) is advice
        payload = client.advise.call_args.args[0]
        assert len(payload["historicalData"]) == 3
        assert payload["openInterest"] == 12_345.0

    def test_entry_above_price_rejected(self, snapshot, sample_market, sample_advice):
        advice = replace(sample_advice, buy_target=f"{snapshot.current_price * 1.05:.2f}")
        strategy = LLMStrategy(client=self._client(advice))
        assert strategy.advise(snapshot, sample_market) is None

    def test_unparsable_entry_rejected(self, snapshot, sample_market, sample_advice):
        advice = replace(sample_advice, buy_target="around support")
        strategy = LLMStrategy(client=self._client(advice))
        assert strategy.advise(snapshot, sample_market) is None

    def test_client_failure_passes_through(self, snapshot, sample_market):
        strategy = LLMStrategy(client=self._client(None))
        assert strategy.advise(snapshot, sample_market) is None


class TestEntryWithinPrice:

    def test_accepts_entry_at_or_below_price(self, sample_advice):
        assert entry_within_price(sample_advice, 49_490.0)
        assert entry_within_price(sample_advice, 50_000.0)

    def test_rejects_entry_above_price(self, sample_advice):
        assert not entry_within_price(sample_advice, 49_000.0)

    def test_tolerates_currency_formatting(self, sample_advice):
        advice = replace(sample_advice, buy_target="$49,490.00")
        assert entry_within_price(advice, 49_500.0)
