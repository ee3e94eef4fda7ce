"""External collaborators: exchange market data and language-model advice."""

from .market_data import BinanceMarketClient
from .llm_advice import LLMAdviceClient, LLMStrategy
