from .technical import TechnicalAnalyzer
from .strategy import RuleBasedStrategy, analyze_trading_strategy
from .patterns import analyze_price_patterns
from .structure import elliott_waves, fibonacci_levels, support_resistance, volume_profile
from .sentiment import market_sentiment
from .registry import StrategyRegistry, get_registry
