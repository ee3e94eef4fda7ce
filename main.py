#!/usr/bin/env python3
"""Crypto Chart Advisor: indicators and heuristic trade levels for one market.

Usage:
    python main.py advise                                # default symbol, strategy order from settings
    python main.py advise --symbol ETHUSDT --strategy rule_based
    python main.py indicators --symbol BTCUSDT          # full indicator snapshot
    python main.py last                                  # most recent cached advice
    python main.py market                                # funding, open interest, depth
"""

import argparse
import json
import sys

from advisor.config import SETTINGS
from advisor.utils.logger import setup_logger

logger = setup_logger("main")


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


# ============================================================
# COMMANDS
# ============================================================

def cmd_advise(args):
    """Run the advice service."""
    from advisor.service import AdviceService
    service = AdviceService()
    try:
        result = service.run(symbol=args.symbol, strategy=args.strategy)
    except (ValueError, RuntimeError) as e:
        logger.error("Advice failed: %s", e)
        sys.exit(1)
    _print_json({
        "symbol": result.symbol,
        "strategy": result.strategy,
        "price": round(result.snapshot.current_price, 2),
        **result.advice.to_dict(),
    })


def cmd_indicators(args):
    """Indicator snapshot for the current window."""
    from advisor.analysis.technical import TechnicalAnalyzer, interval_minutes
    from advisor.data_sources.market_data import BinanceMarketClient
    client = BinanceMarketClient()
    df = client.get_klines(args.symbol)
    if df.empty:
        print(f"No market data for {args.symbol or client.symbol}")
        sys.exit(1)
    analysis = TechnicalAnalyzer().full_analysis(
        df, client.get_current_price(args.symbol), bar_minutes=interval_minutes(client.interval),
    )
    _print_json(analysis)


def cmd_last(args):
    """Show the cached advice."""
    from advisor.utils.cache import AdviceCache
    symbol = args.symbol or SETTINGS.get("market", {}).get("symbol", "BTCUSDT")
    cached = AdviceCache("advice").get(symbol)
    if cached is None:
        print(f"No cached advice for {symbol}")
        sys.exit(1)
    _print_json(cached)


def cmd_market(args):
    """Futures and order-book context."""
    from advisor.data_sources.market_data import BinanceMarketClient
    client = BinanceMarketClient()
    symbol = args.symbol or client.symbol
    _print_json({
        "symbol": symbol,
        "price": client.get_current_price(symbol),
        **client.get_market_context(symbol).to_dict(),
    })


def main():
    parser = argparse.ArgumentParser(
        description="Crypto Chart Advisor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    sub = parser.add_subparsers(dest="command", help="Commands")

    # advise
    p = sub.add_parser("advise", help="Generate trading advice")
    p.add_argument("--symbol", default=None, help="Trading pair, e.g. BTCUSDT")
    p.add_argument("--strategy", default=None,
                   help="Only try this strategy (default: settings order)")
    p.set_defaults(func=cmd_advise)

    # indicators
    p = sub.add_parser("indicators", help="Indicator snapshot")
    p.add_argument("--symbol", default=None)
    p.set_defaults(func=cmd_indicators)

    # last
    p = sub.add_parser("last", help="Most recent cached advice")
    p.add_argument("--symbol", default=None)
    p.set_defaults(func=cmd_last)

    # market
    p = sub.add_parser("market", help="Funding rate, open interest, depth")
    p.add_argument("--symbol", default=None)
    p.set_defaults(func=cmd_market)

    args = parser.parse_args()
    if args.command is None:
        parser.print_help()
        sys.exit(0)
    args.func(args)


if __name__ == "__main__":
    main()
