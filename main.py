# Filename: main.py

import asyncio
import logging
import sys
from typing import Any, Dict, Optional

from chain_reader import ChainReader
from config import load_config
from cross_chain_bridge import CrossChainBridge
from portfolio import PortfolioValuator
from swap_gateway import SwapGateway
from token_market import TokenMarketAggregator
from wallet_analyzer import WalletAnalyzer

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger("Main")


def build_services(config: Dict[str, Any]) -> Dict[str, Any]:
    chain_reader = ChainReader(config)
    market = TokenMarketAggregator(config)
    return {
        "chain_reader": chain_reader,
        "market": market,
        "swap": SwapGateway(config, chain_reader),
        "portfolio": PortfolioValuator(config, chain_reader, market),
        "analyzer": WalletAnalyzer(config, chain_reader, market),
        "bridge": CrossChainBridge(config, chain_reader),
    }


async def run(config: Dict[str, Any], wallet: Optional[str] = None):
    services = build_services(config)
    market = services["market"]

    async with services["chain_reader"]:
        trending = await market.list_trending(limit=10)
        for token in trending:
            logger.info(f"📈 {token.symbol}: ${token.price_usd:.8f} | "
                        f"mcap ${token.market_cap:,.0f} | curve {token.bonding_curve_progress:.1f}%")

        king = await market.get_king_of_the_hill()
        if king:
            logger.info(f"👑 King of the hill: {king.symbol} ({king.mint})")

        if not wallet:
            return

        entries = await services["portfolio"].get_portfolio(wallet)
        total = sum(e.value for e in entries)
        logger.info(f"💼 {len(entries)} holdings worth ${total:,.2f}")
        for dust in services["portfolio"].find_dust_tokens(entries):
            logger.info(f"🧹 Dust: {dust.mint} worth ${dust.value:.4f}")

        analysis = await services["analyzer"].analyze_wallet(wallet)
        if analysis:
            logger.info(f"🔍 {analysis.total_transactions} txs, {analysis.active_tokens} tokens, "
                        f"age {analysis.wallet_age_days}d, activity {analysis.trading_activity}")

        estimate = services["bridge"].estimate_purchase(1000)
        logger.info(f"🌉 1000 OOF -> ${estimate.usd_value:.2f} "
                    f"(fee ${estimate.bridge_fee:.4f}) -> {estimate.estimated_destination_tokens:.0f} card tokens")


def main():
    logger.info("🚀 Starting OOF chain services...")
    config = load_config()
    if config.get("SIMULATION_MODE", True):
        logger.info("🧪 Running in SIMULATION mode")

    wallet = sys.argv[1] if len(sys.argv) > 1 else None
    try:
        asyncio.run(run(config, wallet))
    except KeyboardInterrupt:
        logger.info("❌ Stopped by user.")


if __name__ == "__main__":
    main()
