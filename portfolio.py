# Filename: portfolio.py

import asyncio
from typing import Any, Dict, List, Optional

from loguru import logger

from chain_reader import ChainReader
from models import LookupResult, PortfolioEntry
from token_market import TokenMarketAggregator

MAX_DUST_TOKENS = 20


class PortfolioValuator:
    """Per-wallet holdings valued at current market prices."""

    def __init__(self, config: Dict[str, Any], chain_reader: ChainReader, market: TokenMarketAggregator):
        self.config = config
        self.chain_reader = chain_reader
        self.market = market
        self.dust_threshold = float(config.get("DUST_THRESHOLD_USD", 1.0))

    async def get_portfolio(self, wallet: str) -> List[PortfolioEntry]:
        accounts = [a for a in await self.chain_reader.get_token_accounts(wallet) if a.amount > 0]
        if not accounts:
            return []

        mints = list(dict.fromkeys(a.mint for a in accounts))
        results = await asyncio.gather(
            *(self.market.fetch_token_price(mint) for mint in mints),
            return_exceptions=True
        )
        prices: Dict[str, Any] = dict(zip(mints, results))

        entries = []
        for account in accounts:
            price = prices[account.mint]
            if isinstance(price, Exception):
                logger.warning(f"[PORTFOLIO ❌] {account.mint}: price lookup raised {price}")
                continue
            if not isinstance(price, LookupResult) or not price.ok:
                logger.warning(f"[PORTFOLIO ❌] {account.mint}: no price ({getattr(price, 'error', '?')})")
                continue
            try:
                ui_amount = account.amount / (10 ** account.decimals)
                entries.append(PortfolioEntry(
                    mint=account.mint,
                    balance=account.amount,
                    decimals=account.decimals,
                    ui_amount=ui_amount,
                    price=price.value,
                    value=ui_amount * price.value,
                ))
            except (TypeError, ValueError, OverflowError) as e:
                logger.warning(f"[PORTFOLIO ❌] {account.address}: could not value account: {e}")

        logger.info(f"[PORTFOLIO] {wallet}: {len(entries)}/{len(accounts)} holdings valued")
        return entries

    async def get_portfolio_value(self, wallet: str) -> float:
        return sum(e.value for e in await self.get_portfolio(wallet))

    def find_dust_tokens(self, entries: List[PortfolioEntry],
                         threshold: Optional[float] = None) -> List[PortfolioEntry]:
        if threshold is None:
            threshold = self.dust_threshold
        dust = [e for e in entries if e.ui_amount > 0 and e.value < threshold]
        dust.sort(key=lambda e: e.value)
        return dust[:MAX_DUST_TOKENS]
