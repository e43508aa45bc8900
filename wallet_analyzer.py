"""
Wallet analysis for OOF moments
Scores missed opportunities and summarizes wallet activity from ledger history
"""

import asyncio
import logging
import time
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from chain_reader import ChainReader, is_valid_address
from models import MissedOpportunity, SoldPosition, TransactionRecord, WalletAnalysis
from token_market import TokenMarketAggregator

logger = logging.getLogger("wallet_analyzer")

SECONDS_PER_DAY = 24 * 60 * 60
MISSED_GAIN_MULTIPLE = 2.0
MAX_TOKEN_MOVEMENTS = 10
MAX_MISSED_OPPORTUNITIES = 10
TRANSFER_TYPES = ("transfer", "transferChecked")


def calculate_oof_factor(current_price: float, peak_price: float) -> float:
    """
    OOF factor on a 0-100 scale: ten points per 100% of gains left on the table

    Args:
        current_price: Price the holder got out at (or holds at)
        peak_price: Best price seen afterwards

    Returns:
        OOF factor
    """
    if current_price <= 0:
        return 0.0
    potential_gains = (peak_price - current_price) / current_price
    return float(np.clip(potential_gains * 10, 0.0, 100.0))


def _block_times(records: List[TransactionRecord]) -> pd.Series:
    if not records:
        return pd.Series([], dtype="float64")
    frame = pd.DataFrame([{"block_time": r.block_time} for r in records])
    return pd.to_numeric(frame["block_time"], errors="coerce").dropna()


def calculate_wallet_age(records: List[TransactionRecord]) -> int:
    """Days between the oldest and newest transaction in the page."""
    times = _block_times(records)
    if times.empty:
        return 0
    return int((times.max() - times.min()) // SECONDS_PER_DAY)


def calculate_trading_activity(records: List[TransactionRecord], now: Optional[float] = None) -> str:
    if now is None:
        now = time.time()
    times = _block_times(records)
    recent = int((times > now - 7 * SECONDS_PER_DAY).sum())

    if recent > 20:
        return "High"
    if recent > 5:
        return "Medium"
    return "Low"


def _iter_parsed_instructions(record: TransactionRecord) -> Iterable[Dict[str, Any]]:
    tx = record.transaction
    message = getattr(getattr(getattr(tx, "transaction", None), "transaction", None), "message", None)
    for instruction in getattr(message, "instructions", None) or []:
        parsed = getattr(instruction, "parsed", None)
        if isinstance(parsed, dict):
            yield parsed


def extract_token_movements(records: List[TransactionRecord]) -> List[Dict[str, Any]]:
    movements = []
    for record in records:
        for parsed in _iter_parsed_instructions(record):
            if parsed.get("type") not in TRANSFER_TYPES:
                continue
            info = parsed.get("info", {})
            amount = info.get("amount")
            if amount is None:
                amount = info.get("tokenAmount", {}).get("amount")
            movements.append({
                "signature": record.signature,
                "block_time": record.block_time,
                "type": parsed["type"],
                "mint": info.get("mint"),
                "amount": amount,
            })
            if len(movements) >= MAX_TOKEN_MOVEMENTS:
                return movements
    return movements


class WalletAnalyzer:
    """
    Combines ledger history and market prices into an OOF view of a wallet
    """

    def __init__(self, config: Dict[str, Any], chain_reader: ChainReader, market: TokenMarketAggregator):
        self.config = config
        self.chain_reader = chain_reader
        self.market = market

    async def analyze_wallet(self, address: str, limit: int = 100) -> Optional[WalletAnalysis]:
        if not is_valid_address(address):
            logger.warning(f"Refusing to analyze invalid address: {address}")
            return None

        records, accounts = await asyncio.gather(
            self.chain_reader.get_transaction_history(address, limit),
            self.chain_reader.get_token_accounts(address)
        )

        analysis = WalletAnalysis(
            wallet_address=address,
            total_transactions=len(records),
            active_tokens=len(accounts),
            token_movements=extract_token_movements(records),
            wallet_age_days=calculate_wallet_age(records),
            trading_activity=calculate_trading_activity(records),
        )
        logger.info(f"Analyzed {address}: {analysis.total_transactions} txs, "
                    f"activity={analysis.trading_activity}, age={analysis.wallet_age_days}d")
        return analysis

    async def find_missed_opportunities(self, sold_positions: List[SoldPosition]) -> List[MissedOpportunity]:
        results = await asyncio.gather(
            *(self.market.fetch_token_price(p.mint) for p in sold_positions),
            return_exceptions=True
        )

        opportunities = []
        for position, price in zip(sold_positions, results):
            if isinstance(price, Exception) or not price.ok:
                logger.info(f"Could not check opportunity for {position.symbol}")
                continue
            current_price = price.value
            if current_price <= position.sold_price * MISSED_GAIN_MULTIPLE:
                continue
            opportunities.append(MissedOpportunity(
                mint=position.mint,
                symbol=position.symbol,
                sold_price=position.sold_price,
                current_price=current_price,
                missed_gains=(current_price - position.sold_price) * position.amount,
                oof_factor=calculate_oof_factor(position.sold_price, current_price),
                sell_time=position.sell_time,
            ))

        opportunities.sort(key=lambda o: o.missed_gains, reverse=True)
        return opportunities[:MAX_MISSED_OPPORTUNITIES]
