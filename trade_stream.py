# Filename: trade_stream.py

import asyncio
import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import websockets
from websockets.exceptions import WebSocketException

from token_market import LAMPORTS_PER_SOL, calculate_bonding_curve_progress

logger = logging.getLogger("trade_stream")


@dataclass
class TokenMarketUpdate:
    mint: str
    price: float                   # SOL per whole token
    bonding_curve_progress: float  # 0-100
    market_cap_sol: float
    is_buy: bool
    trader: str
    signature: str


def parse_trade_message(msg: Any, threshold: float = 85.0) -> Optional[TokenMarketUpdate]:
    """
    Turn one PumpPortal trade event into a market update.
    Reserves arrive in whole SOL / whole tokens. Returns None for anything that is not a trade.
    """
    if not isinstance(msg, dict) or msg.get("txType") not in ("buy", "sell"):
        return None
    mint = msg.get("mint")
    if not mint:
        return None

    v_sol = float(msg.get("vSolInBondingCurve") or 0)
    v_tokens = float(msg.get("vTokensInBondingCurve") or 0)
    price = v_sol / v_tokens if v_tokens else 0.0

    return TokenMarketUpdate(
        mint=mint,
        price=price,
        bonding_curve_progress=calculate_bonding_curve_progress(v_sol * LAMPORTS_PER_SOL, False, threshold),
        market_cap_sol=float(msg.get("marketCapSol") or 0),
        is_buy=msg.get("txType") == "buy",
        trader=msg.get("traderPublicKey", ""),
        signature=msg.get("signature", ""),
    )


class TradeStream:
    def __init__(self, config: Dict[str, Any], mints: List[str],
                 on_update: Callable[[TokenMarketUpdate], None], reconnect_delay: float = 5):
        self.uri = config.get("PUMPPORTAL_WS_URL", "wss://pumpportal.fun/api/data")
        self.threshold = float(config.get("GRADUATION_THRESHOLD_SOL", 85.0))
        self.mints = list(mints)
        self.on_update = on_update
        self.reconnect_delay = reconnect_delay
        self._stop_event = threading.Event()

    def stop(self):
        self._stop_event.set()

    def handle_raw_message(self, raw_msg: str):
        try:
            update = parse_trade_message(json.loads(raw_msg), self.threshold)
        except (ValueError, TypeError) as e:
            logger.warning(f"[WS] Failed to parse trade message: {e}")
            return
        if update is None:
            return
        try:
            self.on_update(update)
        except Exception as e:
            logger.error(f"[WS] Update handler failed for {update.mint}: {e}")

    async def _listen(self):
        async with websockets.connect(self.uri) as ws:
            await ws.send(json.dumps({"method": "subscribeTokenTrade", "keys": self.mints}))
            logger.info(f"[WS] Connected and subscribed to trades for {len(self.mints)} tokens")
            async for raw_msg in ws:
                if self._stop_event.is_set():
                    break
                self.handle_raw_message(raw_msg)

    async def run(self):
        while not self._stop_event.is_set():
            try:
                await self._listen()
            except (OSError, WebSocketException) as e:
                logger.error(f"[WS] Connection error: {e}")
            if not self._stop_event.is_set():
                await asyncio.sleep(self.reconnect_delay)
