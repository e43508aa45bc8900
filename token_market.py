"""
Market data for pump.fun bonding-curve tokens.
Translates raw virtual reserves into display-ready price and graduation progress.
"""

import logging
from typing import Any, Dict, List, Optional

import aiohttp

from models import LookupResult, TokenInfo, TokenTrade

logger = logging.getLogger("token_market")

LAMPORTS_PER_SOL = 1_000_000_000
TOKEN_UNIT_SCALE = 1_000_000  # pump.fun tokens use 6 decimals
SOL_MINT = "So11111111111111111111111111111111111111112"


class MarketApiError(Exception):
    pass


def calculate_price(sol_reserves: float, token_reserves: float) -> float:
    """SOL per whole token implied by the virtual reserves."""
    if not token_reserves:
        return 0.0
    return (sol_reserves / LAMPORTS_PER_SOL) / (token_reserves / TOKEN_UNIT_SCALE)


def calculate_bonding_curve_progress(sol_reserves: float, completed: bool = False,
                                     threshold: float = 85.0) -> float:
    """Percentage of the way to graduation, clamped to [0, 100]."""
    if completed:
        return 100.0
    if threshold <= 0:
        return 100.0
    progress = (sol_reserves / LAMPORTS_PER_SOL) / threshold * 100
    return max(0.0, min(progress, 100.0))


def _to_unix_seconds(value: Any) -> int:
    ts = int(value or 0)
    # pump.fun reports milliseconds on some endpoints
    if ts > 10_000_000_000:
        ts //= 1000
    return ts


class TokenMarketAggregator:
    """
    Client for the bonding-curve market API
    """

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.base_url = config.get("PUMP_FUN_API_URL", "https://frontend-api.pump.fun").rstrip("/")
        self.price_url = config.get("JUPITER_PRICE_URL", "https://price.jup.ag/v4").rstrip("/")
        self.graduation_threshold = float(config.get("GRADUATION_THRESHOLD_SOL", 85.0))
        self.sol_price_fallback = float(config.get("SOL_PRICE_FALLBACK_USD", 240.0))
        self.timeout = aiohttp.ClientTimeout(total=config.get("HTTP_TIMEOUT_SECONDS", 10))

        logger.info(f"Initialized TokenMarketAggregator on {self.base_url}")

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.get(url, params=params) as response:
                if response.status != 200:
                    raise MarketApiError(f"{url} returned HTTP {response.status}")
                return await response.json()

    def parse_coin(self, data: Dict[str, Any]) -> TokenInfo:
        """
        Map a market API coin payload onto TokenInfo

        Args:
            data: Raw coin dictionary

        Returns:
            TokenInfo with freshly derived price and progress
        """
        sol_reserves = float(data.get("virtual_sol_reserves") or 0)
        token_reserves = float(data.get("virtual_token_reserves") or 0)
        complete = bool(data.get("complete", False))
        raw_supply = int(data.get("total_supply") or 0)
        market_cap = float(data.get("usd_market_cap") or 0)

        price_usd = 0.0
        if raw_supply > 0:
            price_usd = market_cap / (raw_supply / TOKEN_UNIT_SCALE)

        return TokenInfo(
            mint=data["mint"],
            name=data.get("name", ""),
            symbol=data.get("symbol", ""),
            description=data.get("description") or "",
            image_uri=data.get("image_uri") or "",
            creator=data.get("creator") or "",
            created_timestamp=_to_unix_seconds(data.get("created_timestamp")),
            website=data.get("website") or None,
            twitter=data.get("twitter") or None,
            telegram=data.get("telegram") or None,
            price=calculate_price(sol_reserves, token_reserves),
            price_usd=price_usd,
            market_cap=market_cap,
            liquidity=sol_reserves / LAMPORTS_PER_SOL,
            bonding_curve_progress=calculate_bonding_curve_progress(
                sol_reserves, complete, self.graduation_threshold
            ),
            complete=complete,
            raw_supply=raw_supply,
        )

    def _parse_coin_list(self, data: Any) -> List[TokenInfo]:
        # Search responses are sometimes wrapped in {"coins": [...]}
        if isinstance(data, dict):
            data = data.get("coins")
        if not isinstance(data, list):
            logger.warning(f"Unexpected coin list payload: {type(data).__name__}")
            return []
        tokens = []
        for item in data:
            try:
                tokens.append(self.parse_coin(item))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed coin entry: {e}")
        return tokens

    async def list_trending(self, offset: int = 0, limit: int = 50, sort: str = "market_cap",
                            order: str = "DESC", include_nsfw: bool = False) -> List[TokenInfo]:
        params = {
            "offset": offset,
            "limit": limit,
            "sort": sort,
            "order": order,
            "includeNsfw": str(include_nsfw).lower(),
        }
        try:
            data = await self._get_json(f"{self.base_url}/coins", params)
        except Exception as e:
            logger.error(f"Error fetching trending tokens: {e}")
            return []
        tokens = self._parse_coin_list(data)
        logger.info(f"Found {len(tokens)} trending tokens")
        return tokens

    async def search(self, query: str) -> List[TokenInfo]:
        try:
            data = await self._get_json(f"{self.base_url}/search/coins", {"q": query})
        except Exception as e:
            logger.error(f"Error searching tokens for '{query}': {e}")
            return []
        return self._parse_coin_list(data)

    async def get_token_info(self, mint: str) -> Optional[TokenInfo]:
        """Single token lookup. None means the token could not be found or fetched."""
        try:
            data = await self._get_json(f"{self.base_url}/coins/{mint}")
            if not data:
                return None
            return self.parse_coin(data)
        except Exception as e:
            logger.error(f"Error fetching token info for {mint}: {e}")
            return None

    async def get_king_of_the_hill(self) -> Optional[TokenInfo]:
        try:
            data = await self._get_json(f"{self.base_url}/coins/king-of-the-hill",
                                        {"includeNsfw": "false"})
            if not data:
                return None
            return self.parse_coin(data)
        except Exception as e:
            logger.error(f"Error fetching king of the hill: {e}")
            return None

    async def get_token_trades(self, mint: str, limit: int = 50, offset: int = 0) -> List[TokenTrade]:
        try:
            data = await self._get_json(f"{self.base_url}/trades/{mint}",
                                        {"limit": limit, "offset": offset})
        except Exception as e:
            logger.error(f"Error fetching trades for {mint}: {e}")
            return []

        if not isinstance(data, list):
            logger.warning(f"Unexpected trades payload for {mint}: {type(data).__name__}")
            return []

        trades = []
        for item in data:
            try:
                trades.append(TokenTrade(
                    signature=item["signature"],
                    mint=item.get("mint", mint),
                    sol_amount=int(item.get("sol_amount") or 0),
                    token_amount=int(item.get("token_amount") or 0),
                    is_buy=bool(item.get("is_buy")),
                    user=item.get("user", ""),
                    timestamp=_to_unix_seconds(item.get("timestamp")),
                ))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed trade for {mint}: {e}")
        return trades

    async def fetch_token_price(self, mint: str) -> LookupResult[float]:
        """USD price per whole token."""
        try:
            data = await self._get_json(f"{self.base_url}/coins/{mint}")
            if not data:
                return LookupResult.failure(f"token {mint} not found")
            return LookupResult.success(self.parse_coin(data).price_usd)
        except Exception as e:
            logger.error(f"Error fetching price for {mint}: {e}")
            return LookupResult.failure(str(e))

    async def get_token_price(self, mint: str) -> float:
        result = await self.fetch_token_price(mint)
        return result.value if result.ok else 0.0

    async def get_sol_price(self) -> float:
        try:
            data = await self._get_json(f"{self.price_url}/price", {"ids": SOL_MINT})
            return float(data["data"][SOL_MINT]["price"])
        except Exception as e:
            logger.error(f"Error fetching SOL price, using fallback: {e}")
            return self.sol_price_fallback
