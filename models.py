# Filename: models.py

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


@dataclass
class LookupResult(Generic[T]):
    """
    Outcome of a read that may fail.
    Lets callers tell a real zero apart from a lookup that never completed.
    """
    ok: bool
    value: Optional[T] = None
    error: str = ""

    @classmethod
    def success(cls, value: T) -> "LookupResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "LookupResult[T]":
        return cls(ok=False, error=error)


@dataclass
class TokenInfo:
    """
    TokenInfo holds the descriptor and the derived market snapshot of a bonding-curve token.
    Built from market API responses and never cached.
    """
    mint: str                            # Token mint address
    name: str
    symbol: str
    description: str = ""
    image_uri: str = ""
    creator: str = ""
    created_timestamp: int = 0           # Unix seconds
    website: Optional[str] = None
    twitter: Optional[str] = None
    telegram: Optional[str] = None
    price: float = 0.0                   # SOL per whole token, derived from reserves
    price_usd: float = 0.0               # USD per whole token
    market_cap: float = 0.0              # USD
    liquidity: float = 0.0               # Virtual SOL reserve
    bonding_curve_progress: float = 0.0  # 0-100
    complete: bool = False
    raw_supply: int = 0


@dataclass
class TokenTrade:
    signature: str
    mint: str
    sol_amount: int
    token_amount: int
    is_buy: bool
    user: str
    timestamp: int


@dataclass
class TokenAccount:
    address: str
    mint: str
    amount: int          # Smallest unit
    decimals: int
    ui_amount: float


@dataclass
class TransactionRecord:
    signature: str
    slot: int
    block_time: Optional[int]
    err: Any = None
    transaction: Any = None


@dataclass
class PortfolioEntry:
    mint: str
    balance: int         # Smallest unit
    decimals: int
    ui_amount: float
    price: float         # USD per whole token
    value: float         # ui_amount * price


@dataclass
class SwapQuote:
    input_mint: str
    output_mint: str
    in_amount: int
    out_amount: int
    price_impact_pct: float
    slippage_bps: int
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SwapConfig:
    input_mint: str
    output_mint: str
    amount: int          # Smallest unit of input_mint
    slippage_bps: Optional[int] = None


@dataclass
class TradeResult:
    """Result of a trade or transfer. A failed result never carries a signature."""
    success: bool
    signature: Optional[str] = None
    error: str = ""
    simulated: bool = False

    def __post_init__(self):
        if not self.success:
            self.signature = None


@dataclass
class CrossChainPurchaseRequest:
    wallet_address: str
    oof_amount: float
    card_distribution: Dict[str, float]   # card id -> percentage


@dataclass
class CrossChainPurchase:
    oof_amount: float
    card_id: str
    destination_token_address: str
    estimated_tokens: float
    bridge_transaction_id: str


@dataclass
class CategoryOutcome:
    card_id: str
    status: str                           # 'minted' or 'failed'
    purchase: Optional[CrossChainPurchase] = None
    error: str = ""


@dataclass
class CrossChainPurchaseResult:
    status: str                           # 'rejected', 'failed' or 'success'
    transactions: List[CrossChainPurchase] = field(default_factory=list)
    outcomes: List[CategoryOutcome] = field(default_factory=list)
    transfer: Optional[TradeResult] = None
    error_message: str = ""

    @property
    def success(self) -> bool:
        return self.status == "success"

    @property
    def failed_categories(self) -> List[str]:
        return [o.card_id for o in self.outcomes if o.status == "failed"]


@dataclass
class PurchaseEstimate:
    usd_value: float
    bridge_fee: float
    estimated_destination_tokens: float


@dataclass
class SoldPosition:
    mint: str
    symbol: str
    sold_price: float
    amount: float
    sell_time: int


@dataclass
class MissedOpportunity:
    mint: str
    symbol: str
    sold_price: float
    current_price: float
    missed_gains: float
    oof_factor: float
    sell_time: int


@dataclass
class WalletAnalysis:
    wallet_address: str
    total_transactions: int
    active_tokens: int
    token_movements: List[Dict[str, Any]]
    wallet_age_days: int
    trading_activity: str
