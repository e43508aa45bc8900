"""
Cross-chain OOF -> card token purchases
Validates the OOF balance, moves the total to the bridge custody wallet,
then mints one card token per category on the destination platform.
"""

import asyncio
import logging
import random
import string
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TxOpts
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import TransferCheckedParams, get_associated_token_address, transfer_checked

from chain_reader import ChainReader
from models import (
    CategoryOutcome,
    CrossChainPurchase,
    CrossChainPurchaseRequest,
    CrossChainPurchaseResult,
    PurchaseEstimate,
    TradeResult,
)

logger = logging.getLogger("cross_chain_bridge")

PERCENT_TOLERANCE = 1e-6
_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_transaction_id() -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"bridge_{int(time.time() * 1000)}_{suffix}"


class ZoraMintClient:
    """
    Destination-platform minting API
    Payloads are only logged unless ZORA_SUBMIT_ENABLED is set.
    """

    def __init__(self, config: Dict[str, Any]):
        self.api_url = config.get("ZORA_API_URL", "https://api.zora.co/tokens")
        self.submit_enabled = bool(config.get("ZORA_SUBMIT_ENABLED", False))
        self.price_per_token = float(config.get("OOF_EXCHANGE_RATE_USD", 0.001))
        self.image_base_url = config.get("CARD_IMAGE_BASE_URL", "https://oof-platform.com/cards").rstrip("/")
        self.timeout = config.get("HTTP_TIMEOUT_SECONDS", 10)

    def build_payload(self, purchase: CrossChainPurchase) -> Dict[str, Any]:
        return {
            "name": f"OOF Moment - {purchase.card_id}",
            "description": "AI-generated OOF moment card token",
            "image": f"{self.image_base_url}/{purchase.card_id}.png",
            "initialSupply": purchase.estimated_tokens,
            "pricePerToken": self.price_per_token,
            "metadata": {
                "oofAmount": purchase.oof_amount,
                "bridgeTransactionId": purchase.bridge_transaction_id,
                "createdAt": datetime.now(timezone.utc).isoformat(),
            },
        }

    async def create_token(self, purchase: CrossChainPurchase) -> Dict[str, Any]:
        payload = self.build_payload(purchase)
        logger.info(f"Creating card token for {purchase.card_id}: {payload}")

        if not self.submit_enabled:
            return payload

        loop = asyncio.get_running_loop()
        response = await loop.run_in_executor(
            None,
            lambda: requests.post(self.api_url, json=payload, timeout=self.timeout)
        )
        response.raise_for_status()
        return payload


class CrossChainBridge:
    """
    OOF -> card token bridge
    """

    def __init__(self, config: Dict[str, Any], chain_reader: ChainReader,
                 mint_client: Optional[ZoraMintClient] = None):
        self.config = config
        self.chain_reader = chain_reader
        self.mint_client = mint_client or ZoraMintClient(config)

        self.oof_token_mint = config.get("OOF_TOKEN_MINT", "")
        self.oof_decimals = int(config.get("OOF_TOKEN_DECIMALS", 9))
        self.bridge_wallet = config.get("BRIDGE_WALLET_ADDRESS", "")
        self.exchange_rate = float(config.get("OOF_EXCHANGE_RATE_USD", 0.001))
        self.tokens_per_usd = float(config.get("ZORA_TOKENS_PER_USD", 1000.0))
        self.bridge_fee_percent = float(config.get("BRIDGE_FEE_PERCENT", 0.03))
        self.categories: List[str] = list(config.get("CARD_CATEGORIES",
                                                     ["paper-hands", "dust-collector", "gains-master"]))
        self.simulation_mode = bool(config.get("SIMULATION_MODE", True))

    def get_exchange_rate(self) -> float:
        return self.exchange_rate

    def estimate_purchase(self, oof_amount: float) -> PurchaseEstimate:
        usd_value = oof_amount * self.exchange_rate
        bridge_fee = usd_value * self.bridge_fee_percent
        return PurchaseEstimate(
            usd_value=usd_value,
            bridge_fee=bridge_fee,
            estimated_destination_tokens=(usd_value - bridge_fee) * self.tokens_per_usd,
        )

    def validate_distribution(self, distribution: Dict[str, float]) -> Optional[str]:
        """Return a rejection reason, or None when the split is usable."""
        missing = [c for c in self.categories if c not in distribution]
        if missing:
            return f"Missing card categories: {', '.join(missing)}"
        unknown = [c for c in distribution if c not in self.categories]
        if unknown:
            return f"Unknown card categories: {', '.join(unknown)}"
        if any(distribution[c] < 0 for c in self.categories):
            return "Card percentages must not be negative"
        total = sum(distribution[c] for c in self.categories)
        if abs(total - 100) > PERCENT_TOLERANCE:
            return f"Card percentages must sum to 100 (got {total})"
        return None

    def split_amount(self, total: float, distribution: Dict[str, float]) -> Dict[str, float]:
        return {c: total * distribution[c] / 100 for c in self.categories}

    def build_purchase(self, card_id: str, oof_amount: float) -> CrossChainPurchase:
        usd_value = oof_amount * self.exchange_rate
        return CrossChainPurchase(
            oof_amount=oof_amount,
            card_id=card_id,
            destination_token_address=f"zora_{card_id}_{int(time.time() * 1000)}",
            estimated_tokens=usd_value * self.tokens_per_usd,
            bridge_transaction_id=generate_transaction_id(),
        )

    async def process_cross_chain_purchase(self, request: CrossChainPurchaseRequest,
                                           signer: Optional[Keypair] = None) -> CrossChainPurchaseResult:
        """
        Run validate -> split -> transfer -> mint for one request

        Args:
            request: Wallet, OOF amount and per-card percentages
            signer: Wallet keypair, required outside simulation mode

        Returns:
            CrossChainPurchaseResult with status 'rejected', 'failed' or 'success'
        """
        if request.oof_amount <= 0:
            return CrossChainPurchaseResult(status="rejected", error_message="OOF amount must be positive")

        reason = self.validate_distribution(request.card_distribution)
        if reason:
            return CrossChainPurchaseResult(status="rejected", error_message=reason)

        balance = await self.chain_reader.fetch_associated_token_balance(
            request.wallet_address, self.oof_token_mint
        )
        if not balance.ok:
            return CrossChainPurchaseResult(status="rejected",
                                            error_message=f"Could not verify OOF balance: {balance.error}")
        if balance.value < request.oof_amount:
            return CrossChainPurchaseResult(status="rejected", error_message="Insufficient OOF token balance")

        allocations = self.split_amount(request.oof_amount, request.card_distribution)

        transfer = await self.execute_oof_transfer(request.wallet_address, request.oof_amount, signer)
        if not transfer.success:
            logger.error(f"OOF transfer failed for {request.wallet_address}: {transfer.error}")
            return CrossChainPurchaseResult(status="failed", transfer=transfer,
                                            error_message="Failed to transfer OOF tokens")

        purchases = [self.build_purchase(card_id, allocations[card_id]) for card_id in self.categories]
        results = await asyncio.gather(
            *(self.mint_client.create_token(p) for p in purchases),
            return_exceptions=True
        )

        outcomes = []
        for purchase, result in zip(purchases, results):
            if isinstance(result, Exception):
                logger.error(f"Failed to create card token for {purchase.card_id}: {result}")
                outcomes.append(CategoryOutcome(card_id=purchase.card_id, status="failed", error=str(result)))
            else:
                outcomes.append(CategoryOutcome(card_id=purchase.card_id, status="minted", purchase=purchase))

        minted = [o.purchase for o in outcomes if o.status == "minted"]
        logger.info(f"Cross-chain purchase for {request.wallet_address}: "
                    f"{len(minted)}/{len(purchases)} cards minted")
        return CrossChainPurchaseResult(status="success", transactions=minted,
                                        outcomes=outcomes, transfer=transfer)

    def build_transfer_instruction(self, wallet: str, amount: float) -> Instruction:
        owner = Pubkey.from_string(wallet)
        mint = Pubkey.from_string(self.oof_token_mint)
        custody = Pubkey.from_string(self.bridge_wallet)

        return transfer_checked(TransferCheckedParams(
            program_id=TOKEN_PROGRAM_ID,
            source=get_associated_token_address(owner, mint),
            mint=mint,
            dest=get_associated_token_address(custody, mint),
            owner=owner,
            amount=int(round(amount * 10 ** self.oof_decimals)),
            decimals=self.oof_decimals,
        ))

    async def execute_oof_transfer(self, wallet: str, amount: float,
                                   signer: Optional[Keypair] = None) -> TradeResult:
        try:
            instruction = self.build_transfer_instruction(wallet, amount)
        except ValueError as e:
            return TradeResult(success=False, error=f"Invalid transfer address: {e}")

        if self.simulation_mode:
            logger.info(f"[SIM] OOF transfer of {amount} from {wallet} to custody not submitted")
            return TradeResult(success=True, simulated=True)

        if signer is None:
            return TradeResult(success=False, error="Wallet signature required for OOF transfer")
        if str(signer.pubkey()) != wallet:
            return TradeResult(success=False, error="Signer does not match wallet")

        client = self.chain_reader.client
        try:
            blockhash = (await client.get_latest_blockhash()).value.blockhash
            message = Message.new_with_blockhash([instruction], signer.pubkey(), blockhash)
            tx = Transaction([signer], message, blockhash)
            resp = await client.send_raw_transaction(
                bytes(tx),
                opts=TxOpts(skip_preflight=False, preflight_commitment=Confirmed)
            )
            confirmation = await client.confirm_transaction(resp.value, commitment=Confirmed)
        except Exception as e:
            logger.error(f"OOF transfer error: {e}")
            return TradeResult(success=False, error=str(e))

        status = confirmation.value[0] if confirmation.value else None
        if status is None or status.err:
            return TradeResult(success=False, error=f"Transfer not confirmed: {status.err if status else 'unknown'}")

        return TradeResult(success=True, signature=str(resp.value))
