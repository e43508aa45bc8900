"""
Swap and bonding-curve trade gateway for the OOF chain services
Quotes go through Jupiter, bonding-curve buys/sells through PumpPortal.
In simulation mode nothing is submitted and results are flagged as simulated.
"""

import asyncio
import base64
import logging
from typing import Any, Dict, List, Optional, Union

import requests
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TxOpts
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction, VersionedTransaction

from chain_reader import LAMPORTS_PER_SOL, ChainReader
from models import SwapConfig, SwapQuote, TradeResult

logger = logging.getLogger("swap_gateway")

SOL_MINT = "So11111111111111111111111111111111111111112"


class SwapGatewayError(Exception):
    pass


class SwapQuoteError(SwapGatewayError):
    pass


class SwapGateway:
    """
    Quote and execute token swaps
    """

    def __init__(self, config: Dict[str, Any], chain_reader: ChainReader):
        self.config = config
        self.chain_reader = chain_reader
        self.api_url = config.get("JUPITER_API_URL", "https://quote-api.jup.ag/v6").rstrip("/")
        self.price_url = config.get("JUPITER_PRICE_URL", "https://price.jup.ag/v4").rstrip("/")
        self.pumpportal_url = config.get("PUMPPORTAL_TRADE_URL", "https://pumpportal.fun/api/trade-local")
        self.default_slippage_bps = int(config.get("DEFAULT_SLIPPAGE_BPS", 100))
        self.priority_fee = float(config.get("PRIORITY_FEE_SOL", 0.00005))
        self.timeout = config.get("HTTP_TIMEOUT_SECONDS", 10)
        self.simulation_mode = bool(config.get("SIMULATION_MODE", True))

        mode = "SIMULATION" if self.simulation_mode else "LIVE"
        logger.info(f"Initialized SwapGateway ({mode})")

    async def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            lambda: requests.request(method, url, timeout=self.timeout, **kwargs)
        )

    async def get_quote(self, input_mint: str, output_mint: str, amount: int,
                        slippage_bps: Optional[int] = None) -> SwapQuote:
        """
        Get a swap quote from Jupiter

        Args:
            input_mint: Input token mint
            output_mint: Output token mint
            amount: Input amount in smallest units
            slippage_bps: Slippage tolerance in basis points

        Returns:
            SwapQuote

        Raises:
            SwapQuoteError: the aggregator did not return a usable quote
        """
        if slippage_bps is None:
            slippage_bps = self.default_slippage_bps

        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "slippageBps": slippage_bps,
        }

        try:
            response = await self._request("GET", f"{self.api_url}/quote", params=params)
        except requests.RequestException as e:
            raise SwapQuoteError(f"Quote request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise SwapQuoteError(f"Jupiter quote error: {response.status_code} - {response.text}")

        try:
            data = response.json()
        except ValueError as e:
            raise SwapQuoteError(f"Unreadable quote response: {e}") from e
        if not isinstance(data, dict) or "outAmount" not in data:
            raise SwapQuoteError(f"No route for {input_mint} -> {output_mint}")

        try:
            return SwapQuote(
                input_mint=input_mint,
                output_mint=output_mint,
                in_amount=int(data.get("inAmount", amount)),
                out_amount=int(data["outAmount"]),
                price_impact_pct=float(data.get("priceImpactPct") or 0),
                slippage_bps=int(data.get("slippageBps", slippage_bps)),
                raw=data,
            )
        except (TypeError, ValueError) as e:
            raise SwapQuoteError(f"Malformed quote: {e}") from e

    async def get_prices(self, ids: List[str]) -> Dict[str, float]:
        try:
            response = await self._request("GET", f"{self.price_url}/price", params={"ids": ",".join(ids)})
        except requests.RequestException as e:
            raise SwapGatewayError(f"Price request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise SwapGatewayError(f"Jupiter price error: {response.status_code} - {response.text}")

        try:
            data = response.json().get("data") or {}
            return {mint: float(entry.get("price", 0)) for mint, entry in data.items()}
        except (AttributeError, TypeError, ValueError) as e:
            raise SwapGatewayError(f"Malformed price response: {e}") from e

    async def build_swap_transaction(self, quote: SwapQuote, wallet: str) -> str:
        payload = {
            "quoteResponse": quote.raw,
            "userPublicKey": wallet,
            "wrapAndUnwrapSol": True,
        }
        try:
            response = await self._request("POST", f"{self.api_url}/swap", json=payload)
        except requests.RequestException as e:
            raise SwapGatewayError(f"Swap request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise SwapGatewayError(f"Jupiter swap error: {response.status_code} - {response.text}")

        try:
            swap_tx = response.json().get("swapTransaction")
        except (AttributeError, ValueError) as e:
            raise SwapGatewayError(f"Malformed swap response: {e}") from e
        if not swap_tx:
            raise SwapGatewayError("No swap transaction returned")
        return swap_tx

    async def execute_swap(self, swap_config: SwapConfig, wallet: str,
                           keypair: Optional[Keypair] = None) -> TradeResult:
        logger.info(f"Swap {swap_config.amount} {swap_config.input_mint} -> {swap_config.output_mint}")

        try:
            quote = await self.get_quote(
                swap_config.input_mint,
                swap_config.output_mint,
                swap_config.amount,
                swap_config.slippage_bps
            )
            swap_tx = await self.build_swap_transaction(quote, wallet)
        except SwapGatewayError as e:
            logger.error(f"Error preparing swap: {e}")
            return TradeResult(success=False, error=str(e))

        if self.simulation_mode:
            logger.info(f"[SIM] Swap not submitted, expected out: {quote.out_amount}")
            return TradeResult(success=True, simulated=True)

        return await self._sign_and_submit(swap_tx, wallet, keypair)

    async def buy(self, mint: str, sol_amount: float, wallet: str,
                  keypair: Optional[Keypair] = None) -> TradeResult:
        balance = await self.chain_reader.fetch_balance(wallet)
        if not balance.ok:
            return TradeResult(success=False, error=f"Balance lookup failed: {balance.error}")
        if balance.value < sol_amount:
            return TradeResult(success=False, error="Insufficient SOL balance")

        return await self._bonding_curve_trade("buy", mint, sol_amount, True, wallet, keypair)

    async def sell(self, mint: str, token_amount: float, wallet: str,
                   keypair: Optional[Keypair] = None) -> TradeResult:
        balance = await self.chain_reader.fetch_associated_token_balance(wallet, mint)
        if not balance.ok:
            return TradeResult(success=False, error=f"Balance lookup failed: {balance.error}")
        if balance.value < token_amount:
            return TradeResult(success=False, error="Insufficient token balance")

        return await self._bonding_curve_trade("sell", mint, token_amount, False, wallet, keypair)

    async def _bonding_curve_trade(self, action: str, mint: str, amount: float,
                                   denominated_in_sol: bool, wallet: str,
                                   keypair: Optional[Keypair]) -> TradeResult:
        if self.simulation_mode:
            logger.info(f"[SIM] {action} {amount} of {mint} not submitted")
            return TradeResult(success=True, simulated=True)

        data = {
            "publicKey": wallet,
            "action": action,
            "mint": mint,
            "amount": amount,
            "denominatedInSol": str(denominated_in_sol).lower(),
            "slippage": self.default_slippage_bps / 100,
            "priorityFee": self.priority_fee,
            "pool": "pump",
        }
        try:
            response = await self._request("POST", self.pumpportal_url, data=data)
        except requests.RequestException as e:
            return TradeResult(success=False, error=f"PumpPortal request failed: {e}")

        if response.status_code != 200:
            return TradeResult(success=False, error=f"PumpPortal error: {response.status_code} - {response.text}")

        return await self._sign_and_submit(response.content, wallet, keypair)

    async def send_sol(self, from_wallet: str, to_wallet: str, amount: float,
                       keypair: Optional[Keypair] = None) -> TradeResult:
        """
        Transfer native SOL between wallets

        Args:
            from_wallet: Sender address, must match the keypair in live mode
            to_wallet: Recipient address
            amount: Amount in SOL
            keypair: Sender keypair

        Returns:
            TradeResult
        """
        if amount <= 0:
            return TradeResult(success=False, error="Amount must be positive")
        try:
            instruction = transfer(TransferParams(
                from_pubkey=Pubkey.from_string(from_wallet),
                to_pubkey=Pubkey.from_string(to_wallet),
                lamports=int(round(amount * LAMPORTS_PER_SOL)),
            ))
        except ValueError as e:
            return TradeResult(success=False, error=f"Invalid address: {e}")

        balance = await self.chain_reader.fetch_balance(from_wallet)
        if not balance.ok:
            return TradeResult(success=False, error=f"Balance lookup failed: {balance.error}")
        if balance.value < amount:
            return TradeResult(success=False, error="Insufficient SOL balance")

        if self.simulation_mode:
            logger.info(f"[SIM] Transfer of {amount} SOL to {to_wallet} not submitted")
            return TradeResult(success=True, simulated=True)

        if keypair is None:
            return TradeResult(success=False, error="Signer keypair required for live trading")
        if str(keypair.pubkey()) != from_wallet:
            return TradeResult(success=False, error="Signer does not match wallet")

        try:
            blockhash = (await self.chain_reader.client.get_latest_blockhash()).value.blockhash
            message = Message.new_with_blockhash([instruction], keypair.pubkey(), blockhash)
            tx_bytes = bytes(Transaction([keypair], message, blockhash))
        except Exception as e:
            logger.error(f"Could not build SOL transfer: {e}")
            return TradeResult(success=False, error=str(e))

        return await self._send_and_confirm(tx_bytes)

    async def _sign_and_submit(self, tx_payload: Union[bytes, str], wallet: str,
                               keypair: Optional[Keypair]) -> TradeResult:
        """Sign a serialized transaction (raw bytes or base64 text) and wait for confirmation."""
        if keypair is None:
            return TradeResult(success=False, error="Signer keypair required for live trading")
        if str(keypair.pubkey()) != wallet:
            return TradeResult(success=False, error="Signer does not match wallet")

        try:
            if isinstance(tx_payload, str):
                tx_payload = base64.b64decode(tx_payload, validate=True)
            unsigned = VersionedTransaction.from_bytes(tx_payload)
            signed = VersionedTransaction(unsigned.message, [keypair])
        except Exception as e:
            logger.error(f"Could not sign transaction: {e}")
            return TradeResult(success=False, error=f"Invalid transaction payload: {e}")

        return await self._send_and_confirm(bytes(signed))

    async def _send_and_confirm(self, tx_bytes: bytes) -> TradeResult:
        client = self.chain_reader.client
        try:
            resp = await client.send_raw_transaction(
                tx_bytes,
                opts=TxOpts(skip_preflight=False, preflight_commitment=Confirmed)
            )
            signature = resp.value
            confirmation = await client.confirm_transaction(signature, commitment=Confirmed)
        except Exception as e:
            logger.error(f"Transaction submission failed: {e}")
            return TradeResult(success=False, error=str(e))

        status = confirmation.value[0] if confirmation.value else None
        if status is None or status.err:
            err = status.err if status else "not confirmed"
            return TradeResult(success=False, error=f"Transaction failed: {err}")

        logger.info(f"Transaction confirmed: {signature}")
        return TradeResult(success=True, signature=str(signature))
