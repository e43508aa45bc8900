"""
Read-only access to Solana ledger state.
Every public read is fail-soft: errors are logged and mapped to an empty/zero default.
The fetch_* variants return a LookupResult so callers can tell zero from failure.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from solana.rpc.async_api import AsyncClient
from solana.rpc.types import TokenAccountOpts
from solders.instruction import Instruction
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import get_associated_token_address

from config import get_rpc_endpoint
from models import LookupResult, TokenAccount, TransactionRecord

logger = logging.getLogger("chain_reader")

LAMPORTS_PER_SOL = 1_000_000_000
DEFAULT_FEE_SOL = 0.00025


def to_ui_amount(amount, decimals) -> float:
    """Whole-token amount from the raw integer; uiAmount is lossy and may be null."""
    return int(amount) / 10 ** int(decimals)


def is_valid_address(address: str) -> bool:
    try:
        Pubkey.from_string(address)
        return True
    except (ValueError, TypeError):
        return False


class ChainReader:
    """
    Wrapper around a JSON-RPC connection to a Solana-compatible ledger
    """

    def __init__(self, config: Dict[str, Any], client: Optional[AsyncClient] = None):
        self.config = config
        self.rpc_url = get_rpc_endpoint(config)
        self.commitment = config.get("COMMITMENT", "confirmed")
        self.client = client or AsyncClient(self.rpc_url, commitment=self.commitment)
        logger.info(f"ChainReader initialized on {self.rpc_url}")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        await self.client.close()

    async def fetch_balance(self, address: str) -> LookupResult[float]:
        try:
            pubkey = Pubkey.from_string(address)
            resp = await self.client.get_balance(pubkey)
            return LookupResult.success(resp.value / LAMPORTS_PER_SOL)
        except Exception as e:
            logger.error(f"Error fetching wallet balance for {address}: {e}")
            return LookupResult.failure(str(e))

    async def get_balance(self, address: str) -> float:
        """SOL balance of a wallet, 0 when the lookup fails."""
        result = await self.fetch_balance(address)
        return result.value if result.ok else 0.0

    async def get_token_accounts(self, address: str, program_id: Pubkey = TOKEN_PROGRAM_ID,
                                 mint: Optional[str] = None) -> List[TokenAccount]:
        """
        List the parsed token accounts owned by a wallet

        Args:
            address: Owner wallet address
            program_id: Token program filter (ignored when mint is given)
            mint: Optional mint filter

        Returns:
            Token accounts, or an empty list on any error
        """
        try:
            owner = Pubkey.from_string(address)
            if mint:
                opts = TokenAccountOpts(mint=Pubkey.from_string(mint))
            else:
                opts = TokenAccountOpts(program_id=program_id)
            resp = await self.client.get_token_accounts_by_owner_json_parsed(owner, opts)
        except Exception as e:
            logger.error(f"Error fetching token accounts for {address}: {e}")
            return []

        accounts = []
        for keyed in resp.value:
            try:
                info = keyed.account.data.parsed["info"]
                token_amount = info["tokenAmount"]
                amount, decimals = int(token_amount["amount"]), int(token_amount["decimals"])
                accounts.append(TokenAccount(
                    address=str(keyed.pubkey),
                    mint=info["mint"],
                    amount=amount,
                    decimals=decimals,
                    ui_amount=to_ui_amount(amount, decimals),
                ))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unparseable token account {keyed.pubkey}: {e}")
        return accounts

    async def fetch_token_balance(self, address: str, mint: str) -> LookupResult[float]:
        try:
            owner = Pubkey.from_string(address)
            opts = TokenAccountOpts(mint=Pubkey.from_string(mint))
            resp = await self.client.get_token_accounts_by_owner_json_parsed(owner, opts)
        except Exception as e:
            logger.error(f"Error fetching {mint} balance for {address}: {e}")
            return LookupResult.failure(str(e))

        if not resp.value:
            return LookupResult.success(0.0)

        try:
            token_amount = resp.value[0].account.data.parsed["info"]["tokenAmount"]
            return LookupResult.success(to_ui_amount(token_amount["amount"], token_amount["decimals"]))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Unexpected token account layout for {address}: {e}")
            return LookupResult.failure(str(e))

    async def get_token_balance(self, address: str, mint: str) -> float:
        result = await self.fetch_token_balance(address, mint)
        return result.value if result.ok else 0.0

    async def fetch_associated_token_balance(self, address: str, mint: str) -> LookupResult[float]:
        """
        Balance of the wallet's associated token account for a mint.
        This is the account token transfers debit, unlike fetch_token_balance which
        reads whichever account the owner lookup returns first.
        """
        try:
            owner = Pubkey.from_string(address)
            ata = get_associated_token_address(owner, Pubkey.from_string(mint))
            resp = await self.client.get_token_account_balance(ata)
            return LookupResult.success(to_ui_amount(resp.value.amount, resp.value.decimals))
        except Exception as e:
            logger.error(f"Error fetching associated {mint} balance for {address}: {e}")
            return LookupResult.failure(str(e))

    async def get_transaction_history(self, address: str, limit: int = 50,
                                      before: Optional[str] = None) -> List[TransactionRecord]:
        """
        Fetch one page of transaction history for a wallet

        Args:
            address: Wallet address
            limit: Page size
            before: Signature to page back from

        Returns:
            Records in signature order; any transaction that fails to load is dropped
        """
        try:
            pubkey = Pubkey.from_string(address)
            cursor = Signature.from_string(before) if before else None
            resp = await self.client.get_signatures_for_address(pubkey, before=cursor, limit=limit)
        except Exception as e:
            logger.error(f"Error fetching signatures for {address}: {e}")
            return []

        signatures = resp.value or []
        results = await asyncio.gather(
            *(self._fetch_transaction(sig) for sig in signatures),
            return_exceptions=True
        )

        records = []
        for sig, result in zip(signatures, results):
            if isinstance(result, Exception):
                logger.error(f"Error fetching transaction {sig.signature}: {result}")
                continue
            records.append(TransactionRecord(
                signature=str(sig.signature),
                slot=sig.slot,
                block_time=sig.block_time,
                err=sig.err,
                transaction=result,
            ))
        return records

    async def _fetch_transaction(self, sig_info) -> Any:
        resp = await self.client.get_transaction(
            sig_info.signature,
            encoding="jsonParsed",
            max_supported_transaction_version=0
        )
        if resp.value is None:
            raise LookupError("transaction not found")
        return resp.value

    async def validate_token_mint(self, mint: str) -> bool:
        try:
            resp = await self.client.get_account_info(Pubkey.from_string(mint))
        except Exception as e:
            logger.error(f"Error validating mint {mint}: {e}")
            return False
        return resp.value is not None and resp.value.owner == TOKEN_PROGRAM_ID

    async def estimate_transaction_fee(self, instructions: List[Instruction], payer: str) -> float:
        """Fee in SOL for a message built from the instructions; DEFAULT_FEE_SOL when the RPC can't say."""
        try:
            blockhash = (await self.client.get_latest_blockhash()).value.blockhash
            message = Message.new_with_blockhash(instructions, Pubkey.from_string(payer), blockhash)
            resp = await self.client.get_fee_for_message(message)
        except Exception as e:
            logger.error(f"Error estimating transaction fee: {e}")
            return DEFAULT_FEE_SOL

        if not resp.value:
            return DEFAULT_FEE_SOL
        return resp.value / LAMPORTS_PER_SOL
