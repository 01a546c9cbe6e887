"""
Thin client over the batch token contract.

Every method either returns plain values or raises ChainError; raw web3
exceptions never leave this module. The client is built per request from
settings (see app.core.dependencies.get_ledger_client) and signs with the
custodial key it was constructed with.
"""
import json
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Optional

from eth_account import Account
from loguru import logger
from web3 import Web3
from web3.exceptions import (
    ContractLogicError, ProviderConnectionError, TimeExhausted, TransactionNotFound
)
from web3.logs import DISCARD

from app.core.config import settings
from app.core.errors import ChainError, ChainErrorKind
from app.models.ledger import BatchMintParams, OnChainBatchInfo


ABI_PATH = Path(__file__).resolve().parent.parent / "abi" / "carbon_batch_token.json"


def load_contract_abi(path: Path = ABI_PATH) -> list:
    with open(path, "r") as f:
        contract_data = json.load(f)
    # Accept both a bare ABI array and a build artifact {"abi": [...]}
    return contract_data if isinstance(contract_data, list) else contract_data["abi"]


def _error_message(exc: Exception) -> str:
    # JSON-RPC errors arrive as ValueError({'code': ..., 'message': ...})
    if exc.args and isinstance(exc.args[0], dict):
        return str(exc.args[0].get("message", exc))
    return str(exc)


def translate_chain_error(exc: Exception, action: str = "submit transaction") -> ChainError:
    """
    Maps a raw provider/contract failure to a ChainError with a stable kind
    and a message fit for the API response.
    """
    if isinstance(exc, ChainError):
        return exc

    message = _error_message(exc)
    lowered = message.lower()

    if "batch already exists" in lowered:
        return ChainError(ChainErrorKind.BATCH_EXISTS,
                          "A batch with this number already exists for your address.", message)
    if "insufficient funds" in lowered:
        return ChainError(ChainErrorKind.INSUFFICIENT_FUNDS,
                          "Insufficient funds for gas. Please add AVAX to the ledger wallet.", message)
    if "user rejected" in lowered or "user denied" in lowered:
        return ChainError(ChainErrorKind.USER_REJECTED,
                          "Transaction was rejected by the signer.", message)
    if "underpriced" in lowered or "gas fee cap" in lowered or "less than block base fee" in lowered:
        return ChainError(ChainErrorKind.UNDERPRICED,
                          "Gas fee too low. Please try again - the network may be congested.", message)
    if "quantity must be greater than 0" in lowered:
        return ChainError(ChainErrorKind.REVERTED,
                          "Batch quantity must be greater than 0.", message)
    if "missing revert data" in lowered or "call_exception" in lowered:
        return ChainError(ChainErrorKind.REVERTED,
                          "Contract call failed. Please check your parameters and try again.", message)
    if isinstance(exc, ContractLogicError) or "execution reverted" in lowered:
        return ChainError(ChainErrorKind.REVERTED,
                          "Transaction failed. The contract rejected the transaction.", message)
    if isinstance(exc, (ProviderConnectionError, TimeExhausted, TimeoutError, OSError)):
        return ChainError(ChainErrorKind.NETWORK,
                          "Network error. Please check the ledger connection and try again.", message)

    return ChainError(ChainErrorKind.UNKNOWN, f"Failed to {action}: {message}", message)


@contextmanager
def _chain_errors(action: str):
    try:
        yield
    except ChainError:
        raise
    except Exception as exc:
        logger.warning(f"Ledger call failed ({action}): {exc}")
        raise translate_chain_error(exc, action) from exc


class LedgerClient:
    def __init__(
        self,
        web3: Web3,
        contract_address: str,
        private_key: str,
        chain_id: Optional[int] = None,
        abi: Optional[list] = None
    ):
        self.w3 = web3
        self.account = Account.from_key(private_key)
        self.chain_id = chain_id or settings.chain_id
        self.contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(contract_address),
            abi=abi or load_contract_abi()
        )

    @property
    def address(self) -> str:
        """Signer address, lower-cased like every stored address."""
        return self.account.address.lower()

    @property
    def contract_address(self) -> str:
        return self.contract.address.lower()

    # ==========================================================================
    # WRITES
    # ==========================================================================

    def mint_batch(self, params: BatchMintParams) -> str:
        """Submits mintBatch and returns the tx hash without waiting."""
        with _chain_errors("mint tokens"):
            call = self.contract.functions.mintBatch(
                params.batch_number,
                params.template_id,
                params.quantity,
                params.production_date,
                params.expiry_date,
                params.carbon_footprint,
                params.plant_id,
                params.metadata_uri,
                params.data
            )
            tx_hash = self._send(call, settings.mint_gas_limit)

        logger.info(
            f"Mint submitted: batch {params.batch_number} qty={params.quantity} co2e={params.carbon_footprint}kg tx={tx_hash}")
        return tx_hash

    def transfer_to_partner(self, to_address: str, token_id: int, quantity: int, reason: str, metadata: str = "") -> str:
        with _chain_errors("transfer tokens"):
            call = self.contract.functions.transferToPartner(
                Web3.to_checksum_address(to_address),
                token_id,
                quantity,
                reason,
                metadata
            )
            tx_hash = self._send(call, settings.transfer_gas_limit)

        logger.info(
            f"Transfer submitted: token {token_id} x{quantity} -> {to_address.lower()} tx={tx_hash}")
        return tx_hash

    def _send(self, call, gas_ceiling: int) -> str:
        tx = call.build_transaction({
            "chainId": self.chain_id,
            "from": self.account.address,
            "gas": self._gas_limit(call, gas_ceiling),
            "nonce": self.w3.eth.get_transaction_count(self.account.address, "pending"),
        })
        signed_tx = self.account.sign_transaction(tx)
        return Web3.to_hex(self.w3.eth.send_raw_transaction(signed_tx.raw_transaction))

    def _gas_limit(self, call, ceiling: int) -> int:
        # Fixed ceiling unless estimation is enabled; estimates never exceed it
        if not settings.use_gas_estimation:
            return ceiling
        estimate = call.estimate_gas({"from": self.account.address})
        return min(int(estimate * settings.gas_estimate_padding), ceiling)

    # ==========================================================================
    # RECEIPTS
    # ==========================================================================

    def get_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        """None while the transaction is unknown or not yet mined."""
        with _chain_errors("read transaction receipt"):
            try:
                return self.w3.eth.get_transaction_receipt(tx_hash)
            except TransactionNotFound:
                return None

    def wait_for_receipt(
        self,
        tx_hash: str,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Polls for the receipt until it appears, the timeout elapses or
        cancel_event is set. Returns None in the last two cases; the
        transaction itself is not affected either way.
        """
        timeout = settings.confirmation_timeout_seconds if timeout is None else timeout
        deadline = time.monotonic() + timeout

        while True:
            receipt = self.get_receipt(tx_hash)
            if receipt is not None:
                return receipt

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.warning(f"No receipt for {tx_hash} after {timeout}s")
                return None

            pause = min(settings.confirmation_poll_seconds, remaining)
            if cancel_event is not None:
                if cancel_event.wait(pause):
                    logger.info(f"Stopped waiting for {tx_hash} (cancelled)")
                    return None
            else:
                time.sleep(pause)

    def extract_minted_token_id(self, receipt: Dict[str, Any]) -> Optional[int]:
        events = self.contract.events.BatchMinted().process_receipt(
            receipt, errors=DISCARD)
        if not events:
            return None
        return int(events[0]["args"]["tokenId"])

    def find_mint_transaction(self, token_id: int) -> Optional[str]:
        """Hash of the transaction that emitted BatchMinted for token_id."""
        with _chain_errors("look up mint transaction"):
            logs = self.contract.events.BatchMinted().get_logs(
                from_block=settings.ledger_from_block,
                argument_filters={"tokenId": token_id}
            )
        if not logs:
            return None
        return Web3.to_hex(logs[0]["transactionHash"])

    # ==========================================================================
    # READS
    # ==========================================================================

    def get_batch_info(self, token_id: int) -> OnChainBatchInfo:
        with _chain_errors("read batch info"):
            info = self.contract.functions.getBatchInfo(token_id).call()

        return OnChainBatchInfo(
            batch_number=int(info[0]),
            manufacturer=str(info[1]).lower(),
            template_id=info[2],
            quantity=int(info[3]),
            production_date=int(info[4]),
            expiry_date=int(info[5]),
            carbon_footprint=int(info[6]),
            plant_id=info[7],
            metadata_uri=info[8],
            is_active=bool(info[9]),
        )

    def balance_of(self, address: str, token_id: int) -> int:
        with _chain_errors("read balance"):
            return int(self.contract.functions.balanceOf(
                Web3.to_checksum_address(address), token_id).call())

    def get_current_token_id(self) -> int:
        """The next id the contract will assign; minted ids are 1..n-1."""
        with _chain_errors("read token counter"):
            return int(self.contract.functions.getCurrentTokenId().call())

    def get_token_id_by_batch(self, batch_number: int, manufacturer: str) -> int:
        """0 when the manufacturer never minted this batch number."""
        with _chain_errors("look up batch token"):
            return int(self.contract.functions.getTokenIdByBatch(
                batch_number, Web3.to_checksum_address(manufacturer)).call())


def build_ledger_client() -> LedgerClient:
    if not settings.contract_address or not settings.ledger_private_key:
        raise ChainError(ChainErrorKind.NETWORK,
                         "Ledger connection is not configured.")

    web3 = Web3(Web3.HTTPProvider(settings.rpc_url))
    return LedgerClient(
        web3,
        contract_address=settings.contract_address,
        private_key=settings.ledger_private_key,
        chain_id=settings.chain_id,
    )
