"""
In-memory stand-in for LedgerClient.

Mirrors the client surface used by the services: writes return a tx hash,
receipts are dicts with `status`, `blockNumber`, `gasUsed`, and the minted
token id is exposed through `extract_minted_token_id` the way the real
client decodes it from the BatchMinted event.
"""
from typing import Dict, Optional, Tuple

from app.core.errors import ChainError, ChainErrorKind
from app.models.ledger import BatchMintParams, OnChainBatchInfo

CONTRACT_ADDRESS = "0x" + "c0" * 20


class FakeLedger:
    def __init__(self, signer: str, next_token_id: int = 1):
        self.address = signer.lower()
        self.contract_address = CONTRACT_ADDRESS
        self.next_token_id = next_token_id

        # Knobs
        self.confirm = True         # False: receipts are withheld (pending)
        self.emit_event = True      # False: confirmed receipt without BatchMinted
        self.revert = False         # True: confirmed receipt with status 0
        self.fail_with: Optional[Exception] = None

        self.mint_calls = 0
        self.transfer_calls = 0
        self.tokens: Dict[int, OnChainBatchInfo] = {}
        self.by_batch: Dict[Tuple[int, str], int] = {}
        self.balances: Dict[Tuple[str, int], int] = {}
        self.mint_tx: Dict[int, str] = {}
        self.receipts: Dict[str, dict] = {}
        self.withheld: Dict[str, dict] = {}
        self._tx_counter = 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def mint_batch(self, params: BatchMintParams) -> str:
        self.mint_calls += 1
        if self.fail_with:
            raise self.fail_with
        if (params.batch_number, self.address) in self.by_batch:
            raise ChainError(ChainErrorKind.BATCH_EXISTS,
                             "A batch with this number already exists for your address.")

        tx_hash = self._next_tx()
        if self.revert:
            self._publish(tx_hash, {"status": 0, "blockNumber": 12345,
                                    "gasUsed": 50_000, "token_id": None})
            return tx_hash

        token_id = self.next_token_id
        self.next_token_id += 1
        self.tokens[token_id] = OnChainBatchInfo(
            batch_number=params.batch_number,
            manufacturer=self.address,
            template_id=params.template_id,
            quantity=params.quantity,
            production_date=params.production_date,
            expiry_date=params.expiry_date,
            carbon_footprint=params.carbon_footprint,
            plant_id=params.plant_id,
            metadata_uri=params.metadata_uri,
            is_active=True,
        )
        self.by_batch[(params.batch_number, self.address)] = token_id
        self.balances[(self.address, token_id)] = params.quantity
        self.mint_tx[token_id] = tx_hash

        self._publish(tx_hash, {
            "status": 1,
            "blockNumber": 12345,
            "gasUsed": 210_000,
            "token_id": token_id if self.emit_event else None,
        })
        return tx_hash

    def transfer_to_partner(self, to_address: str, token_id: int, quantity: int, reason: str, metadata: str = "") -> str:
        self.transfer_calls += 1
        if self.fail_with:
            raise self.fail_with

        sender = (self.address, token_id)
        self.balances[sender] = self.balances.get(sender, 0) - quantity
        receiver = (to_address.lower(), token_id)
        self.balances[receiver] = self.balances.get(receiver, 0) + quantity

        tx_hash = self._next_tx()
        self._publish(tx_hash, {"status": 1, "blockNumber": 12400,
                                "gasUsed": 90_000, "token_id": None})
        return tx_hash

    # ------------------------------------------------------------------
    # Receipts
    # ------------------------------------------------------------------

    def get_receipt(self, tx_hash: str) -> Optional[dict]:
        return self.receipts.get(tx_hash)

    def wait_for_receipt(self, tx_hash: str, timeout=None, cancel_event=None) -> Optional[dict]:
        if cancel_event is not None and cancel_event.is_set():
            return None
        return self.receipts.get(tx_hash)

    def release_withheld(self):
        """Confirms every transaction that was submitted while confirm=False."""
        self.receipts.update(self.withheld)
        self.withheld.clear()

    def extract_minted_token_id(self, receipt: dict) -> Optional[int]:
        return receipt.get("token_id")

    def find_mint_transaction(self, token_id: int) -> Optional[str]:
        return self.mint_tx.get(token_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_batch_info(self, token_id: int) -> OnChainBatchInfo:
        if token_id not in self.tokens:
            raise ChainError(ChainErrorKind.REVERTED,
                             "Contract call failed. Please check your parameters and try again.")
        return self.tokens[token_id]

    def balance_of(self, address: str, token_id: int) -> int:
        return self.balances.get((address.lower(), token_id), 0)

    def get_current_token_id(self) -> int:
        return self.next_token_id

    def get_token_id_by_batch(self, batch_number: int, manufacturer: str) -> int:
        return self.by_batch.get((batch_number, manufacturer.lower()), 0)

    # ------------------------------------------------------------------

    def _next_tx(self) -> str:
        self._tx_counter += 1
        return "0x" + f"{self._tx_counter:064x}"

    def _publish(self, tx_hash: str, receipt: dict):
        receipt["transactionHash"] = tx_hash
        if self.confirm:
            self.receipts[tx_hash] = receipt
        else:
            self.withheld[tx_hash] = receipt
