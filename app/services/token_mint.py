"""
Mint-and-anchor saga for product batches.

Minting is external and irreversible; writing the anchor back is internal
and retryable. Nothing here ever tries to undo a mint: when the write-back
does not happen, the batch is left `pending` with its last known tx hash
and `reconcile` brings it to the state the ledger already holds.
"""
import threading
from datetime import date, datetime, time, timezone
from typing import Optional
from uuid import UUID

from fastapi import BackgroundTasks
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.audit import _perform_audit_log
from app.core.config import settings
from app.core.errors import (
    AlreadyAnchoredError, ChainError, ChainErrorKind, ConflictError,
    InvalidOperationError, MintConfirmationError, PendingConfirmationError,
    ReconciliationError, ValidationError
)
from app.db.schema import ProductBatch, MintStatus, AuditAction
from app.models.batch import ReconcileRead, TokenAnchorRead
from app.models.ledger import BatchMintParams
from app.services.batch import BatchService
from app.services.carbon import to_ledger_units
from app.services.ledger import LedgerClient


def ledger_batch_number(batch_number: str) -> int:
    """The contract keys batches by a uint256; reject anything else."""
    try:
        number = int(batch_number.strip())
    except (AttributeError, ValueError):
        raise ValidationError(
            "Invalid batch number. Must be a positive number to be minted.",
            batch_number=batch_number)
    if number <= 0:
        raise ValidationError(
            "Invalid batch number. Must be a positive number to be minted.",
            batch_number=batch_number)
    return number


def metadata_uri(batch_number: int) -> str:
    return f"{settings.metadata_base_url.rstrip('/')}/metadata/batch/{batch_number}"


def to_unix_seconds(value: Optional[date]) -> int:
    if value is None:
        return 0
    return int(datetime.combine(value, time.min, tzinfo=timezone.utc).timestamp())


def anchor_of(batch: ProductBatch) -> Optional[TokenAnchorRead]:
    if not batch.is_anchored:
        return None
    return TokenAnchorRead(
        token_id=batch.token_id,
        token_contract_address=batch.token_contract_address,
        tx_hash=batch.tx_hash,
        block_number=batch.block_number,
    )


class TokenMintService:
    def __init__(self, session: Session, ledger: LedgerClient):
        self.session = session
        self.ledger = ledger
        self.batches = BatchService(session)

    # ==========================================================================
    # MINT
    # ==========================================================================

    def build_mint_params(self, batch: ProductBatch) -> BatchMintParams:
        number = ledger_batch_number(batch.batch_number)

        if batch.quantity is None or batch.quantity <= 0:
            raise ValidationError("Invalid quantity. Must be a positive number.")
        if not batch.template_id or not batch.plant_id:
            raise ValidationError("Template and plant are required to mint.")

        footprint = to_ledger_units(batch.carbon_footprint)
        if footprint <= 0:
            raise ValidationError(
                "Carbon footprint must be at least 1 kg to be minted.",
                carbon_footprint=batch.carbon_footprint)

        return BatchMintParams(
            batch_number=number,
            template_id=str(batch.template_id),
            quantity=batch.quantity,
            production_date=to_unix_seconds(batch.production_date),
            expiry_date=to_unix_seconds(batch.expiry_date),
            carbon_footprint=footprint,
            plant_id=str(batch.plant_id),
            metadata_uri=metadata_uri(number),
        )

    def mint_and_anchor(
        self,
        manufacturer_address: str,
        batch_id: UUID,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        background_tasks: Optional[BackgroundTasks] = None
    ) -> ProductBatch:
        batch = self.batches.get_owned_batch(manufacturer_address, batch_id)

        if batch.is_anchored:
            raise AlreadyAnchoredError(
                "Batch is already minted.", token_id=batch.token_id)
        if self.ledger.address != batch.manufacturer_address:
            raise InvalidOperationError(
                "The ledger signer is not the manufacturer of this batch.")
        if batch.mint_status in (MintStatus.SUBMITTING, MintStatus.PENDING):
            raise ConflictError(
                "A mint is already in progress for this batch; reconcile it instead.",
                code="mint_in_progress", tx_hash=batch.mint_tx_hash)

        params = self.build_mint_params(batch)

        # A token from an earlier unrecorded mint is adopted, never minted twice
        existing_token = self.ledger.get_token_id_by_batch(
            params.batch_number, batch.manufacturer_address)
        if existing_token > 0:
            logger.warning(
                f"Batch {batch.batch_number} already has token {existing_token} on-chain; adopting it")
            self.reconcile(batch.id)
            return self.batches.get_batch(batch.id)

        if not self.batches.claim_mint(batch.id):
            raise ConflictError(
                "A mint is already in progress for this batch; reconcile it instead.",
                code="mint_in_progress")
        self.session.refresh(batch)

        # 1. Submit
        try:
            tx_hash = self.ledger.mint_batch(params)
        except ChainError as exc:
            self.batches.set_mint_state(
                batch, MintStatus.FAILED, error=exc.message)
            raise

        self.batches.set_mint_state(batch, MintStatus.PENDING, tx_hash=tx_hash)
        if background_tasks:
            background_tasks.add_task(
                _perform_audit_log,
                actor_address=batch.manufacturer_address,
                entity_type="ProductBatch",
                entity_id=batch.id,
                action=AuditAction.MINT,
                changes={"tx_hash": tx_hash, "batch_number": params.batch_number}
            )

        # 2. Wait for confirmation
        try:
            receipt = self.ledger.wait_for_receipt(
                tx_hash, timeout=timeout, cancel_event=cancel_event)
        except ChainError as exc:
            logger.warning(
                f"Lost track of mint {tx_hash} while waiting: {exc.message}")
            receipt = None

        if receipt is None:
            raise PendingConfirmationError(
                "Mint submitted but not confirmed yet. Reconcile the batch to finish it.",
                batch_id=str(batch.id), tx_hash=tx_hash)

        if receipt["status"] != 1:
            self.batches.set_mint_state(
                batch, MintStatus.FAILED, error="Mint transaction reverted.")
            raise ChainError(ChainErrorKind.REVERTED,
                             "Transaction failed. The contract rejected the transaction.")

        # 3. Extract token id
        token_id = self.ledger.extract_minted_token_id(receipt)
        if token_id is None:
            self.batches.set_mint_state(
                batch, MintStatus.PENDING,
                error="BatchMinted event not found in transaction receipt.")
            raise MintConfirmationError(
                "BatchMinted event not found in transaction receipt.",
                tx_hash=tx_hash)

        # 4. Write back
        return self._attach(batch, token_id, tx_hash, receipt.get("blockNumber"), background_tasks)

    # ==========================================================================
    # RECONCILE
    # ==========================================================================

    def reconcile(self, batch_id: UUID, manufacturer_address: Optional[str] = None) -> ReconcileRead:
        """
        Brings the batch in line with the ledger. Safe to call any number
        of times: every branch either converges on the anchored state or
        leaves the record untouched.
        """
        if manufacturer_address:
            batch = self.batches.get_owned_batch(manufacturer_address, batch_id)
        else:
            batch = self.batches.get_batch(batch_id)

        if batch.is_anchored:
            return self._report(batch, "already_anchored")

        # 1. Token already on-chain for (batch number, manufacturer)
        number = self._parse_number(batch.batch_number)
        token_id = 0
        if number is not None:
            token_id = self.ledger.get_token_id_by_batch(
                number, batch.manufacturer_address)

        if token_id > 0:
            tx_hash = batch.mint_tx_hash or self.ledger.find_mint_transaction(token_id)
            block_number = None
            if tx_hash:
                receipt = self.ledger.get_receipt(tx_hash)
                block_number = receipt.get("blockNumber") if receipt else None
            if not tx_hash:
                raise ReconciliationError(
                    "Token exists on-chain but its mint transaction was not found yet.",
                    batch_id=str(batch.id), token_id=token_id)
            batch = self._attach(batch, token_id, tx_hash, block_number)
            return self._report(batch, "anchored")

        # 2. Known transaction, no token visible under the batch key yet
        if batch.mint_tx_hash:
            receipt = self.ledger.get_receipt(batch.mint_tx_hash)
            if receipt is None:
                if batch.mint_status != MintStatus.PENDING:
                    batch = self.batches.set_mint_state(
                        batch, MintStatus.PENDING)
                return self._report(batch, "still_pending")

            if receipt["status"] != 1:
                batch = self.batches.set_mint_state(
                    batch, MintStatus.FAILED, error="Mint transaction reverted.")
                return self._report(batch, "marked_failed")

            minted = self.ledger.extract_minted_token_id(receipt)
            if minted is None:
                raise MintConfirmationError(
                    "BatchMinted event not found in transaction receipt.",
                    tx_hash=batch.mint_tx_hash)
            batch = self._attach(batch, minted, batch.mint_tx_hash,
                                 receipt.get("blockNumber"))
            return self._report(batch, "anchored")

        # 3. Claimed but never submitted
        if batch.mint_status == MintStatus.SUBMITTING:
            batch = self.batches.set_mint_state(
                batch, MintStatus.FAILED, error="Mint was never submitted.")
            return self._report(batch, "marked_failed")

        return self._report(batch, "nothing_to_do")

    # ==========================================================================
    # HELPERS
    # ==========================================================================

    def _attach(
        self,
        batch: ProductBatch,
        token_id: int,
        tx_hash: str,
        block_number: Optional[int] = None,
        background_tasks: Optional[BackgroundTasks] = None
    ) -> ProductBatch:
        batch_id = batch.id
        batch_number = batch.batch_number
        manufacturer = batch.manufacturer_address

        try:
            anchored = self.batches.attach_token_anchor(
                batch_id, token_id, tx_hash,
                block_number=block_number,
                contract_address=self.ledger.contract_address
            )
        except AlreadyAnchoredError:
            # Someone else finished the same write-back
            anchored = self.batches.get_batch(batch_id)
            if anchored.token_id != token_id:
                raise
            return anchored
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.bind(
                batch_number=batch_number,
                manufacturer=manufacturer,
                tx_hash=tx_hash,
            ).error(f"Token {token_id} minted but anchor write-back failed: {exc}")
            raise ReconciliationError(
                "Token minted but not yet recorded on the batch. It will show as pending until reconciled.",
                batch_id=str(batch_id), token_id=token_id, tx_hash=tx_hash)

        if background_tasks:
            background_tasks.add_task(
                _perform_audit_log,
                actor_address=manufacturer,
                entity_type="ProductBatch",
                entity_id=batch_id,
                action=AuditAction.ANCHOR,
                changes={"token_id": token_id, "tx_hash": tx_hash,
                         "block_number": block_number}
            )
        return anchored

    @staticmethod
    def _parse_number(batch_number: str) -> Optional[int]:
        try:
            return ledger_batch_number(batch_number)
        except ValidationError:
            return None

    @staticmethod
    def _report(batch: ProductBatch, action: str) -> ReconcileRead:
        return ReconcileRead(
            batch_id=batch.id,
            batch_number=batch.batch_number,
            mint_status=batch.mint_status,
            action=action,
            anchor=anchor_of(batch),
        )
