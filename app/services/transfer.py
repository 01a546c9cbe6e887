import threading
from typing import List, Optional
from fastapi import BackgroundTasks
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select, or_

from app.core.audit import _perform_audit_log
from app.core.errors import (
    ChainError, ChainErrorKind, InvalidOperationError,
    PendingConfirmationError, ReconciliationError, ValidationError
)
from app.db.schema import TokenTransfer, AuditAction
from app.models.ledger import BalanceRead, HoldingsRead, MintedToken, TokenHolding
from app.models.transfer import TransferRecordCreate, LedgerTransferCreate
from app.services.batch import BatchService
from app.services.ledger import LedgerClient
from app.utils.address import normalize_address, is_zero_address


class TransferService:
    """
    Append-only record of token movements, plus the on-chain transfer that
    produces them and the holdings views read back from the ledger.
    """

    def __init__(self, session: Session, ledger: Optional[LedgerClient] = None):
        self.session = session
        self.ledger = ledger

    def record_transfer(
        self,
        data: TransferRecordCreate,
        background_tasks: Optional[BackgroundTasks] = None
    ) -> TokenTransfer:
        from_address = normalize_address(data.from_address, "from_address")
        to_address = normalize_address(data.to_address, "to_address")

        batch_id = data.batch_id
        if batch_id is None:
            batch = BatchService(self.session).get_by_token_id(data.token_id)
            batch_id = batch.id if batch else None

        transfer = TokenTransfer(
            **data.model_dump(exclude={"from_address", "to_address", "batch_id"}),
            from_address=from_address,
            to_address=to_address,
            batch_id=batch_id,
        )
        self.session.add(transfer)
        self.session.commit()
        self.session.refresh(transfer)

        logger.info(
            f"Transfer recorded: token {transfer.token_id} x{transfer.quantity} {from_address} -> {to_address} ({transfer.tx_hash})")

        if background_tasks:
            background_tasks.add_task(
                _perform_audit_log,
                actor_address=from_address,
                entity_type="TokenTransfer",
                entity_id=transfer.id,
                action=AuditAction.TRANSFER,
                changes={"token_id": transfer.token_id,
                         "quantity": transfer.quantity,
                         "to_address": to_address,
                         "tx_hash": transfer.tx_hash}
            )
        return transfer

    def transfers_for(self, address: str) -> List[TokenTransfer]:
        """Every movement the address sent or received, newest first."""
        address = normalize_address(address)
        return self.session.exec(
            select(TokenTransfer)
            .where(or_(
                TokenTransfer.from_address == address,
                TokenTransfer.to_address == address
            ))
            .order_by(TokenTransfer.created_at.desc())
        ).all()

    def transfer_on_ledger(
        self,
        from_address: str,
        data: LedgerTransferCreate,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        background_tasks: Optional[BackgroundTasks] = None
    ) -> TokenTransfer:
        ledger = self._require_ledger()
        from_address = normalize_address(from_address, "from_address")
        to_address = normalize_address(data.to_address, "to_address")

        if is_zero_address(to_address):
            raise ValidationError("Invalid recipient address.")
        if to_address == from_address:
            raise InvalidOperationError("Cannot transfer tokens to yourself.")
        if ledger.address != from_address:
            raise InvalidOperationError(
                "The ledger signer is not the sender of this transfer.")

        # Checked locally so a doomed transfer never costs gas
        balance = ledger.balance_of(from_address, data.token_id)
        if balance < data.quantity:
            raise ValidationError(
                f"Insufficient balance. You have {balance} tokens, trying to transfer {data.quantity}.",
                code="insufficient_balance",
                balance=balance, requested=data.quantity)

        reason = data.transfer_reason or "Transfer to partner"
        tx_hash = ledger.transfer_to_partner(
            to_address, data.token_id, data.quantity, reason)

        receipt = ledger.wait_for_receipt(
            tx_hash, timeout=timeout, cancel_event=cancel_event)
        if receipt is None:
            raise PendingConfirmationError(
                "Transfer submitted but not confirmed yet.", tx_hash=tx_hash)
        if receipt["status"] != 1:
            raise ChainError(ChainErrorKind.REVERTED,
                             "Transaction failed. The contract rejected the transfer.")

        record = TransferRecordCreate(
            **data.model_dump(exclude={"to_address", "transfer_reason"}),
            transfer_reason=reason,
            from_address=from_address,
            to_address=to_address,
            tx_hash=tx_hash,
            block_number=receipt.get("blockNumber"),
            gas_used=receipt.get("gasUsed"),
        )
        try:
            return self.record_transfer(record, background_tasks)
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.bind(
                tx_hash=tx_hash,
                token_id=data.token_id,
                from_address=from_address,
                to_address=to_address,
            ).error(f"Transfer confirmed on-chain but not recorded: {exc}")
            raise ReconciliationError(
                "Transfer confirmed on-chain but not yet recorded. Record it again with the same transaction hash.",
                tx_hash=tx_hash, token_id=data.token_id)

    # ==========================================================================
    # LEDGER VIEWS
    # ==========================================================================

    def balance(self, address: str, token_id: int) -> BalanceRead:
        address = normalize_address(address)
        return BalanceRead(
            address=address,
            token_id=token_id,
            balance=self._require_ledger().balance_of(address, token_id)
        )

    def holdings(self, address: str) -> HoldingsRead:
        """Scans every assigned token id and keeps those with a positive balance."""
        ledger = self._require_ledger()
        address = normalize_address(address)

        holdings = []
        for token_id in range(1, ledger.get_current_token_id()):
            balance = ledger.balance_of(address, token_id)
            if balance <= 0:
                continue
            try:
                info = ledger.get_batch_info(token_id)
            except ChainError as exc:
                logger.warning(f"No batch info for token {token_id}: {exc.message}")
                info = None
            holdings.append(TokenHolding(
                token_id=token_id, balance=balance, batch_info=info))

        return HoldingsRead(address=address, holdings=holdings)

    def minted_tokens(self) -> List[MintedToken]:
        ledger = self._require_ledger()
        return [
            MintedToken(token_id=token_id,
                        batch_info=ledger.get_batch_info(token_id))
            for token_id in range(1, ledger.get_current_token_id())
        ]

    def _require_ledger(self) -> LedgerClient:
        if self.ledger is None:
            raise ChainError(ChainErrorKind.NETWORK,
                             "Ledger connection is not configured.")
        return self.ledger
