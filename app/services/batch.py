from datetime import datetime
from typing import List, Optional
from uuid import UUID
from loguru import logger
from fastapi import BackgroundTasks
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select, col, update

from app.core.audit import _perform_audit_log
from app.core.errors import (
    AlreadyAnchoredError, ConflictError, InvalidOperationError,
    NotFoundError, ValidationError
)
from app.db.schema import (
    ProductBatch, BatchStatus, BATCH_STATUS_ORDER, MintStatus, AuditAction
)
from app.models.batch import BatchCreate, BatchUpdate, BatchComponent
from app.services.carbon import calculate_batch_footprint
from app.services.company import CompanyService
from app.services.plant import PlantService
from app.services.product_template import ProductTemplateService
from app.utils.address import normalize_address


# Fields written to the ledger by mintBatch; frozen once the batch is anchored
MINTED_FIELDS = {
    "batch_number", "template_id", "plant_id", "quantity",
    "carbon_footprint", "production_date", "expiry_date",
}

MINT_IN_FLIGHT = (MintStatus.SUBMITTING, MintStatus.PENDING)


class BatchService:
    """
    Owns ProductBatch records: creation, uniqueness, status, update,
    deletion guard and the write-once token anchor.
    """

    def __init__(self, session: Session):
        self.session = session

    # ==========================================================================
    # READS
    # ==========================================================================

    def get_batch(self, batch_id: UUID) -> ProductBatch:
        batch = self.session.get(ProductBatch, batch_id)
        if not batch:
            raise NotFoundError("Batch not found.", batch_id=str(batch_id))
        return batch

    def get_owned_batch(self, manufacturer_address: str, batch_id: UUID) -> ProductBatch:
        batch = self.get_batch(batch_id)
        if batch.manufacturer_address != normalize_address(manufacturer_address):
            raise NotFoundError("Batch not found.", batch_id=str(batch_id))
        return batch

    def find_by_number(self, manufacturer_address: str, batch_number: str) -> Optional[ProductBatch]:
        return self.session.exec(
            select(ProductBatch).where(
                ProductBatch.manufacturer_address == normalize_address(
                    manufacturer_address),
                ProductBatch.batch_number == batch_number.strip()
            )
        ).first()

    def get_by_token_id(self, token_id: int) -> Optional[ProductBatch]:
        return self.session.exec(
            select(ProductBatch).where(ProductBatch.token_id == token_id)
        ).first()

    def list_batches(self, manufacturer_address: str, template_id: Optional[UUID] = None) -> List[ProductBatch]:
        statement = select(ProductBatch).where(
            ProductBatch.manufacturer_address == normalize_address(
                manufacturer_address)
        )
        if template_id:
            statement = statement.where(ProductBatch.template_id == template_id)

        return self.session.exec(
            statement.order_by(ProductBatch.created_at.desc())
        ).all()

    # ==========================================================================
    # LIFECYCLE
    # ==========================================================================

    def create_batch(
        self,
        manufacturer_address: str,
        data: BatchCreate,
        background_tasks: Optional[BackgroundTasks] = None
    ) -> ProductBatch:
        manufacturer = CompanyService(
            self.session).lookup(manufacturer_address).wallet_address

        template = ProductTemplateService(self.session).get_owned_template(
            manufacturer, data.template_id)
        plant = PlantService(self.session).get_owned_plant(
            manufacturer, data.plant_id)

        batch_number = data.batch_number.strip()
        if not batch_number:
            raise ValidationError("Batch number is required.")

        if self.find_by_number(manufacturer, batch_number):
            raise ConflictError(
                "Batch with this number already exists for this manufacturer.",
                batch_number=batch_number)

        self._check_dates(data.production_date, data.expiry_date)

        footprint = calculate_batch_footprint(
            template.carbon_footprint_per_unit,
            data.quantity,
            override=data.carbon_footprint
        )

        batch = ProductBatch(
            batch_number=batch_number,
            template_id=template.id,
            plant_id=plant.id,
            manufacturer_address=manufacturer,
            quantity=data.quantity,
            production_date=data.production_date,
            expiry_date=data.expiry_date,
            batch_status=BatchStatus.PRODUCTION,
            carbon_footprint=footprint,
            carbon_footprint_overridden=data.carbon_footprint is not None,
            components=self._serialize_components(data.components),
        )
        if data.quality_control:
            self._apply_quality_control(batch, data.quality_control)

        self._commit_unique(batch, batch_number)

        logger.info(
            f"Batch created: {manufacturer}/{batch_number} qty={batch.quantity} co2e={batch.carbon_footprint}kg")

        if background_tasks:
            background_tasks.add_task(
                _perform_audit_log,
                actor_address=manufacturer,
                entity_type="ProductBatch",
                entity_id=batch.id,
                action=AuditAction.CREATE,
                changes={"batch_number": batch_number,
                         "quantity": batch.quantity,
                         "carbon_footprint": batch.carbon_footprint}
            )
        return batch

    def update_batch(
        self,
        manufacturer_address: str,
        batch_id: UUID,
        data: BatchUpdate,
        background_tasks: Optional[BackgroundTasks] = None
    ) -> ProductBatch:
        batch = self.get_owned_batch(manufacturer_address, batch_id)
        update_data = data.model_dump(exclude_unset=True)

        touched_minted = MINTED_FIELDS.intersection(update_data)
        if touched_minted and batch.is_anchored:
            raise InvalidOperationError(
                "Batch is minted; these fields are final: " +
                ", ".join(sorted(touched_minted)))
        if touched_minted and batch.mint_status in MINT_IN_FLIGHT:
            raise InvalidOperationError(
                "A mint is in progress for this batch; reconcile it before editing.")

        # 1. Batch number (re-check uniqueness)
        if "batch_number" in update_data:
            new_number = (update_data.pop("batch_number") or "").strip()
            if not new_number:
                raise ValidationError("Batch number is required.")
            if new_number != batch.batch_number:
                existing = self.find_by_number(
                    batch.manufacturer_address, new_number)
                if existing and existing.id != batch.id:
                    raise ConflictError(
                        "Batch with this number already exists for this manufacturer.",
                        batch_number=new_number)
                batch.batch_number = new_number

        # 2. References
        if "template_id" in update_data:
            template = ProductTemplateService(self.session).get_owned_template(
                batch.manufacturer_address, update_data.pop("template_id"))
            batch.template_id = template.id
        if "plant_id" in update_data:
            plant = PlantService(self.session).get_owned_plant(
                batch.manufacturer_address, update_data.pop("plant_id"))
            batch.plant_id = plant.id

        # 3. Status (forward only)
        if "batch_status" in update_data:
            self._advance_status(batch, update_data.pop("batch_status"))

        # 4. Quality control / components
        if "quality_control" in update_data:
            update_data.pop("quality_control")
            if data.quality_control:
                self._apply_quality_control(batch, data.quality_control)
        if "components" in update_data:
            update_data.pop("components")
            batch.components = self._serialize_components(
                data.components or [])

        # 5. Quantity and footprint
        explicit_footprint = update_data.pop("carbon_footprint", None)
        quantity_changed = (
            "quantity" in update_data and update_data["quantity"] != batch.quantity)
        for key, value in update_data.items():
            setattr(batch, key, value)

        if explicit_footprint is not None:
            batch.carbon_footprint = calculate_batch_footprint(
                0, batch.quantity, override=explicit_footprint)
            batch.carbon_footprint_overridden = True
        elif quantity_changed or "template_id" in data.model_fields_set:
            template = ProductTemplateService(
                self.session).get_template(batch.template_id)
            batch.carbon_footprint = calculate_batch_footprint(
                template.carbon_footprint_per_unit, batch.quantity)
            batch.carbon_footprint_overridden = False

        self._check_dates(batch.production_date, batch.expiry_date)
        self._commit_unique(batch, batch.batch_number)

        if background_tasks:
            background_tasks.add_task(
                _perform_audit_log,
                actor_address=batch.manufacturer_address,
                entity_type="ProductBatch",
                entity_id=batch.id,
                action=AuditAction.UPDATE,
                changes=data.model_dump(exclude_unset=True, mode="json")
            )
        return batch

    def delete_batch(
        self,
        manufacturer_address: str,
        batch_id: UUID,
        background_tasks: Optional[BackgroundTasks] = None
    ):
        batch = self.get_owned_batch(manufacturer_address, batch_id)

        if batch.is_anchored:
            raise InvalidOperationError(
                "Batch has been minted; tokens cannot be un-minted, so the batch cannot be deleted.",
                token_id=batch.token_id)
        if batch.mint_status in MINT_IN_FLIGHT:
            raise InvalidOperationError(
                "A mint is in progress for this batch; reconcile it before deleting.",
                tx_hash=batch.mint_tx_hash)

        snapshot = {"batch_number": batch.batch_number,
                    "manufacturer": batch.manufacturer_address}
        self.session.delete(batch)
        self.session.commit()
        logger.info(
            f"Batch deleted: {snapshot['manufacturer']}/{snapshot['batch_number']}")

        if background_tasks:
            background_tasks.add_task(
                _perform_audit_log,
                actor_address=snapshot["manufacturer"],
                entity_type="ProductBatch",
                entity_id=batch_id,
                action=AuditAction.DELETE,
                changes=snapshot
            )

    # ==========================================================================
    # TOKEN ANCHOR
    # ==========================================================================

    def attach_token_anchor(
        self,
        batch_id: UUID,
        token_id: int,
        tx_hash: str,
        block_number: Optional[int] = None,
        contract_address: Optional[str] = None
    ) -> ProductBatch:
        """
        Folds a mint result into the batch. Write-once: the update only
        matches while token_id is still NULL, so a second attach fails at
        storage level even under concurrency.
        """
        if token_id is None or token_id <= 0:
            raise ValidationError("Token id must be a positive integer.")
        if not tx_hash:
            raise ValidationError("Transaction hash is required.")

        batch = self.get_batch(batch_id)
        if batch.is_anchored:
            raise AlreadyAnchoredError(
                "Batch already carries a token anchor.",
                batch_id=str(batch_id), token_id=batch.token_id)

        statement = (
            update(ProductBatch)
            .where(ProductBatch.id == batch_id)
            .where(col(ProductBatch.token_id).is_(None))
            .values(
                token_id=token_id,
                tx_hash=tx_hash,
                block_number=block_number,
                token_contract_address=contract_address.lower() if contract_address else None,
                mint_status=MintStatus.ANCHORED,
                mint_tx_hash=tx_hash,
                mint_error=None,
                updated_at=datetime.utcnow()
            )
        )

        try:
            result = self.session.exec(statement)
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise ConflictError(
                "Token is already anchored to another batch.", token_id=token_id)

        self.session.refresh(batch)
        if result.rowcount == 0 or batch.token_id != token_id:
            raise AlreadyAnchoredError(
                "Batch already carries a token anchor.",
                batch_id=str(batch_id), token_id=batch.token_id)

        logger.info(
            f"Anchor attached: {batch.manufacturer_address}/{batch.batch_number} -> token {token_id} ({tx_hash})")
        return batch

    # ==========================================================================
    # MINT BOOKKEEPING (used by TokenMintService)
    # ==========================================================================

    def claim_mint(self, batch_id: UUID) -> bool:
        """
        Compare-and-set not_minted|failed -> submitting.
        Returns False when another request already owns the mint.
        """
        statement = (
            update(ProductBatch)
            .where(ProductBatch.id == batch_id)
            .where(col(ProductBatch.token_id).is_(None))
            .where(col(ProductBatch.mint_status).in_(
                [MintStatus.NOT_MINTED, MintStatus.FAILED]))
            .values(mint_status=MintStatus.SUBMITTING, mint_error=None,
                    updated_at=datetime.utcnow())
        )
        result = self.session.exec(statement)
        self.session.commit()
        return result.rowcount == 1

    def set_mint_state(
        self,
        batch: ProductBatch,
        status: MintStatus,
        tx_hash: Optional[str] = None,
        error: Optional[str] = None
    ) -> ProductBatch:
        if batch.is_anchored:
            return batch

        batch.mint_status = status
        if tx_hash:
            batch.mint_tx_hash = tx_hash
        batch.mint_error = error
        self.session.add(batch)
        self.session.commit()
        self.session.refresh(batch)
        return batch

    # ==========================================================================
    # HELPERS
    # ==========================================================================

    def _commit_unique(self, batch: ProductBatch, batch_number: str):
        try:
            self.session.add(batch)
            self.session.commit()
            self.session.refresh(batch)
        except IntegrityError:
            # Storage-level uniqueness caught a concurrent insert
            self.session.rollback()
            raise ConflictError(
                "Batch with this number already exists for this manufacturer.",
                batch_number=batch_number)

    def _advance_status(self, batch: ProductBatch, new_status: BatchStatus):
        current = BATCH_STATUS_ORDER.index(batch.batch_status)
        target = BATCH_STATUS_ORDER.index(new_status)
        if target < current:
            raise InvalidOperationError(
                f"Batch status can only move forward ({batch.batch_status.value} -> {new_status.value} refused).")
        batch.batch_status = new_status

    @staticmethod
    def _check_dates(production_date, expiry_date):
        if expiry_date and expiry_date < production_date:
            raise ValidationError(
                "Expiry date must not be before the production date.")

    @staticmethod
    def _apply_quality_control(batch: ProductBatch, qc):
        batch.qc_passed = qc.passed
        batch.qc_notes = qc.notes
        batch.qc_inspector_name = qc.inspector_name
        batch.qc_inspection_date = qc.inspection_date

    @staticmethod
    def _serialize_components(components: List[BatchComponent]) -> list:
        seen = set()
        for component in components:
            if component.token_id in seen:
                raise ValidationError(
                    f"Component token {component.token_id} is listed twice.")
            seen.add(component.token_id)
        return [c.model_dump() for c in components]
