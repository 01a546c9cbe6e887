from typing import List, Optional
from uuid import UUID
from datetime import datetime, date
from sqlmodel import SQLModel, Field

from app.db.schema import BatchStatus, MintStatus


class BatchComponent(SQLModel):
    """A component token consumed by a batch."""
    token_id: int = Field(gt=0)
    token_name: Optional[str] = None
    quantity: int = Field(gt=0)
    carbon_footprint: Optional[float] = Field(default=None, ge=0)
    consumed: bool = True
    burn_tx_hash: Optional[str] = None


class QualityControl(SQLModel):
    passed: bool
    notes: Optional[str] = None
    inspector_name: Optional[str] = None
    inspection_date: Optional[date] = None


class BatchCreate(SQLModel):
    batch_number: str = Field(
        min_length=1,
        max_length=64,
        schema_extra={"examples": ["1001"]},
    )
    template_id: UUID
    plant_id: UUID
    quantity: int = Field(gt=0, schema_extra={"examples": [100]})
    production_date: date
    expiry_date: Optional[date] = None
    carbon_footprint: Optional[float] = Field(
        default=None,
        ge=0,
        description="Manual override of the total kg CO2e. Computed from the template when omitted."
    )
    quality_control: Optional[QualityControl] = None
    components: List[BatchComponent] = []


class BatchUpdate(SQLModel):
    batch_number: Optional[str] = Field(
        default=None, min_length=1, max_length=64)
    template_id: Optional[UUID] = None
    plant_id: Optional[UUID] = None
    quantity: Optional[int] = Field(default=None, gt=0)
    production_date: Optional[date] = None
    expiry_date: Optional[date] = None
    carbon_footprint: Optional[float] = Field(default=None, ge=0)
    batch_status: Optional[BatchStatus] = None
    quality_control: Optional[QualityControl] = None
    components: Optional[List[BatchComponent]] = None


class TokenAnchorCreate(SQLModel):
    token_id: int = Field(gt=0)
    tx_hash: str = Field(min_length=1)
    block_number: Optional[int] = Field(default=None, ge=0)


class TokenAnchorRead(SQLModel):
    token_id: int
    token_contract_address: Optional[str] = None
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None


class BatchRead(SQLModel):
    id: UUID
    batch_number: str
    template_id: UUID
    plant_id: UUID
    manufacturer_address: str
    quantity: int
    production_date: date
    expiry_date: Optional[date] = None
    batch_status: BatchStatus
    carbon_footprint: float
    carbon_footprint_overridden: bool

    qc_passed: Optional[bool] = None
    qc_notes: Optional[str] = None
    qc_inspector_name: Optional[str] = None
    qc_inspection_date: Optional[date] = None

    components: List[BatchComponent] = []

    token_id: Optional[int] = None
    token_contract_address: Optional[str] = None
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    mint_status: MintStatus
    mint_tx_hash: Optional[str] = None
    mint_error: Optional[str] = None

    created_at: datetime
    updated_at: datetime


class MintRequest(SQLModel):
    """Options for a mint call; all optional."""
    wait_timeout_seconds: Optional[float] = Field(default=None, gt=0, le=600)


class ReconcileRead(SQLModel):
    batch_id: UUID
    batch_number: str
    mint_status: MintStatus
    action: str = Field(
        description="What reconcile did: 'already_anchored', 'anchored', 'still_pending', 'marked_failed', 'nothing_to_do'."
    )
    anchor: Optional[TokenAnchorRead] = None
