from typing import Optional
from uuid import UUID
from datetime import datetime, date
from sqlmodel import SQLModel, Field

from app.db.schema import TransferType


class TransferMetadata(SQLModel):
    """Off-chain details attached to a token movement."""
    transfer_type: TransferType
    transfer_reason: Optional[str] = Field(default=None, max_length=500)
    carbon_footprint: Optional[float] = Field(default=None, ge=0)
    batch_id: Optional[UUID] = None
    from_location: Optional[str] = None
    to_location: Optional[str] = None
    transport_method: Optional[str] = None
    estimated_delivery: Optional[date] = None
    actual_delivery: Optional[date] = None


class TransferRecordCreate(TransferMetadata):
    """Records a movement that was already confirmed on-chain."""
    from_address: str
    to_address: str
    token_id: int = Field(gt=0)
    quantity: int = Field(gt=0)
    tx_hash: str = Field(min_length=1)
    block_number: Optional[int] = Field(default=None, ge=0)
    gas_used: Optional[int] = Field(default=None, ge=0)


class LedgerTransferCreate(TransferMetadata):
    """Submits a movement from the signed-in wallet and records it once confirmed."""
    to_address: str
    token_id: int = Field(gt=0)
    quantity: int = Field(gt=0)


class TransferRead(SQLModel):
    id: UUID
    token_id: int
    batch_id: Optional[UUID] = None
    from_address: str
    to_address: str
    quantity: int
    transfer_type: TransferType
    transfer_reason: Optional[str] = None
    carbon_footprint: Optional[float] = None
    tx_hash: str
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    from_location: Optional[str] = None
    to_location: Optional[str] = None
    transport_method: Optional[str] = None
    estimated_delivery: Optional[date] = None
    actual_delivery: Optional[date] = None
    created_at: datetime
