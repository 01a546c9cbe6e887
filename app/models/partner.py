from typing import Optional
from uuid import UUID
from datetime import datetime
from sqlmodel import SQLModel, Field
from pydantic import EmailStr

from app.db.schema import RelationshipKind, PartnerStatus


class PartnerProposal(SQLModel):
    """
    Payload for adding a partner. The proposer is the signed-in wallet; the
    reverse edge is created for the partner automatically.
    """
    partner_address: str = Field(
        schema_extra={"examples": ["0xbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb"]})
    relationship_kind: RelationshipKind = Field(
        description="What the partner is to you: 'supplier' or 'customer'.")
    company_name: Optional[str] = Field(default=None, max_length=200)
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=1000)


class PartnerRead(SQLModel):
    id: UUID
    self_address: str
    partner_address: str
    relationship_kind: RelationshipKind
    status: PartnerStatus
    company_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class PartnerPairRead(SQLModel):
    outgoing: PartnerRead
    incoming: PartnerRead


class PartnerRepairReport(SQLModel):
    inspected: int
    repaired: int
