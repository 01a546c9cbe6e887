from typing import Optional, List, Dict, Any
from datetime import datetime, date
import uuid
from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field, Relationship, JSON
from enum import Enum


class CompanyType(str, Enum):
    MANUFACTURER = "Manufacturer"
    RETAILER = "Retailer"
    LOGISTICS = "Logistics"


class CompanyScale(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class BatchStatus(str, Enum):
    PRODUCTION = "production"
    COMPLETED = "completed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"


# Forward-only order of the batch lifecycle
BATCH_STATUS_ORDER = [
    BatchStatus.PRODUCTION,
    BatchStatus.COMPLETED,
    BatchStatus.SHIPPED,
    BatchStatus.DELIVERED,
]


class MintStatus(str, Enum):
    NOT_MINTED = "not_minted"
    SUBMITTING = "submitting"   # Claimed by a mint request, tx not yet sent
    PENDING = "pending"         # Tx sent, confirmation not observed yet
    ANCHORED = "anchored"       # Token id folded back into the batch
    FAILED = "failed"           # Tx reverted or never reached the chain


class TransferType(str, Enum):
    MANUFACTURING = "manufacturing"
    LOGISTICS = "logistics"
    RETAIL = "retail"
    CONSUMER = "consumer"


class RelationshipKind(str, Enum):
    SUPPLIER = "supplier"
    CUSTOMER = "customer"

    @property
    def inverse(self) -> "RelationshipKind":
        if self == RelationshipKind.SUPPLIER:
            return RelationshipKind.CUSTOMER
        return RelationshipKind.SUPPLIER


class PartnerStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class VehicleType(str, Enum):
    TRUCK = "truck"
    VAN = "van"
    CAR = "car"
    MOTORCYCLE = "motorcycle"
    SHIP = "ship"
    PLANE = "plane"


class FuelType(str, Enum):
    DIESEL = "diesel"
    GASOLINE = "gasoline"
    ELECTRIC = "electric"
    LPG = "lpg"
    CNG = "cng"


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    MINT = "mint"
    ANCHOR = "anchor"
    TRANSFER = "transfer"


class TimestampMixin(SQLModel):
    """
    A foundational mixin that provides standard audit timestamps for database records.
    Every entity inheriting from this mixin tracks when it was originally
    created and when it was last modified.
    """
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="The exact UTC timestamp when this record was first persisted in the database. Example: '2025-10-27 14:30:00'"
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column_kwargs={"onupdate": datetime.utcnow},
        description="The exact UTC timestamp when this record was last modified. Updates automatically. Example: '2025-10-28 09:15:00'"
    )


class Company(TimestampMixin, SQLModel, table=True):
    """
    Represents a registered organization, identified by its wallet address.
    The wallet address is the identity key used everywhere else (batches,
    plants, partner edges, transfers) and is always stored lower-cased.
    Companies are updated in place and never hard-deleted.
    """
    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        description="Internal identifier of the company record."
    )
    wallet_address: str = Field(
        unique=True,
        index=True,
        description="Lower-cased wallet address of the company. Example: '0x5b38da6a701c568545dcfcb03fcb875f56beddc4'"
    )
    company_name: str = Field(
        index=True,
        description="Display name of the company. Example: 'Nordic Steel AB'"
    )
    company_type: CompanyType = Field(
        description="Role of the company in the supply chain. Example: 'Manufacturer'"
    )
    company_scale: Optional[CompanyScale] = Field(
        default=None,
        description="Rough size of the organization. Example: 'medium'"
    )
    company_address: Optional[str] = Field(
        default=None,
        description="Postal address of the head office. Example: 'Industrigatan 4, Luleå'"
    )
    company_zip_code: Optional[str] = Field(default=None)
    company_website: Optional[str] = Field(default=None)
    company_email: Optional[str] = Field(default=None)
    company_phone: Optional[str] = Field(default=None)
    company_logo: Optional[str] = Field(default=None)

    product_template_ids: List[str] = Field(
        default_factory=list,
        sa_type=JSON,
        description="Ids of the product templates this company owns. Never contains duplicates."
    )


class Plant(TimestampMixin, SQLModel, table=True):
    """
    A manufacturing site owned by a company. Batches are produced at a plant,
    and provenance nodes show the plant name and location.
    """
    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        description="Unique identifier of the plant."
    )
    company_address: str = Field(
        index=True,
        description="Lower-cased wallet address of the owning company."
    )
    plant_name: str = Field(description="Example: 'Luleå Rolling Mill'")
    plant_code: str = Field(description="Internal site code. Example: 'LUL-01'")
    description: Optional[str] = Field(default=None)

    address: Optional[str] = Field(default=None)
    city: str = Field(description="Example: 'Luleå'")
    state: Optional[str] = Field(default=None)
    country: str = Field(description="Example: 'Sweden'")
    postal_code: Optional[str] = Field(default=None)
    latitude: Optional[float] = Field(default=None)
    longitude: Optional[float] = Field(default=None)

    is_active: bool = Field(default=True)

    batches: List["ProductBatch"] = Relationship(back_populates="plant")


class ProductTemplate(TimestampMixin, SQLModel, table=True):
    """
    A reusable product specification. Many batches reference one template.
    Once batches exist the template is soft-deactivated rather than removed.

    carbon_footprint_per_unit is always expressed in kg CO2e per unit.
    """
    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        description="Unique identifier of the template."
    )
    template_name: str = Field(
        index=True,
        description="Example: 'Hot-rolled steel coil 2mm'"
    )
    description: Optional[str] = Field(default=None)
    category: str = Field(description="Example: 'Steel'")
    image_url: Optional[str] = Field(default=None)

    # Specification
    weight: float = Field(description="Weight of one unit in kg. Example: 25.0")
    dimensions: Optional[Dict[str, float]] = Field(
        default=None,
        sa_type=JSON,
        description="Optional {'length', 'width', 'height'} in cm."
    )
    materials: List[str] = Field(
        default_factory=list,
        sa_type=JSON,
        description="Materials the product is made of. Example: ['iron ore', 'coke']"
    )
    carbon_footprint_per_unit: float = Field(
        description="kg CO2e emitted per produced unit. Example: 2.5"
    )

    is_raw_material: bool = Field(default=False)
    is_active: bool = Field(default=True)
    manufacturer_address: str = Field(
        index=True,
        description="Lower-cased wallet address of the owning manufacturer."
    )

    batches: List["ProductBatch"] = Relationship(back_populates="template")


class ProductBatch(TimestampMixin, SQLModel, table=True):
    """
    One production run of a template, optionally anchored to a ledger token.

    The token anchor (token_id, token_contract_address, tx_hash, block_number)
    is write-once. A batch with an anchor can never be deleted and its minted
    fields can no longer change.
    """
    __table_args__ = (
        UniqueConstraint("manufacturer_address", "batch_number",
                         name="uq_batch_manufacturer_number"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        description="Unique identifier of the batch record."
    )
    batch_number: str = Field(
        index=True,
        description="Batch number, unique within the manufacturer's namespace. Example: '1001'"
    )
    template_id: uuid.UUID = Field(
        foreign_key="producttemplate.id",
        index=True,
        description="The template this batch was produced from."
    )
    plant_id: uuid.UUID = Field(
        foreign_key="plant.id",
        description="The plant where the batch was produced."
    )
    manufacturer_address: str = Field(
        index=True,
        description="Lower-cased wallet address of the producing manufacturer."
    )

    quantity: int = Field(description="Number of produced units. Example: 100")
    production_date: date = Field(description="Example: '2025-03-01'")
    expiry_date: Optional[date] = Field(default=None)
    batch_status: BatchStatus = Field(default=BatchStatus.PRODUCTION)

    carbon_footprint: float = Field(
        description="Total kg CO2e of the batch. Example: 250.0"
    )
    carbon_footprint_overridden: bool = Field(
        default=False,
        description="True when carbon_footprint was supplied manually instead of computed from the template."
    )

    # Quality control
    qc_passed: Optional[bool] = Field(default=None)
    qc_notes: Optional[str] = Field(default=None)
    qc_inspector_name: Optional[str] = Field(default=None)
    qc_inspection_date: Optional[date] = Field(default=None)

    components: List[Dict[str, Any]] = Field(
        default_factory=list,
        sa_type=JSON,
        description="Component tokens consumed by this batch: [{'token_id', 'token_name', 'quantity', 'carbon_footprint', 'consumed', 'burn_tx_hash'}]"
    )

    # Token anchor (write-once)
    token_id: Optional[int] = Field(
        default=None,
        unique=True,
        index=True,
        description="Ledger token id assigned at mint. Example: 7"
    )
    token_contract_address: Optional[str] = Field(default=None)
    tx_hash: Optional[str] = Field(default=None)
    block_number: Optional[int] = Field(default=None)

    # Mint bookkeeping
    mint_status: MintStatus = Field(default=MintStatus.NOT_MINTED)
    mint_tx_hash: Optional[str] = Field(
        default=None,
        description="Last known mint transaction hash, kept even before confirmation for reconciliation."
    )
    mint_error: Optional[str] = Field(default=None)

    template: ProductTemplate = Relationship(back_populates="batches")
    plant: Plant = Relationship(back_populates="batches")

    @property
    def is_anchored(self) -> bool:
        return self.token_id is not None


class TokenTransfer(TimestampMixin, SQLModel, table=True):
    """
    One confirmed on-chain movement of a quantity of a token, with the
    off-chain logistics metadata attached to it. Never mutated.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    token_id: int = Field(index=True)
    batch_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="productbatch.id")

    from_address: str = Field(index=True)
    to_address: str = Field(index=True)
    quantity: int

    transfer_type: TransferType = Field(
        description="Caller-supplied classification. Example: 'logistics'"
    )
    transfer_reason: Optional[str] = Field(default=None)
    carbon_footprint: Optional[float] = Field(
        default=None, description="kg CO2e attributed to this movement."
    )

    tx_hash: str = Field(index=True)
    block_number: Optional[int] = Field(default=None)
    gas_used: Optional[int] = Field(default=None)

    from_location: Optional[str] = Field(default=None)
    to_location: Optional[str] = Field(default=None)
    transport_method: Optional[str] = Field(default=None)
    estimated_delivery: Optional[date] = Field(default=None)
    actual_delivery: Optional[date] = Field(default=None)


class PartnerRelationship(TimestampMixin, SQLModel, table=True):
    """
    One directed partner edge 'self -> partner'. Every accepted partnership
    is stored as two edges with inverse kinds, written in one transaction.
    """
    __table_args__ = (
        UniqueConstraint("self_address", "partner_address",
                         name="uq_partner_edge"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    self_address: str = Field(index=True)
    partner_address: str = Field(index=True)
    relationship_kind: RelationshipKind
    status: PartnerStatus = Field(default=PartnerStatus.ACTIVE)

    # Only filled on the proposer's edge
    company_name: Optional[str] = Field(default=None)
    contact_email: Optional[str] = Field(default=None)
    contact_phone: Optional[str] = Field(default=None)
    notes: Optional[str] = Field(default=None)


class Transportation(TimestampMixin, SQLModel, table=True):
    """
    One logged shipment leg of a company and the emissions it caused.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    company_address: str = Field(
        index=True,
        description="Lower-cased wallet address of the shipping company."
    )
    vehicle_type: VehicleType
    fuel_type: FuelType
    distance: float = Field(description="Kilometres travelled. Example: 420.0")
    fuel_consumption: float = Field(
        description="Litres (or kWh for electric) per 100 km. Example: 32.0"
    )
    carbon_footprint: float = Field(description="kg CO2e of the leg.")
    from_location: Optional[str] = Field(default=None)
    to_location: Optional[str] = Field(default=None)
    product_ids: List[str] = Field(
        default_factory=list,
        sa_type=JSON,
        description="Batch numbers or token ids carried on this leg."
    )


class SignInNonce(SQLModel, table=True):
    """
    One-time challenge a wallet signs to obtain an access token.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    wallet_address: str = Field(index=True)
    nonce: str = Field(unique=True)
    expires_at: datetime
    consumed: bool = Field(default=False)


class AuditLog(SQLModel, table=True):
    """
    Append-only trail of state-changing actions.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    actor_address: Optional[str] = Field(default=None, index=True)
    entity_type: str
    entity_id: str = Field(index=True)
    action: AuditAction
    changes: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    timestamp: datetime = Field(default_factory=datetime.utcnow)
