from typing import List, Optional
from datetime import date
from enum import Enum
from sqlmodel import SQLModel


class NodeType(str, Enum):
    PRODUCT = "product"
    COMPONENT = "component"
    RAW_MATERIAL = "raw-material"


class TruncationReason(str, Enum):
    CYCLE = "cycle"
    MAX_DEPTH = "max_depth"
    UNRESOLVED = "unresolved"
    REPEATED = "repeated"
    NODE_LIMIT = "node_limit"


class TruncatedBranch(SQLModel):
    """A component that was not expanded, and why."""
    token_id: int
    reason: TruncationReason
    token_name: Optional[str] = None
    quantity: Optional[int] = None
    carbon_footprint: Optional[float] = None
    # Set for repeated components: the full subtree already shown elsewhere
    subtree_carbon_footprint: Optional[float] = None


class ProvenanceNode(SQLModel):
    """
    One node of the bill-of-materials tree. Carries everything needed to
    render it without further lookups.
    """
    name: str
    node_type: NodeType
    token_id: int
    batch_number: str
    quantity: int
    consumed_quantity: Optional[int] = None
    carbon_footprint: float
    carbon_footprint_per_unit: float
    subtree_carbon_footprint: float
    weight: Optional[float] = None
    materials: List[str] = []
    description: Optional[str] = None
    image_url: Optional[str] = None
    plant_name: Optional[str] = None
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    production_date: Optional[date] = None
    is_raw_material: bool = False
    manufacturer_address: str
    tx_hash: Optional[str] = None

    children: List["ProvenanceNode"] = []
    truncated: List[TruncatedBranch] = []


ProvenanceNode.model_rebuild()


class ProvenanceTree(SQLModel):
    root_token_id: int
    max_depth: int
    node_count: int
    root: ProvenanceNode
