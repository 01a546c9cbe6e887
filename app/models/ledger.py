from typing import List, Optional
from sqlmodel import SQLModel


class BatchMintParams(SQLModel):
    """Arguments of the contract's mintBatch call, in ledger units."""
    batch_number: int
    template_id: str
    quantity: int
    production_date: int
    expiry_date: int
    carbon_footprint: int
    plant_id: str
    metadata_uri: str
    data: bytes = b""


class MintReceipt(SQLModel):
    token_id: int
    tx_hash: str
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    contract_address: Optional[str] = None


class TransferReceipt(SQLModel):
    tx_hash: str
    block_number: Optional[int] = None
    gas_used: Optional[int] = None


class OnChainBatchInfo(SQLModel):
    batch_number: int
    manufacturer: str
    template_id: str
    quantity: int
    production_date: int
    expiry_date: int
    carbon_footprint: int
    plant_id: str
    metadata_uri: str
    is_active: bool


class TokenHolding(SQLModel):
    token_id: int
    balance: int
    batch_info: Optional[OnChainBatchInfo] = None


class MintedToken(SQLModel):
    token_id: int
    batch_info: OnChainBatchInfo


class BalanceRead(SQLModel):
    address: str
    token_id: int
    balance: int


class HoldingsRead(SQLModel):
    address: str
    holdings: List[TokenHolding] = []

