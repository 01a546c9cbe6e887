from typing import List, Optional
from fastapi import APIRouter, Depends, Query

from app.core.dependencies import (
    get_ledger_client, get_ledger_transfer_service, get_provenance_builder
)
from app.services.ledger import LedgerClient
from app.services.provenance import ProvenanceTreeBuilder
from app.services.transfer import TransferService
from app.models.ledger import BalanceRead, HoldingsRead, MintedToken, OnChainBatchInfo
from app.models.provenance import ProvenanceTree

router = APIRouter()

# Public, read-only views: a consumer scanning a product has no wallet session.


@router.get("/minted", response_model=List[MintedToken])
def list_minted_tokens(
    service: TransferService = Depends(get_ledger_transfer_service)
):
    return service.minted_tokens()


@router.get("/holdings/{address}", response_model=HoldingsRead)
def get_holdings(
    address: str,
    service: TransferService = Depends(get_ledger_transfer_service)
):
    return service.holdings(address)


@router.get("/{token_id}/tree", response_model=ProvenanceTree)
def get_provenance_tree(
    token_id: int,
    max_depth: Optional[int] = Query(default=None, ge=0),
    builder: ProvenanceTreeBuilder = Depends(get_provenance_builder)
):
    """
    Bill-of-materials tree of the token, built from local batch records.
    Branches cut by a cycle, the depth limit or a missing batch are listed
    under `truncated` on their parent.
    """
    return builder.build_tree(token_id, max_depth)


@router.get("/{token_id}/batch-info", response_model=OnChainBatchInfo)
def get_batch_info(
    token_id: int,
    ledger: LedgerClient = Depends(get_ledger_client)
):
    return ledger.get_batch_info(token_id)


@router.get("/{token_id}/balance/{address}", response_model=BalanceRead)
def get_balance(
    token_id: int,
    address: str,
    service: TransferService = Depends(get_ledger_transfer_service)
):
    return service.balance(address, token_id)
