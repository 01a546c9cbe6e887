from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, status, BackgroundTasks

from app.core.dependencies import (
    get_current_address, get_batch_service, get_token_mint_service
)
from app.services.batch import BatchService
from app.services.token_mint import TokenMintService
from app.core.errors import NotFoundError
from app.models.batch import (
    BatchCreate,
    BatchUpdate,
    BatchRead,
    MintRequest,
    ReconcileRead,
    TokenAnchorCreate
)

router = APIRouter()

# ==============================================================================
# BATCH RECORDS
# ==============================================================================


@router.post("/", response_model=BatchRead, status_code=status.HTTP_201_CREATED)
def create_batch(
    data: BatchCreate,
    background_tasks: BackgroundTasks,
    current_address: str = Depends(get_current_address),
    service: BatchService = Depends(get_batch_service)
):
    """
    Create a batch for one of your templates at one of your plants.
    - Batch number must be unique within your company.
    - Carbon footprint defaults to template per-unit value x quantity (kg CO2e).
    """
    return service.create_batch(current_address, data, background_tasks)


@router.get("/", response_model=List[BatchRead])
def list_batches(
    template_id: Optional[UUID] = None,
    current_address: str = Depends(get_current_address),
    service: BatchService = Depends(get_batch_service)
):
    return service.list_batches(current_address, template_id)


@router.get("/by-number/{batch_number}", response_model=BatchRead)
def get_batch_by_number(
    batch_number: str,
    current_address: str = Depends(get_current_address),
    service: BatchService = Depends(get_batch_service)
):
    batch = service.find_by_number(current_address, batch_number)
    if not batch:
        raise NotFoundError("Batch not found.", batch_number=batch_number)
    return batch


@router.get("/{batch_id}", response_model=BatchRead)
def get_batch(
    batch_id: UUID,
    current_address: str = Depends(get_current_address),
    service: BatchService = Depends(get_batch_service)
):
    return service.get_owned_batch(current_address, batch_id)


@router.patch("/{batch_id}", response_model=BatchRead)
def update_batch(
    batch_id: UUID,
    data: BatchUpdate,
    background_tasks: BackgroundTasks,
    current_address: str = Depends(get_current_address),
    service: BatchService = Depends(get_batch_service)
):
    """
    Partial update. Minted fields are frozen once the batch is anchored,
    and the status only moves forward.
    """
    return service.update_batch(current_address, batch_id, data, background_tasks)


@router.delete("/{batch_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_batch(
    batch_id: UUID,
    background_tasks: BackgroundTasks,
    current_address: str = Depends(get_current_address),
    service: BatchService = Depends(get_batch_service)
):
    service.delete_batch(current_address, batch_id, background_tasks)

# ==============================================================================
# TOKEN ANCHOR
# ==============================================================================


@router.post("/{batch_id}/mint", response_model=BatchRead)
def mint_batch(
    batch_id: UUID,
    background_tasks: BackgroundTasks,
    data: Optional[MintRequest] = None,
    current_address: str = Depends(get_current_address),
    service: TokenMintService = Depends(get_token_mint_service)
):
    """
    Mint the batch on the ledger and anchor the token to it.
    Answers 202 when the transaction is still unconfirmed after the wait;
    call /reconcile later to finish it.
    """
    timeout = data.wait_timeout_seconds if data else None
    return service.mint_and_anchor(
        current_address, batch_id, timeout=timeout, background_tasks=background_tasks)


@router.post("/{batch_id}/reconcile", response_model=ReconcileRead)
def reconcile_batch(
    batch_id: UUID,
    current_address: str = Depends(get_current_address),
    service: TokenMintService = Depends(get_token_mint_service)
):
    """Idempotent: brings the batch in line with what the ledger holds."""
    return service.reconcile(batch_id, manufacturer_address=current_address)


@router.post("/{batch_id}/anchor", response_model=BatchRead)
def attach_anchor(
    batch_id: UUID,
    data: TokenAnchorCreate,
    current_address: str = Depends(get_current_address),
    service: BatchService = Depends(get_batch_service)
):
    """Record a mint performed outside this service. Write-once."""
    service.get_owned_batch(current_address, batch_id)
    return service.attach_token_anchor(
        batch_id, data.token_id, data.tx_hash, data.block_number)
