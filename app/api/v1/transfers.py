from typing import List, Optional
from fastapi import APIRouter, Depends, status, BackgroundTasks

from app.core.dependencies import (
    get_current_address, get_transfer_service, get_ledger_transfer_service
)
from app.services.transfer import TransferService
from app.models.transfer import TransferRecordCreate, LedgerTransferCreate, TransferRead

router = APIRouter()


@router.post("/", response_model=TransferRead, status_code=status.HTTP_201_CREATED)
def record_transfer(
    data: TransferRecordCreate,
    background_tasks: BackgroundTasks,
    current_address: str = Depends(get_current_address),
    service: TransferService = Depends(get_transfer_service)
):
    """Record a movement already confirmed on the ledger."""
    return service.record_transfer(data, background_tasks)


@router.get("/", response_model=List[TransferRead])
def list_transfers(
    address: Optional[str] = None,
    current_address: str = Depends(get_current_address),
    service: TransferService = Depends(get_transfer_service)
):
    """Sent and received transfers, newest first. Defaults to your own wallet."""
    return service.transfers_for(address or current_address)


@router.post("/ledger", response_model=TransferRead, status_code=status.HTTP_201_CREATED)
def transfer_on_ledger(
    data: LedgerTransferCreate,
    background_tasks: BackgroundTasks,
    current_address: str = Depends(get_current_address),
    service: TransferService = Depends(get_ledger_transfer_service)
):
    """
    Send tokens to a partner through the ledger, then record the movement.
    Refused before submission when your balance is too low.
    """
    return service.transfer_on_ledger(
        current_address, data, background_tasks=background_tasks)
