from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status

from app.core.dependencies import get_current_address, get_partner_service
from app.services.partner import PartnerService
from app.db.schema import RelationshipKind, PartnerStatus
from app.models.company import CompanySearchResult
from app.models.partner import (
    PartnerProposal,
    PartnerRead,
    PartnerPairRead,
    PartnerRepairReport
)

router = APIRouter()


@router.post("/", response_model=PartnerPairRead, status_code=status.HTTP_201_CREATED)
def add_partner(
    data: PartnerProposal,
    current_address: str = Depends(get_current_address),
    service: PartnerService = Depends(get_partner_service)
):
    """
    Add a partner. Both directions are stored together:
    you -> partner with the given kind, partner -> you with the inverse.
    """
    outgoing, incoming = service.propose(current_address, data)
    return PartnerPairRead(
        outgoing=PartnerRead.model_validate(outgoing),
        incoming=PartnerRead.model_validate(incoming)
    )


@router.get("/", response_model=List[PartnerRead])
def list_partners(
    kind: Optional[RelationshipKind] = None,
    partner_status: Optional[PartnerStatus] = Query(default=None, alias="status"),
    current_address: str = Depends(get_current_address),
    service: PartnerService = Depends(get_partner_service)
):
    return service.list_partners(current_address, kind, partner_status)


@router.get("/search", response_model=List[CompanySearchResult])
def search_partners(
    term: str = Query(..., min_length=1),
    limit: Optional[int] = Query(default=None, ge=1),
    current_address: str = Depends(get_current_address),
    service: PartnerService = Depends(get_partner_service)
):
    """Companies matching name or address that are not partners yet."""
    return service.search(current_address, term, limit)


@router.post("/repair", response_model=PartnerRepairReport)
def repair_partner_pairs(
    current_address: str = Depends(get_current_address),
    service: PartnerService = Depends(get_partner_service)
):
    return service.repair_half_pairs()


@router.post("/{partner_address}/deactivate", response_model=PartnerPairRead)
def deactivate_partner(
    partner_address: str,
    current_address: str = Depends(get_current_address),
    service: PartnerService = Depends(get_partner_service)
):
    outgoing, incoming = service.deactivate_pair(
        current_address, partner_address)
    return PartnerPairRead(
        outgoing=PartnerRead.model_validate(outgoing),
        incoming=PartnerRead.model_validate(incoming)
    )


@router.delete("/{partner_address}", status_code=status.HTTP_204_NO_CONTENT)
def remove_partner(
    partner_address: str,
    current_address: str = Depends(get_current_address),
    service: PartnerService = Depends(get_partner_service)
):
    service.remove_pair(current_address, partner_address)
