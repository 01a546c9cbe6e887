from typing import List
from fastapi import APIRouter, Depends, status

from app.core.dependencies import get_current_address, get_company_service
from app.services.company import CompanyService
from app.models.company import CompanyProfile, CompanyUpdate, CompanyRead

router = APIRouter()


@router.post("/", response_model=CompanyRead, status_code=status.HTTP_201_CREATED)
def register_company(
    data: CompanyProfile,
    current_address: str = Depends(get_current_address),
    service: CompanyService = Depends(get_company_service)
):
    """
    Register the signed-in wallet as a company.
    Required before templates, plants or batches can be created.
    """
    return service.register(current_address, data)


@router.get("/", response_model=List[CompanyRead])
def list_companies(
    current_address: str = Depends(get_current_address),
    service: CompanyService = Depends(get_company_service)
):
    return service.list_companies()


@router.get("/me", response_model=CompanyRead)
def get_my_company(
    current_address: str = Depends(get_current_address),
    service: CompanyService = Depends(get_company_service)
):
    return service.lookup(current_address)


@router.patch("/me", response_model=CompanyRead)
def update_my_company(
    data: CompanyUpdate,
    current_address: str = Depends(get_current_address),
    service: CompanyService = Depends(get_company_service)
):
    return service.update_profile(current_address, data)


@router.get("/{wallet_address}", response_model=CompanyRead)
def get_company(
    wallet_address: str,
    current_address: str = Depends(get_current_address),
    service: CompanyService = Depends(get_company_service)
):
    return service.lookup(wallet_address)
