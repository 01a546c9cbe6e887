from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends, status

from app.core.dependencies import get_current_address, get_template_service
from app.services.product_template import ProductTemplateService
from app.models.catalog import (
    ProductTemplateCreate,
    ProductTemplateUpdate,
    ProductTemplateRead
)

router = APIRouter()


@router.post("/", response_model=ProductTemplateRead, status_code=status.HTTP_201_CREATED)
def create_template(
    data: ProductTemplateCreate,
    current_address: str = Depends(get_current_address),
    service: ProductTemplateService = Depends(get_template_service)
):
    return service.create_template(current_address, data)


@router.get("/", response_model=List[ProductTemplateRead])
def list_templates(
    include_inactive: bool = False,
    current_address: str = Depends(get_current_address),
    service: ProductTemplateService = Depends(get_template_service)
):
    return service.list_templates(current_address, include_inactive)


@router.get("/{template_id}", response_model=ProductTemplateRead)
def get_template(
    template_id: UUID,
    current_address: str = Depends(get_current_address),
    service: ProductTemplateService = Depends(get_template_service)
):
    return service.get_owned_template(current_address, template_id)


@router.patch("/{template_id}", response_model=ProductTemplateRead)
def update_template(
    template_id: UUID,
    data: ProductTemplateUpdate,
    current_address: str = Depends(get_current_address),
    service: ProductTemplateService = Depends(get_template_service)
):
    """
    Partial update. The per-unit carbon footprint is frozen once any batch
    was produced from the template.
    """
    return service.update_template(current_address, template_id, data)


@router.post("/{template_id}/deactivate", response_model=ProductTemplateRead)
def deactivate_template(
    template_id: UUID,
    current_address: str = Depends(get_current_address),
    service: ProductTemplateService = Depends(get_template_service)
):
    return service.deactivate_template(current_address, template_id)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_template(
    template_id: UUID,
    current_address: str = Depends(get_current_address),
    service: ProductTemplateService = Depends(get_template_service)
):
    service.delete_template(current_address, template_id)
