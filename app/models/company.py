from typing import List, Optional
from uuid import UUID
from datetime import datetime
from sqlmodel import SQLModel, Field
from pydantic import EmailStr

from app.db.schema import CompanyType, CompanyScale


class CompanyProfile(SQLModel):
    """
    Registration payload. The wallet address comes from the signed-in
    identity, not from the body.
    """
    company_name: str = Field(
        min_length=2,
        max_length=200,
        schema_extra={"examples": ["Nordic Steel AB"]},
    )
    company_type: CompanyType = Field(
        schema_extra={"examples": ["Manufacturer"]})
    company_scale: Optional[CompanyScale] = None
    company_address: Optional[str] = None
    company_zip_code: Optional[str] = None
    company_website: Optional[str] = None
    company_email: Optional[EmailStr] = None
    company_phone: Optional[str] = None
    company_logo: Optional[str] = None


class CompanyUpdate(SQLModel):
    company_name: Optional[str] = Field(
        default=None, min_length=2, max_length=200)
    company_scale: Optional[CompanyScale] = None
    company_address: Optional[str] = None
    company_zip_code: Optional[str] = None
    company_website: Optional[str] = None
    company_email: Optional[EmailStr] = None
    company_phone: Optional[str] = None
    company_logo: Optional[str] = None


class CompanyRead(CompanyProfile):
    id: UUID
    wallet_address: str
    company_email: Optional[str] = None
    product_template_ids: List[str] = []
    created_at: datetime
    updated_at: datetime


class CompanySearchResult(SQLModel):
    """Directory search hit for the partner picker."""
    wallet_address: str
    company_name: str
    company_type: CompanyType
