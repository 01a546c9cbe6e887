from typing import List
from uuid import UUID
from loguru import logger
from sqlmodel import Session, select

from app.core.errors import InvalidOperationError, NotFoundError
from app.db.schema import ProductTemplate, ProductBatch
from app.models.catalog import ProductTemplateCreate, ProductTemplateUpdate
from app.services.company import CompanyService
from app.utils.address import normalize_address


class ProductTemplateService:
    def __init__(self, session: Session):
        self.session = session

    def create_template(self, manufacturer_address: str, data: ProductTemplateCreate) -> ProductTemplate:
        """
        Registers a template for a registered company and adds it to the
        company's owned list.
        """
        companies = CompanyService(self.session)
        company = companies.lookup(manufacturer_address)

        template = ProductTemplate(
            manufacturer_address=company.wallet_address,
            **data.model_dump()
        )
        self.session.add(template)
        self.session.commit()
        self.session.refresh(template)

        companies.attach_product(company.wallet_address, str(template.id))

        logger.info(
            f"Template created: {template.template_name} ({template.id})")
        return template

    def get_template(self, template_id: UUID) -> ProductTemplate:
        template = self.session.get(ProductTemplate, template_id)
        if not template:
            raise NotFoundError("Product template not found.",
                                template_id=str(template_id))
        return template

    def get_owned_template(self, manufacturer_address: str, template_id: UUID) -> ProductTemplate:
        template = self.session.exec(
            select(ProductTemplate).where(
                ProductTemplate.id == template_id,
                ProductTemplate.manufacturer_address == normalize_address(
                    manufacturer_address)
            )
        ).first()
        if not template:
            raise NotFoundError("Product template not found.",
                                template_id=str(template_id))
        return template

    def list_templates(self, manufacturer_address: str, include_inactive: bool = False) -> List[ProductTemplate]:
        statement = select(ProductTemplate).where(
            ProductTemplate.manufacturer_address == normalize_address(
                manufacturer_address)
        )
        if not include_inactive:
            statement = statement.where(ProductTemplate.is_active == True)

        return self.session.exec(
            statement.order_by(ProductTemplate.created_at.desc())
        ).all()

    def update_template(self, manufacturer_address: str, template_id: UUID, data: ProductTemplateUpdate) -> ProductTemplate:
        template = self.get_owned_template(manufacturer_address, template_id)
        update_data = data.model_dump(exclude_unset=True)

        # Batch totals were computed from the current per-unit value
        if (
            "carbon_footprint_per_unit" in update_data
            and update_data["carbon_footprint_per_unit"] != template.carbon_footprint_per_unit
            and self._has_batches(template.id)
        ):
            raise InvalidOperationError(
                "Carbon footprint per unit is fixed once batches exist. Create a new template instead.")

        for key, value in update_data.items():
            setattr(template, key, value)

        self.session.add(template)
        self.session.commit()
        self.session.refresh(template)
        return template

    def deactivate_template(self, manufacturer_address: str, template_id: UUID) -> ProductTemplate:
        template = self.get_owned_template(manufacturer_address, template_id)
        template.is_active = False
        self.session.add(template)
        self.session.commit()
        self.session.refresh(template)
        logger.info(f"Template deactivated: {template.id}")
        return template

    def delete_template(self, manufacturer_address: str, template_id: UUID):
        """
        Hard delete, only while no batch references the template.
        Templates with batches must be deactivated instead.
        """
        template = self.get_owned_template(manufacturer_address, template_id)
        if self._has_batches(template.id):
            raise InvalidOperationError(
                "Template has batches; deactivate it instead.")

        company = CompanyService(self.session).lookup(
            template.manufacturer_address)
        company.product_template_ids = [
            tid for tid in company.product_template_ids if tid != str(template.id)]
        self.session.add(company)

        self.session.delete(template)
        self.session.commit()

    def _has_batches(self, template_id: UUID) -> bool:
        return self.session.exec(
            select(ProductBatch.id).where(
                ProductBatch.template_id == template_id)
        ).first() is not None
