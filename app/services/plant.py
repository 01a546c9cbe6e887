from typing import List
from uuid import UUID
from loguru import logger
from sqlmodel import Session, select

from app.core.errors import NotFoundError
from app.db.schema import Plant
from app.models.catalog import PlantCreate
from app.services.company import CompanyService
from app.utils.address import normalize_address


class PlantService:
    def __init__(self, session: Session):
        self.session = session

    def create_plant(self, company_address: str, data: PlantCreate) -> Plant:
        company = CompanyService(self.session).lookup(company_address)

        plant = Plant(company_address=company.wallet_address,
                      **data.model_dump())
        self.session.add(plant)
        self.session.commit()
        self.session.refresh(plant)

        logger.info(
            f"Plant created: {plant.plant_code} for {company.wallet_address}")
        return plant

    def get_plant(self, plant_id: UUID) -> Plant:
        plant = self.session.get(Plant, plant_id)
        if not plant:
            raise NotFoundError("Plant not found.", plant_id=str(plant_id))
        return plant

    def get_owned_plant(self, company_address: str, plant_id: UUID) -> Plant:
        plant = self.session.exec(
            select(Plant).where(
                Plant.id == plant_id,
                Plant.company_address == normalize_address(company_address)
            )
        ).first()
        if not plant:
            raise NotFoundError("Plant not found.", plant_id=str(plant_id))
        return plant

    def list_plants(self, company_address: str) -> List[Plant]:
        return self.session.exec(
            select(Plant)
            .where(Plant.company_address == normalize_address(company_address))
            .order_by(Plant.created_at.desc())
        ).all()

    def deactivate_plant(self, company_address: str, plant_id: UUID) -> Plant:
        plant = self.get_owned_plant(company_address, plant_id)
        plant.is_active = False
        self.session.add(plant)
        self.session.commit()
        self.session.refresh(plant)
        return plant
