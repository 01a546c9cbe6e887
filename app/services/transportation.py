from typing import List, Optional
from fastapi import BackgroundTasks
from loguru import logger
from sqlmodel import Session, select

from app.core.audit import _perform_audit_log
from app.db.schema import Transportation, AuditAction
from app.models.transportation import TransportationCreate
from app.services.carbon import calculate_transport_footprint, to_kg
from app.services.company import CompanyService
from app.utils.address import normalize_address


class TransportationService:
    """Shipment legs a company logs, each with its footprint in kg CO2e."""

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        company_address: str,
        data: TransportationCreate,
        background_tasks: Optional[BackgroundTasks] = None
    ) -> Transportation:
        company = CompanyService(self.session).lookup(company_address)

        if data.carbon_footprint is None:
            footprint = calculate_transport_footprint(
                data.distance, data.fuel_consumption, data.fuel_type)
        else:
            footprint = to_kg(data.carbon_footprint, data.carbon_unit)

        leg = Transportation(
            company_address=company.wallet_address,
            carbon_footprint=footprint,
            **data.model_dump(exclude={"carbon_footprint", "carbon_unit"})
        )
        self.session.add(leg)
        self.session.commit()
        self.session.refresh(leg)

        logger.info(
            f"Transportation logged for {leg.company_address}: "
            f"{leg.distance} km by {leg.vehicle_type.value}, {leg.carbon_footprint} kg CO2e")

        if background_tasks:
            background_tasks.add_task(
                _perform_audit_log,
                actor_address=leg.company_address,
                entity_type="Transportation",
                entity_id=leg.id,
                action=AuditAction.CREATE,
                changes={"distance": leg.distance,
                         "fuel_type": leg.fuel_type.value,
                         "carbon_footprint": leg.carbon_footprint}
            )
        return leg

    def list_by_company(self, company_address: str) -> List[Transportation]:
        return self.session.exec(
            select(Transportation)
            .where(Transportation.company_address == normalize_address(company_address))
            .order_by(Transportation.created_at.desc())
        ).all()
