import os

from loguru import logger
from sqlmodel import Session, SQLModel, select
from app.db.core import engine
from app.db.schema import (
    Company, CompanyType, CompanyScale, Plant, ProductTemplate
)


# 1. Demo manufacturer (override with SEED_WALLET_ADDRESS)
DEMO_WALLET = os.getenv(
    "SEED_WALLET_ADDRESS", "0x5b38da6a701c568545dcfcb03fcb875f56beddc4").lower()

DEMO_COMPANY = {
    "company_name": "Nordic Steel AB",
    "company_type": CompanyType.MANUFACTURER,
    "company_scale": CompanyScale.MEDIUM,
    "company_address": "Industrigatan 4",
    "company_email": "ops@nordicsteel.example",
}

# 2. Demo plant
DEMO_PLANT = {
    "plant_name": "Luleå Rolling Mill",
    "plant_code": "LUL-01",
    "city": "Luleå",
    "country": "Sweden",
    "latitude": 65.5848,
    "longitude": 22.1567,
}

# 3. Demo templates (kg CO2e per unit)
DEMO_TEMPLATES = [
    {
        "template_name": "Hot-rolled steel coil 2mm",
        "category": "Steel",
        "weight": 25.0,
        "materials": ["iron ore", "coke"],
        "carbon_footprint_per_unit": 47.5,
        "is_raw_material": True,
    },
    {
        "template_name": "Bicycle frame",
        "category": "Components",
        "weight": 2.1,
        "materials": ["steel"],
        "carbon_footprint_per_unit": 12.0,
        "is_raw_material": False,
    },
]


def seed_company(session: Session) -> Company:
    logger.info("--- Seeding Company ---")
    company = session.exec(
        select(Company).where(Company.wallet_address == DEMO_WALLET)).first()
    if not company:
        company = Company(wallet_address=DEMO_WALLET, **DEMO_COMPANY)
        session.add(company)
        session.flush()
        logger.info(f"Created Company: {company.company_name}")
    else:
        logger.info(f"Existing Company: {company.company_name}")
    return company


def seed_plant(session: Session, company: Company) -> Plant:
    logger.info("--- Seeding Plant ---")
    plant = session.exec(select(Plant).where(
        Plant.company_address == company.wallet_address,
        Plant.plant_code == DEMO_PLANT["plant_code"])).first()
    if not plant:
        plant = Plant(company_address=company.wallet_address, **DEMO_PLANT)
        session.add(plant)
        session.flush()
        logger.info(f"Created Plant: {plant.plant_code}")
    return plant


def seed_templates(session: Session, company: Company):
    logger.info("--- Seeding Templates ---")
    owned = list(company.product_template_ids)

    for data in DEMO_TEMPLATES:
        template = session.exec(select(ProductTemplate).where(
            ProductTemplate.manufacturer_address == company.wallet_address,
            ProductTemplate.template_name == data["template_name"])).first()
        if not template:
            template = ProductTemplate(
                manufacturer_address=company.wallet_address, **data)
            session.add(template)
            session.flush()
            logger.info(f"Created Template: {template.template_name}")

        if str(template.id) not in owned:
            owned.append(str(template.id))

    # Reassign so the JSON column is flagged dirty
    company.product_template_ids = owned
    session.add(company)


def main():
    # Ensure tables exist (if not using Alembic)
    SQLModel.metadata.create_all(engine)

    with Session(engine) as session:
        try:
            company = seed_company(session)
            seed_plant(session, company)
            seed_templates(session, company)

            session.commit()
            logger.info("Database seeding completed successfully.")

        except Exception as e:
            session.rollback()
            logger.error(f"Seeding failed: {e}")
            raise e


if __name__ == "__main__":
    main()
