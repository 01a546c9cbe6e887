"""
Shared fixtures: an in-memory database recreated per test, a registered
manufacturer with a plant and a template, and a FakeLedger signing as that
manufacturer.
"""
import os
import tempfile
from datetime import date

# Settings are read at import time, so the environment comes first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["LOG_FILE"] = os.path.join(
    tempfile.gettempdir(), "carbon-provenance-tests.log")
os.environ["CONTRACT_ADDRESS"] = ""
os.environ["LEDGER_PRIVATE_KEY"] = ""

import pytest
from sqlmodel import Session, SQLModel

from app.db import schema  # noqa: F401  (registers the tables)
from app.db.core import engine
from app.db.schema import CompanyType
from app.models.batch import BatchCreate
from app.models.catalog import PlantCreate, ProductTemplateCreate
from app.models.company import CompanyProfile
from app.services.batch import BatchService
from app.services.company import CompanyService
from app.services.plant import PlantService
from app.services.product_template import ProductTemplateService

from tests.fixtures.fake_ledger import FakeLedger


MANUFACTURER = "0x" + "aa" * 20
PARTNER = "0x" + "bb" * 20
OUTSIDER = "0x" + "cc" * 20


@pytest.fixture
def session():
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def company(session):
    return CompanyService(session).register(
        MANUFACTURER,
        CompanyProfile(company_name="Nordic Steel AB",
                       company_type=CompanyType.MANUFACTURER)
    )


@pytest.fixture
def plant(session, company):
    return PlantService(session).create_plant(
        MANUFACTURER,
        PlantCreate(plant_name="Luleå Rolling Mill", plant_code="LUL-01",
                    city="Luleå", country="Sweden")
    )


@pytest.fixture
def template(session, company):
    return ProductTemplateService(session).create_template(
        MANUFACTURER,
        ProductTemplateCreate(
            template_name="Steel coil",
            category="Steel",
            weight=25.0,
            materials=["iron ore"],
            carbon_footprint_per_unit=2.5,
        )
    )


@pytest.fixture
def make_batch(session, plant, template):
    """Factory: make_batch("1001", quantity=100, components=[...])."""
    def _make(batch_number: str = "1001", quantity: int = 100, template_id=None, **extra):
        return BatchService(session).create_batch(
            MANUFACTURER,
            BatchCreate(
                batch_number=batch_number,
                template_id=template_id or template.id,
                plant_id=plant.id,
                quantity=quantity,
                production_date=date(2025, 3, 1),
                **extra
            )
        )
    return _make


@pytest.fixture
def ledger():
    return FakeLedger(signer=MANUFACTURER)
