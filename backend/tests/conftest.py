import os

# avant tout import backend.* (session.py lit DATABASE_URL à l'import)
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from datetime import date, datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from backend.app.db.base import Base
from backend.app.db.models import models_v1  # noqa: F401  (tables)
from backend.app.db.models.models_v1 import ResponsibleParty
from backend.app.schemas.commands import LineItemCreate, RequirementCreate
from backend.services.requirements import RequirementService

FIXED_NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)
TRAVELER_TRIP = date(2026, 4, 2)


@pytest.fixture(scope="function")
def engine():
    """
    Base SQLite en mémoire, schéma recréé pour CHAQUE test.

    StaticPool = une seule connexion partagée (sinon chaque connexion
    verrait une base :memory: vide).
    """
    eng = create_engine(
        os.getenv("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:"),
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        Base.metadata.drop_all(bind=eng)
        eng.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def parties(db_session):
    """Un viajero (avec prochain voyage) et un almacén."""
    db_session.add_all(
        [
            ResponsibleParty(
                id="VIA-001",
                name="Viajero Miami",
                code="VIA-001",
                is_traveler=True,
                next_trip_date=TRAVELER_TRIP,
            ),
            ResponsibleParty(
                id="ALM-USA-01",
                name="Almacén Miami",
                code="ALM-USA-01",
                is_traveler=False,
            ),
        ]
    )
    db_session.commit()
    return {"traveler": "VIA-001", "warehouse": "ALM-USA-01"}


@pytest.fixture
def service(db_session, parties) -> RequirementService:
    return RequirementService(db_session, clock=lambda: FIXED_NOW)


def line(product_id: str, qty: int, **extra) -> LineItemCreate:
    return LineItemCreate(
        product_id=product_id,
        sku=f"SKU-{product_id}",
        brand="Brand",
        name=f"Product {product_id}",
        requested_quantity=qty,
        **extra,
    )


@pytest.fixture
def make_requirement(service):
    def _make(*lines: LineItemCreate, **fields):
        data = RequirementCreate(lines=list(lines) or [line("A", 10)], **fields)
        return service.create(data, "tester")

    return _make
