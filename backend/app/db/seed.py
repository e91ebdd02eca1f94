from __future__ import annotations

import logging
from datetime import date, timedelta

from backend.app.core.logging import configure_logging
from backend.app.db.session import SessionLocal
from backend.app.db.models.models_v1 import ResponsibleParty

logger = logging.getLogger(__name__)


def run_seed():
    db = SessionLocal()
    try:
        # 1) Viajero (prochain voyage dans 3 semaines)
        if not db.get(ResponsibleParty, "VIA-001"):
            db.add(
                ResponsibleParty(
                    id="VIA-001",
                    name="Viajero Miami",
                    code="VIA-001",
                    is_traveler=True,
                    next_trip_date=date.today() + timedelta(days=21),
                    active=True,
                )
            )

        # 2) Almacén USA
        if not db.get(ResponsibleParty, "ALM-USA-01"):
            db.add(
                ResponsibleParty(
                    id="ALM-USA-01",
                    name="Almacén Miami",
                    code="ALM-USA-01",
                    is_traveler=False,
                    active=True,
                )
            )

        db.commit()
        logger.info("SEED OK: parties=VIA-001, ALM-USA-01")
    finally:
        db.close()


if __name__ == "__main__":
    configure_logging()
    run_seed()
