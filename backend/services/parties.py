from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from backend.app.db.models.models_v1 import ResponsibleParty


class Party(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    code: str
    is_traveler: bool = False
    next_trip_date: date | None = None


class PartyDirectory:
    """Lecture seule : les CRUD almacenes/viajeros vivent ailleurs."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_by_id(self, party_id: str) -> Party | None:
        row = self.db.get(ResponsibleParty, party_id)
        if not row:
            return None
        return Party(
            id=row.id,
            display_name=row.name,
            code=row.code,
            is_traveler=bool(row.is_traveler),
            next_trip_date=row.next_trip_date,
        )
