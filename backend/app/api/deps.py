from __future__ import annotations

from typing import Generator

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from backend.app.db.session import SessionLocal
from backend.services.requirements import RequirementService
from backend.services.statistics import RequirementStatsService


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_user_id(x_user_id: str | None = Header(default=None, alias="X-User-Id")) -> str:
    # TODO: remplacer par l'utilisateur authentifié quand l'auth sera branchée
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    return "system"


def get_requirement_service(db: Session = Depends(get_db)) -> RequirementService:
    return RequirementService(db)


def get_stats_service(db: Session = Depends(get_db)) -> RequirementStatsService:
    return RequirementStatsService(db)
