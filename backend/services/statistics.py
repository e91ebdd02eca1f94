"""
Statistiques requerimientos (lecture seule).

Scan complet de la collection : coûteux, à ne pas appeler sur un chemin chaud.
Un document illisible est loggé puis ignoré, il n'interrompt pas le scan.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from backend.app.db.models.core_types import Priority, RequirementState
from backend.app.schemas.requirement import Requirement
from backend.services.store import RequirementStore

logger = logging.getLogger(__name__)


class PartyRollup(BaseModel):
    party_id: str
    party_name: str
    requirement_count: int
    assigned_quantity: int
    estimated_cost_usd: float


class RequirementStats(BaseModel):
    total: int = 0
    by_state: dict[str, int] = Field(default_factory=lambda: {s.value: 0 for s in RequirementState})
    urgent: int = 0

    unassigned: int = 0
    partially_assigned: int = 0
    fully_assigned: int = 0

    total_estimated_cost_usd: float = 0.0
    total_real_cost_usd: float = 0.0

    by_party: list[PartyRollup] = Field(default_factory=list)
    skipped: int = 0


def compute_stats(documents: Iterable[tuple[str, Any]]) -> RequirementStats:
    """documents = paires (id, document brut) telles que rendues par scan_documents()."""
    stats = RequirementStats()
    parties: dict[str, dict] = {}

    for rid, doc in documents:
        if not isinstance(doc, dict):
            stats.skipped += 1
            logger.warning("Skipping requirement %s: document is %s, not a mapping", rid, type(doc).__name__)
            continue
        try:
            req = Requirement.model_validate(doc)
        except PydanticValidationError as exc:
            stats.skipped += 1
            logger.warning("Skipping malformed requirement %s: %s", rid, exc.errors()[:1])
            continue

        stats.total += 1
        stats.by_state[req.state.value] += 1
        if req.priority == Priority.urgent:
            stats.urgent += 1

        requested = req.total_requested
        assigned = req.total_assigned
        if assigned == 0:
            stats.unassigned += 1
        elif assigned < requested:
            stats.partially_assigned += 1
        else:
            stats.fully_assigned += 1

        if req.expectation is not None:
            stats.total_estimated_cost_usd += req.expectation.total_estimated_usd or 0

        for asg in req.assignments:
            if not asg.is_active:
                continue
            row = parties.setdefault(
                asg.party_id,
                {"name": asg.party_name, "requirements": set(), "quantity": 0, "cost": 0.0},
            )
            row["requirements"].add(req.id)
            row["quantity"] += sum(ln.assigned for ln in asg.lines)
            row["cost"] += asg.estimated_cost_usd or 0
            stats.total_real_cost_usd += asg.real_cost_usd or 0

    stats.by_party = [
        PartyRollup(
            party_id=party_id,
            party_name=row["name"],
            requirement_count=len(row["requirements"]),
            assigned_quantity=row["quantity"],
            estimated_cost_usd=row["cost"],
        )
        for party_id, row in parties.items()
    ]
    return stats


class RequirementStatsService:
    def __init__(self, db: Session, *, store: RequirementStore | None = None) -> None:
        self.store = store or RequirementStore(db)

    def get_stats(self) -> RequirementStats:
        return compute_stats(self.store.scan_documents())
