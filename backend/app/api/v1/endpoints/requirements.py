from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends

from backend.app.api.deps import get_requirement_service, get_stats_service, get_user_id
from backend.app.db.models.core_types import Priority, RequirementOrigin, RequirementState
from backend.app.schemas.commands import CancelRequest, RequirementCreate, RequirementFilters
from backend.app.schemas.requirement import Requirement, RequirementListItem
from backend.services.requirements import RequirementService
from backend.services.statistics import RequirementStats, RequirementStatsService

router = APIRouter(prefix="/requirements")


def _filters(
    state: RequirementState | None = None,
    priority: Priority | None = None,
    origin: RequirementOrigin | None = None,
    customer_id: str | None = None,
    party_id: str | None = None,
    with_pending_allocation: bool = False,
    required_from: date | None = None,
    required_to: date | None = None,
) -> RequirementFilters:
    return RequirementFilters(
        state=state,
        priority=priority,
        origin=origin,
        customer_id=customer_id,
        party_id=party_id,
        with_pending_allocation=with_pending_allocation,
        required_from=required_from,
        required_to=required_to,
    )


@router.get("", response_model=list[Requirement])
def list_requirements(
    filters: RequirementFilters = Depends(_filters),
    service: RequirementService = Depends(get_requirement_service),
):
    return service.search(filters)


@router.get("/summaries", response_model=list[RequirementListItem])
def list_summaries(
    filters: RequirementFilters = Depends(_filters),
    service: RequirementService = Depends(get_requirement_service),
):
    return service.list_summaries(filters)


@router.get("/stats", response_model=RequirementStats)
def get_stats(service: RequirementStatsService = Depends(get_stats_service)):
    """
    Statistiques globales (scan complet de la collection).
    - endpoint dédié, ne pas appeler depuis les écrans de liste
    """
    return service.get_stats()


@router.post("", response_model=Requirement, status_code=201)
def create_requirement(
    payload: RequirementCreate,
    service: RequirementService = Depends(get_requirement_service),
    user_id: str = Depends(get_user_id),
):
    return service.create(payload, user_id)


@router.get("/{requirement_id}", response_model=Requirement)
def get_requirement(
    requirement_id: str,
    service: RequirementService = Depends(get_requirement_service),
):
    return service.get(requirement_id)


@router.post("/{requirement_id}/approve", response_model=Requirement)
def approve_requirement(
    requirement_id: str,
    service: RequirementService = Depends(get_requirement_service),
    user_id: str = Depends(get_user_id),
):
    return service.approve(requirement_id, user_id)


@router.post("/{requirement_id}/cancel", response_model=Requirement)
def cancel_requirement(
    requirement_id: str,
    payload: CancelRequest,
    service: RequirementService = Depends(get_requirement_service),
    user_id: str = Depends(get_user_id),
):
    return service.cancel(requirement_id, payload.reason, user_id)
