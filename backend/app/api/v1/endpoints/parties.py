from __future__ import annotations

from fastapi import APIRouter, Depends

from backend.app.api.deps import get_requirement_service
from backend.app.schemas.requirement import RequirementListItem
from backend.services.requirements import RequirementService, to_list_item

router = APIRouter(prefix="/parties")


@router.get("/{party_id}/requirements", response_model=list[RequirementListItem])
def list_party_requirements(
    party_id: str,
    service: RequirementService = Depends(get_requirement_service),
):
    return [to_list_item(r) for r in service.get_by_party(party_id)]
