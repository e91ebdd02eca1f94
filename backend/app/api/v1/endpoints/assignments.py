from __future__ import annotations

from fastapi import APIRouter, Depends

from backend.app.api.deps import get_requirement_service, get_user_id
from backend.app.schemas.commands import (
    AssignmentPatch,
    AssignResponsibleRequest,
    CancelRequest,
    LinkPurchaseOrderRequest,
    LinkTransferRequest,
    ReceiptRequest,
)
from backend.app.schemas.requirement import Assignment, Requirement
from backend.services.requirements import RequirementService

router = APIRouter(prefix="/requirements/{requirement_id}/assignments")


@router.post("", response_model=Assignment, status_code=201)
def assign_responsible(
    requirement_id: str,
    payload: AssignResponsibleRequest,
    service: RequirementService = Depends(get_requirement_service),
    user_id: str = Depends(get_user_id),
):
    return service.assign_responsible(requirement_id, payload, user_id)


@router.patch("/{assignment_id}", response_model=Requirement)
def update_assignment(
    requirement_id: str,
    assignment_id: str,
    payload: AssignmentPatch,
    service: RequirementService = Depends(get_requirement_service),
    user_id: str = Depends(get_user_id),
):
    return service.update_assignment(requirement_id, assignment_id, payload, user_id)


@router.post("/{assignment_id}/cancel", response_model=Requirement)
def cancel_assignment(
    requirement_id: str,
    assignment_id: str,
    payload: CancelRequest,
    service: RequirementService = Depends(get_requirement_service),
    user_id: str = Depends(get_user_id),
):
    return service.cancel_assignment(requirement_id, assignment_id, payload.reason, user_id)


@router.post("/{assignment_id}/purchase-order", response_model=Requirement)
def link_purchase_order(
    requirement_id: str,
    assignment_id: str,
    payload: LinkPurchaseOrderRequest,
    service: RequirementService = Depends(get_requirement_service),
    user_id: str = Depends(get_user_id),
):
    return service.link_purchase_order(
        requirement_id,
        assignment_id,
        payload.purchase_order_id,
        payload.purchase_order_number,
        user_id,
    )


@router.post("/{assignment_id}/transfer", response_model=Requirement)
def link_transfer(
    requirement_id: str,
    assignment_id: str,
    payload: LinkTransferRequest,
    service: RequirementService = Depends(get_requirement_service),
    user_id: str = Depends(get_user_id),
):
    return service.link_transfer(
        requirement_id,
        assignment_id,
        payload.transfer_id,
        payload.transfer_number,
        user_id,
    )


@router.post("/{assignment_id}/receipt", response_model=Requirement)
def mark_received(
    requirement_id: str,
    assignment_id: str,
    payload: ReceiptRequest,
    service: RequirementService = Depends(get_requirement_service),
    user_id: str = Depends(get_user_id),
):
    return service.mark_received(requirement_id, assignment_id, payload.lines, user_id)
