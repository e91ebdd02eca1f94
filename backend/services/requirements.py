"""
Requirement lifecycle service.

Seul écrivain des requerimientos. Chaque opération :
    1. lit l'agrégat complet (store.get)
    2. vérifie TOUTES les préconditions (aucune écriture avant)
    3. reconstruit l'agrégat en mémoire (reconciliation.reconcile)
    4. écrit le document complet + audit dans UNE transaction (CAS sur version)

En cas de ConflictError, l'appelant relit et rejoue l'opération.
"""

from __future__ import annotations

import json
import logging
import secrets
import string
import uuid
from datetime import datetime, timezone
from typing import Callable, Iterable

from sqlalchemy.orm import Session

from backend.app.core.config import ENFORCE_RECEIVED_LE_ASSIGNED, REQUIREMENT_NUMBER_PREFIX
from backend.app.db.models.core_types import (
    AssignmentState,
    RequirementState,
    TERMINAL_REQUIREMENT_STATES,
)
from backend.app.db.models.models_v1 import AuditLog
from backend.app.schemas.commands import (
    AssignmentPatch,
    AssignResponsibleRequest,
    ReceivedQuantity,
    RequirementCreate,
    RequirementFilters,
)
from backend.app.schemas.requirement import (
    Assignment,
    AssignmentLine,
    LineItem,
    Requirement,
    RequirementListItem,
)
from backend.services.errors import (
    InsufficientQuantityError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from backend.services.parties import PartyDirectory
from backend.services.reconciliation import all_lines_completed, compute_summary, reconcile
from backend.services.store import RequirementStore

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.digits + string.ascii_lowercase

# Statuts dont on sort automatiquement dès la première asignación
_AUTO_IN_PROGRESS_FROM = {RequirementState.pending, RequirementState.approved}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_assignment_id(now: datetime) -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    return f"ASG-{int(now.timestamp() * 1000)}-{suffix}"


def format_requirement_number(prefix: str, year: int, sequence: int) -> str:
    return f"{prefix}-{year}-{sequence:04d}"


class RequirementService:
    def __init__(
        self,
        db: Session,
        *,
        store: RequirementStore | None = None,
        parties: PartyDirectory | None = None,
        enforce_received_le_assigned: bool | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.db = db
        self.store = store or RequirementStore(db)
        self.parties = parties or PartyDirectory(db)
        self.enforce_received_le_assigned = (
            ENFORCE_RECEIVED_LE_ASSIGNED
            if enforce_received_le_assigned is None
            else enforce_received_le_assigned
        )
        self._now = clock or _utcnow

    # ---------- Lecture ----------
    def get(self, requirement_id: str) -> Requirement:
        req = self.store.get(requirement_id)
        if req is None:
            raise NotFoundError("Requirement", requirement_id)
        return req

    def list_all(self) -> list[Requirement]:
        return self.store.scan_all()

    def search(self, filters: RequirementFilters) -> list[Requirement]:
        # premier filtre d'égalité côté store, le reste en mémoire
        if filters.state is not None:
            rows = self.store.scan_by_field("state", filters.state)
        elif filters.priority is not None:
            rows = self.store.scan_by_field("priority", filters.priority)
        elif filters.origin is not None:
            rows = self.store.scan_by_field("origin", filters.origin)
        elif filters.customer_id is not None:
            rows = self.store.scan_by_field("customer_id", filters.customer_id)
        else:
            rows = self.store.scan_all()

        return [r for r in rows if _matches(r, filters)]

    def get_by_party(self, party_id: str) -> list[Requirement]:
        return self.search(RequirementFilters(party_id=party_id))

    def list_summaries(self, filters: RequirementFilters | None = None) -> list[RequirementListItem]:
        rows = self.search(filters) if filters is not None else self.list_all()
        return [to_list_item(r) for r in rows]

    # ---------- Création / approbation / annulation ----------
    def create(self, data: RequirementCreate, user_id: str) -> Requirement:
        lines = _build_lines(data)
        now = self._now()

        sequence = self.store.max_sequence(REQUIREMENT_NUMBER_PREFIX, now.year) + 1
        req = Requirement(
            id=uuid.uuid4().hex,
            number=format_requirement_number(REQUIREMENT_NUMBER_PREFIX, now.year, sequence),
            origin=data.origin,
            requester_type=data.requester_type,
            requester_name=data.requester_name,
            quote_id=data.quote_id,
            quote_number=data.quote_number,
            sale_id=data.sale_id,
            sale_number=data.sale_number,
            customer_id=data.customer_id,
            customer_name=data.customer_name,
            lines=lines,
            assignments=[],
            summary=compute_summary(lines, []),
            expectation=data.expectation,
            state=RequirementState.pending,
            priority=data.priority,
            required_by=data.required_by,
            justification=data.justification,
            observations=data.observations,
            requested_by=user_id,
            created_by=user_id,
            created_at=now,
        )

        saved = self._save(req, "create", user_id, {"number": req.number, "lines": len(lines)})
        logger.info(
            "Requirement %s created (%d lines)",
            saved.number,
            len(lines),
            extra={"requirement_id": saved.id, "requirement_number": saved.number, "user_id": user_id},
        )
        return saved

    def approve(self, requirement_id: str, user_id: str) -> Requirement:
        req = self.get(requirement_id)
        if req.state != RequirementState.pending:
            raise InvalidStateError(
                f"Only pending requirements can be approved (state={req.state.value})"
            )

        now = self._now()
        req = req.model_copy(
            update={
                "state": RequirementState.approved,
                "approved_by": user_id,
                "approved_at": now,
                "updated_by": user_id,
                "updated_at": now,
            }
        )
        saved = self._save(req, "approve", user_id)
        logger.info("Requirement %s approved", saved.number, extra={"requirement_id": saved.id})
        return saved

    def cancel(self, requirement_id: str, reason: str, user_id: str) -> Requirement:
        req = self.get(requirement_id)
        if req.state in TERMINAL_REQUIREMENT_STATES:
            raise InvalidStateError(f"Cannot cancel a {req.state.value} requirement")
        reason = _require_reason(reason)

        now = self._now()
        req = req.model_copy(
            update={
                "state": RequirementState.cancelled,
                "cancelled_at": now,
                "cancellation_reason": reason,
                "updated_by": user_id,
                "updated_at": now,
            }
        )
        saved = self._save(req, "cancel", user_id, {"reason": reason})
        logger.info("Requirement %s cancelled", saved.number, extra={"requirement_id": saved.id})
        return saved

    # ---------- Asignaciones ----------
    def assign_responsible(
        self,
        requirement_id: str,
        data: AssignResponsibleRequest,
        user_id: str,
    ) -> Assignment:
        req = self.get(requirement_id)
        if req.state in TERMINAL_REQUIREMENT_STATES:
            raise InvalidStateError(
                f"Cannot assign to a {req.state.value} requirement"
            )

        party = self.parties.get_by_id(data.party_id)
        if party is None:
            raise NotFoundError("Responsible party", data.party_id)

        if not data.lines:
            raise ValidationError("An assignment needs at least one product")

        seen: set[str] = set()
        asg_lines: list[AssignmentLine] = []
        for item in data.lines:
            if item.product_id in seen:
                raise ValidationError(
                    f"Product {item.product_id} appears twice in the assignment",
                    details={"product_id": item.product_id},
                )
            seen.add(item.product_id)

            line = req.line_for(item.product_id)
            if line is None:
                raise ValidationError(
                    f"Product {item.product_id} is not part of requirement {req.number}",
                    details={"product_id": item.product_id},
                )
            if item.quantity <= 0:
                raise ValidationError(
                    f"Assigned quantity must be > 0 for {line.sku}",
                    details={"product_id": item.product_id, "quantity": item.quantity},
                )
            # pending absent (anciens documents) déjà complété à la lecture
            if item.quantity > line.pending:
                raise InsufficientQuantityError(line.product_id, line.sku, line.pending, item.quantity)

            asg_lines.append(
                AssignmentLine(
                    product_id=line.product_id,
                    sku=line.sku,
                    brand=line.brand,
                    name=line.name,
                    assigned=item.quantity,
                    received=0,
                )
            )

        now = self._now()
        assignment = Assignment(
            id=new_assignment_id(now),
            party_id=party.id,
            party_name=party.display_name,
            party_code=party.code,
            is_traveler=party.is_traveler,
            lines=asg_lines,
            state=AssignmentState.pending,
            assigned_at=now,
            estimated_purchase_date=data.estimated_purchase_date,
            estimated_arrival_date=data.estimated_arrival_date or party.next_trip_date,
            estimated_cost_usd=data.estimated_cost_usd,
            notes=data.notes or None,
            assigned_by=user_id,
        )

        state = req.state
        if state in _AUTO_IN_PROGRESS_FROM:
            state = RequirementState.in_progress

        req = reconcile(
            req.model_copy(
                update={
                    "assignments": [*req.assignments, assignment],
                    "state": state,
                    "updated_by": user_id,
                    "updated_at": now,
                }
            )
        )
        saved = self._save(
            req,
            "assign_responsible",
            user_id,
            {
                "assignment_id": assignment.id,
                "party_id": party.id,
                "lines": {ln.product_id: ln.assigned for ln in asg_lines},
            },
        )
        logger.info(
            "Assigned %s to %s (assignment=%s)",
            party.display_name,
            saved.number,
            assignment.id,
            extra={
                "requirement_id": saved.id,
                "requirement_number": saved.number,
                "assignment_id": assignment.id,
                "party_id": party.id,
            },
        )
        return assignment

    def update_assignment(
        self,
        requirement_id: str,
        assignment_id: str,
        patch: AssignmentPatch,
        user_id: str,
        *,
        action: str = "update_assignment",
    ) -> Requirement:
        req = self.get(requirement_id)
        idx = _find_assignment(req, assignment_id)
        current = req.assignments[idx]

        fields = patch.model_fields_set
        target_state = patch.state if "state" in fields and patch.state is not None else None

        if current.state == AssignmentState.cancelled:
            raise InvalidStateError(f"Assignment {assignment_id} is cancelled")
        if (
            current.state == AssignmentState.received
            and target_state is not None
            and target_state != AssignmentState.received
        ):
            if target_state == AssignmentState.cancelled:
                raise InvalidStateError("cannot cancel a received assignment")
            raise InvalidStateError(
                f"Assignment {assignment_id} is received, cannot move to {target_state.value}"
            )
        if target_state == AssignmentState.cancelled:
            # motif obligatoire + note + audit dédié : passer par cancel_assignment
            raise ValidationError(
                "Use cancel_assignment to cancel an assignment (a reason is required)",
                details={"assignment_id": assignment_id},
            )
        if (
            target_state == AssignmentState.received
            and current.state != AssignmentState.received
            and not patch.received_lines
            and not any(ln.received for ln in current.lines)
        ):
            # received sans aucune quantité = assignación bloquée, plus annulable
            raise ValidationError(
                f"Assignment {assignment_id} has no received quantity to close",
                details={"assignment_id": assignment_id},
            )

        now = self._now()
        updates: dict = {
            name: getattr(patch, name)
            for name in fields
            if name not in {"state", "received_lines"}
        }
        if target_state is not None:
            updates["state"] = target_state
        if patch.received_lines:
            updates["lines"] = self._apply_received(current, patch.received_lines)
        if patch.purchase_order_id:
            lines = updates.get("lines", current.lines)
            updates["lines"] = [
                ln.model_copy(update={"purchase_order_id": patch.purchase_order_id}) for ln in lines
            ]
        updates["updated_by"] = user_id
        updates["updated_at"] = now

        updated = current.model_copy(update=updates)
        assignments = list(req.assignments)
        assignments[idx] = updated

        req = reconcile(
            req.model_copy(update={"assignments": assignments, "updated_by": user_id, "updated_at": now})
        )

        if req.state != RequirementState.cancelled and all_lines_completed(req.lines):
            if req.state != RequirementState.completed:
                req = req.model_copy(update={"state": RequirementState.completed, "completed_at": now})

        meta = {"assignment_id": assignment_id, "fields": sorted(fields)}
        if target_state is not None:
            meta["state"] = target_state.value
        saved = self._save(req, action, user_id, meta)

        logger.info(
            "Assignment %s of %s updated (%s)",
            assignment_id,
            saved.number,
            action,
            extra={
                "requirement_id": saved.id,
                "requirement_number": saved.number,
                "assignment_id": assignment_id,
            },
        )
        return saved

    def cancel_assignment(
        self,
        requirement_id: str,
        assignment_id: str,
        reason: str,
        user_id: str,
    ) -> Requirement:
        req = self.get(requirement_id)
        idx = _find_assignment(req, assignment_id)
        current = req.assignments[idx]

        if current.state == AssignmentState.received:
            raise InvalidStateError("cannot cancel a received assignment")
        if current.state == AssignmentState.cancelled:
            raise InvalidStateError(f"Assignment {assignment_id} is already cancelled")
        reason = _require_reason(reason)

        now = self._now()
        notes = f"{current.notes or ''}\n[CANCELLED]: {reason}".strip()
        assignments = list(req.assignments)
        assignments[idx] = current.model_copy(
            update={
                "state": AssignmentState.cancelled,
                "notes": notes,
                "updated_by": user_id,
                "updated_at": now,
            }
        )

        # Pas de retour arrière automatique du statut du requerimiento
        req = reconcile(
            req.model_copy(update={"assignments": assignments, "updated_by": user_id, "updated_at": now})
        )
        returned = {ln.product_id: ln.unreceived for ln in current.lines}
        saved = self._save(
            req,
            "cancel_assignment",
            user_id,
            {"assignment_id": assignment_id, "reason": reason, "returned": returned},
        )
        logger.info(
            "Assignment %s of %s cancelled, returned to pending: %s",
            assignment_id,
            saved.number,
            returned,
            extra={"requirement_id": saved.id, "assignment_id": assignment_id},
        )
        return saved

    # Événements métier nommés (wrappers de update_assignment)
    def link_purchase_order(
        self,
        requirement_id: str,
        assignment_id: str,
        purchase_order_id: str,
        purchase_order_number: str,
        user_id: str,
    ) -> Requirement:
        patch = AssignmentPatch(
            state=AssignmentState.purchased,
            purchase_order_id=purchase_order_id,
            purchase_order_number=purchase_order_number,
            purchased_at=self._now(),
        )
        return self.update_assignment(
            requirement_id, assignment_id, patch, user_id, action="link_purchase_order"
        )

    def link_transfer(
        self,
        requirement_id: str,
        assignment_id: str,
        transfer_id: str,
        transfer_number: str,
        user_id: str,
    ) -> Requirement:
        patch = AssignmentPatch(
            state=AssignmentState.in_transit,
            transfer_id=transfer_id,
            transfer_number=transfer_number,
        )
        return self.update_assignment(
            requirement_id, assignment_id, patch, user_id, action="link_transfer"
        )

    def mark_received(
        self,
        requirement_id: str,
        assignment_id: str,
        received_lines: Iterable[ReceivedQuantity],
        user_id: str,
    ) -> Requirement:
        received_lines = list(received_lines)
        if not received_lines:
            raise ValidationError("A receipt needs at least one received product")
        patch = AssignmentPatch(
            state=AssignmentState.received,
            received_at=self._now(),
            received_lines=received_lines,
        )
        return self.update_assignment(
            requirement_id, assignment_id, patch, user_id, action="mark_received"
        )

    # ---------- Helpers ----------
    def _apply_received(
        self,
        assignment: Assignment,
        received_lines: list[ReceivedQuantity],
    ) -> list[AssignmentLine]:
        by_product = {ln.product_id: ln for ln in received_lines}
        known = {ln.product_id for ln in assignment.lines}
        unknown = sorted(set(by_product) - known)
        if unknown:
            raise ValidationError(
                f"Products {', '.join(unknown)} are not part of assignment {assignment.id}",
                details={"product_ids": unknown},
            )

        lines = []
        for ln in assignment.lines:
            rec = by_product.get(ln.product_id)
            if rec is None:
                lines.append(ln)
                continue
            if self.enforce_received_le_assigned and rec.received_quantity > ln.assigned:
                raise ValidationError(
                    f"Received quantity exceeds assigned quantity for {ln.sku} "
                    f"(assigned={ln.assigned}, received={rec.received_quantity})",
                    details={"product_id": ln.product_id},
                )
            # REMPLACE la valeur stockée (pas d'incrément)
            update = {"received": rec.received_quantity}
            if rec.purchase_price_usd is not None:
                update["purchase_price_usd"] = rec.purchase_price_usd
            lines.append(ln.model_copy(update=update))
        return lines

    def _save(self, req: Requirement, action: str, user_id: str, meta: dict | None = None) -> Requirement:
        try:
            saved = self.store.put(req)
            self.db.add(
                AuditLog(
                    actor_id=user_id,
                    action=action,
                    entity_type="requirement",
                    entity_id=req.id,
                    meta=json.dumps(meta, default=str) if meta else None,
                )
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return saved


# ---------- Fonctions module ----------
def _build_lines(data: RequirementCreate) -> list[LineItem]:
    if not data.lines:
        raise ValidationError("A requirement needs at least one product line")

    seen: set[str] = set()
    lines = []
    for item in data.lines:
        if item.requested_quantity <= 0:
            raise ValidationError(
                f"Requested quantity must be > 0 for {item.sku}",
                details={"product_id": item.product_id, "requested_quantity": item.requested_quantity},
            )
        if item.product_id in seen:
            raise ValidationError(
                f"Product {item.product_id} appears more than once",
                details={"product_id": item.product_id},
            )
        seen.add(item.product_id)

        lines.append(
            LineItem(
                product_id=item.product_id,
                sku=item.sku,
                brand=item.brand,
                name=item.name,
                presentation=item.presentation,
                requested=item.requested_quantity,
                assigned=0,
                received=0,
                pending=item.requested_quantity,
                completed=False,
                estimated_unit_price_usd=item.estimated_unit_price_usd,
                target_sale_price_pen=item.target_sale_price_pen,
            )
        )
    return lines


def _find_assignment(req: Requirement, assignment_id: str) -> int:
    idx = req.assignment_index(assignment_id)
    if idx is None:
        raise NotFoundError("Assignment", assignment_id)
    return idx


def _require_reason(reason: str | None) -> str:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A cancellation reason is required")
    return reason


def _matches(req: Requirement, f: RequirementFilters) -> bool:
    if f.state is not None and req.state != f.state:
        return False
    if f.priority is not None and req.priority != f.priority:
        return False
    if f.origin is not None and req.origin != f.origin:
        return False
    if f.customer_id is not None and req.customer_id != f.customer_id:
        return False
    if f.party_id is not None and not any(a.party_id == f.party_id for a in req.assignments):
        return False
    if f.with_pending_allocation and not any(ln.pending > 0 for ln in req.lines):
        return False
    if f.required_from is not None or f.required_to is not None:
        if req.required_by is None:
            return False
        if f.required_from is not None and req.required_by < f.required_from:
            return False
        if f.required_to is not None and req.required_by > f.required_to:
            return False
    return True


def estimated_cost_usd(req: Requirement) -> float:
    if req.expectation is not None:
        return req.expectation.total_estimated_usd
    return sum((ln.estimated_unit_price_usd or 0) * ln.requested for ln in req.lines)


def to_list_item(req: Requirement) -> RequirementListItem:
    summary = req.summary or compute_summary(req.lines, req.assignments)
    names: list[str] = []
    for a in req.assignments:
        if a.is_active and a.party_name not in names:
            names.append(a.party_name)

    return RequirementListItem(
        id=req.id,
        number=req.number,
        state=req.state,
        priority=req.priority,
        customer_name=req.customer_name,
        total_products=len(req.lines),
        assigned_quantity=summary.total_assigned_quantity,
        received_quantity=summary.total_received_quantity,
        responsible_parties=names,
        created_at=req.created_at,
        required_by=req.required_by,
        estimated_cost_usd=estimated_cost_usd(req),
    )
