"""
Agrégat Requirement (document complet, tel que stocké).

Les modèles sont figés (frozen) : toute mutation passe par model_copy()
dans RequirementService, jamais par affectation directe.

Compat documents anciens : les champs absents (assigned, pending,
asignaciones...) sont complétés ICI, à la lecture, et nulle part ailleurs.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from backend.app.db.models.core_types import (
    AssignmentState,
    Priority,
    RequesterType,
    RequirementOrigin,
    RequirementState,
)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class LineItem(_Frozen):
    product_id: str
    sku: str
    brand: str = ""
    name: str = ""
    presentation: str | None = None

    requested: int = Field(ge=0)
    assigned: int = 0
    received: int = 0
    pending: int = 0
    completed: bool = False

    # prix de référence (étude de marché)
    estimated_unit_price_usd: float | None = None
    target_sale_price_pen: float | None = None

    @model_validator(mode="before")
    @classmethod
    def _legacy_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("assigned") is None:
            data["assigned"] = 0
        if data.get("received") is None:
            data["received"] = 0
        requested = data.get("requested")
        if isinstance(requested, int):
            if data.get("pending") is None:
                data["pending"] = max(0, requested - data["assigned"])
            if data.get("completed") is None:
                data["completed"] = data["received"] >= requested
        return data


class AssignmentLine(_Frozen):
    product_id: str
    sku: str = ""
    brand: str = ""
    name: str = ""
    assigned: int = Field(ge=0)
    received: int = 0
    purchase_price_usd: float | None = None
    purchase_order_id: str | None = None

    @property
    def unreceived(self) -> int:
        return max(0, self.assigned - self.received)


class Assignment(_Frozen):
    id: str

    # snapshot du responsable au moment de l'assignation
    party_id: str
    party_name: str
    party_code: str
    is_traveler: bool = False

    lines: list[AssignmentLine] = Field(default_factory=list)
    state: AssignmentState = AssignmentState.pending

    assigned_at: datetime
    estimated_purchase_date: date | None = None
    purchased_at: datetime | None = None
    estimated_arrival_date: date | None = None
    received_at: datetime | None = None

    purchase_order_id: str | None = None
    purchase_order_number: str | None = None
    transfer_id: str | None = None
    transfer_number: str | None = None

    estimated_cost_usd: float | None = None
    real_cost_usd: float | None = None
    freight_cost_usd: float | None = None

    notes: str | None = None

    assigned_by: str
    updated_by: str | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.state != AssignmentState.cancelled


class RequirementSummary(_Frozen):
    total_responsible_parties: int = 0
    active_responsible_parties: int = 0
    total_assigned_quantity: int = 0
    total_received_quantity: int = 0
    percent_complete: int = 0


class CostExpectation(_Frozen):
    exchange_rate: float
    estimated_cost_usd: float
    estimated_cost_pen: float
    estimated_tax_usd: float | None = None
    estimated_freight_usd: float | None = None
    total_estimated_usd: float
    total_estimated_pen: float


class Requirement(_Frozen):
    id: str
    number: str
    version: int = 1

    origin: RequirementOrigin = RequirementOrigin.manual
    requester_type: RequesterType = RequesterType.internal
    requester_name: str | None = None

    quote_id: str | None = None
    quote_number: str | None = None
    sale_id: str | None = None
    sale_number: str | None = None
    customer_id: str | None = None
    customer_name: str | None = None

    lines: list[LineItem]
    assignments: list[Assignment] = Field(default_factory=list)
    summary: RequirementSummary | None = None

    expectation: CostExpectation | None = None

    state: RequirementState = RequirementState.pending
    priority: Priority = Priority.normal

    required_by: date | None = None
    justification: str | None = None
    observations: str | None = None

    requested_by: str
    created_by: str
    created_at: datetime
    approved_by: str | None = None
    approved_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    updated_by: str | None = None
    updated_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _legacy_defaults(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("assignments") is None:
            data = dict(data)
            data["assignments"] = []
        return data

    def line_for(self, product_id: str) -> LineItem | None:
        for ln in self.lines:
            if ln.product_id == product_id:
                return ln
        return None

    def assignment_index(self, assignment_id: str) -> int | None:
        for idx, a in enumerate(self.assignments):
            if a.id == assignment_id:
                return idx
        return None

    @property
    def total_requested(self) -> int:
        return sum(ln.requested for ln in self.lines)

    @property
    def total_assigned(self) -> int:
        return sum(ln.assigned for ln in self.lines)


class RequirementListItem(BaseModel):
    """Vue résumée pour les listes."""

    id: str
    number: str
    state: RequirementState
    priority: Priority
    customer_name: str | None = None
    total_products: int
    assigned_quantity: int
    received_quantity: int
    responsible_parties: list[str]
    created_at: datetime
    required_by: date | None = None
    estimated_cost_usd: float
