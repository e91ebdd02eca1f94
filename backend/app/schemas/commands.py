from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field

from backend.app.db.models.core_types import (
    AssignmentState,
    Priority,
    RequesterType,
    RequirementOrigin,
    RequirementState,
)
from backend.app.schemas.requirement import CostExpectation


# ---------- Création ----------
class LineItemCreate(BaseModel):
    """Fiche catalogue fournie telle quelle par l'appelant (jamais relue ensuite)."""

    product_id: str = Field(min_length=1, max_length=64)
    sku: str = Field(min_length=1, max_length=64)
    brand: str = ""
    name: str = ""
    presentation: str | None = None
    # > 0 vérifié par le service (ValidationError métier, pas 422 pydantic)
    requested_quantity: int
    estimated_unit_price_usd: float | None = Field(default=None, ge=0)
    target_sale_price_pen: float | None = Field(default=None, ge=0)


class RequirementCreate(BaseModel):
    origin: RequirementOrigin = RequirementOrigin.manual
    requester_type: RequesterType = RequesterType.internal
    requester_name: str | None = None

    quote_id: str | None = None
    quote_number: str | None = None
    sale_id: str | None = None
    sale_number: str | None = None
    customer_id: str | None = None
    customer_name: str | None = None

    lines: list[LineItemCreate] = Field(default_factory=list)
    expectation: CostExpectation | None = None

    priority: Priority = Priority.normal
    required_by: date | None = None
    justification: str | None = None
    observations: str | None = None


# ---------- Assignation ----------
class AssignedQuantity(BaseModel):
    product_id: str
    quantity: int


class AssignResponsibleRequest(BaseModel):
    party_id: str
    lines: list[AssignedQuantity] = Field(default_factory=list)
    estimated_purchase_date: date | None = None
    estimated_arrival_date: date | None = None
    estimated_cost_usd: float | None = Field(default=None, ge=0)
    notes: str | None = None


class ReceivedQuantity(BaseModel):
    product_id: str
    received_quantity: int = Field(ge=0)
    purchase_price_usd: float | None = Field(default=None, ge=0)


class AssignmentPatch(BaseModel):
    """
    Patch partiel : seuls les champs explicitement fournis sont appliqués
    (model_fields_set), les autres gardent leur valeur.
    received_lines REMPLACE la quantité reçue, n'additionne pas.
    """

    state: AssignmentState | None = None
    purchased_at: datetime | None = None
    estimated_arrival_date: date | None = None
    received_at: datetime | None = None
    purchase_order_id: str | None = None
    purchase_order_number: str | None = None
    transfer_id: str | None = None
    transfer_number: str | None = None
    real_cost_usd: float | None = Field(default=None, ge=0)
    freight_cost_usd: float | None = Field(default=None, ge=0)
    notes: str | None = None
    received_lines: list[ReceivedQuantity] | None = None


class CancelRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class LinkPurchaseOrderRequest(BaseModel):
    purchase_order_id: str = Field(min_length=1)
    purchase_order_number: str = Field(min_length=1)


class LinkTransferRequest(BaseModel):
    transfer_id: str = Field(min_length=1)
    transfer_number: str = Field(min_length=1)


class ReceiptRequest(BaseModel):
    lines: list[ReceivedQuantity] = Field(default_factory=list)


# ---------- Recherche ----------
class RequirementFilters(BaseModel):
    state: RequirementState | None = None
    priority: Priority | None = None
    origin: RequirementOrigin | None = None
    customer_id: str | None = None
    party_id: str | None = None
    with_pending_allocation: bool = False
    required_from: date | None = None
    required_to: date | None = None
