from __future__ import annotations

from datetime import datetime, date, timezone

from sqlalchemy import (
    JSON,
    String,
    Integer,
    DateTime,
    Date,
    Boolean,
    Text,
    Enum,
    Index,
    CheckConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.db.base import Base
from backend.app.db.models.core_types import RequirementState, Priority


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# JSONB en Postgres, JSON ailleurs (sqlite pour les tests)
DocumentType = JSON().with_variant(JSONB(), "postgresql")


# ---------- MASTER DATA ----------
class ResponsibleParty(Base):
    """Almacén ou viajero capable de ramener une partie d'un requerimiento."""

    __tablename__ = "responsible_parties"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    is_traveler: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    next_trip_date: Mapped[date | None] = mapped_column(Date)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


# ---------- REQUIREMENTS ----------
class RequirementRecord(Base):
    """
    Un requerimiento = UN document JSON (agrégat complet).

    Les colonnes hors `document` sont des copies indexables,
    réécrites à chaque put() depuis le document.
    """

    __tablename__ = "requirements"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    state: Mapped[RequirementState] = mapped_column(
        Enum(RequirementState, name="requirement_state", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    priority: Mapped[Priority] = mapped_column(
        Enum(Priority, name="requirement_priority", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    document: Mapped[dict] = mapped_column(DocumentType, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("version >= 1", name="ck_requirement_version_pos"),
        Index("ix_requirements_state", "state"),
    )


# ---------- AUDIT ----------
class AuditLog(Base):
    __tablename__ = "audit_log"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_id: Mapped[str | None] = mapped_column(String(64))
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    meta: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (Index("ix_audit_entity", "entity_type", "entity_id"),)
