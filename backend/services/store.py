"""
Stockage documentaire des requerimientos (un document JSON par agrégat).

Contrat :
    get(id)                 -> Requirement | None
    put(requirement)        -> Requirement  (remplacement complet, CAS sur version)
    scan_all()              -> list[Requirement]
    scan_by_field(nom, val) -> list[Requirement]  (égalité uniquement)

Ne fait AUCUN commit : la transaction appartient à l'appelant.
"""

from __future__ import annotations

import enum
import re
from typing import Any, Iterator

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from backend.app.db.models.models_v1 import RequirementRecord
from backend.app.schemas.requirement import Requirement
from backend.services.errors import ConflictError
from backend.services.reconciliation import compute_summary

# Champs dupliqués en colonnes -> filtrés en SQL, les autres en mémoire
INDEXED_FIELDS = {"state", "priority", "number"}


class RequirementStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- lecture ----------
    def get(self, requirement_id: str) -> Requirement | None:
        rec = self.db.get(RequirementRecord, requirement_id)
        if not rec:
            return None
        return self._load(rec)

    def scan_all(self) -> list[Requirement]:
        rows = self.db.execute(
            select(RequirementRecord).order_by(RequirementRecord.created_at.desc())
        ).scalars().all()
        return [self._load(rec) for rec in rows]

    def scan_documents(self) -> Iterator[tuple[str, Any]]:
        """
        Documents bruts, sans validation (lecteurs tolérants : stats).

        id/version ne sont fusionnés que dans un dict : un document corrompu
        (liste, chaîne...) est rendu tel quel, au lecteur de l'ignorer.
        """
        rows = self.db.execute(
            select(RequirementRecord.id, RequirementRecord.version, RequirementRecord.document)
            .order_by(RequirementRecord.created_at.desc())
        ).all()
        for rid, version, document in rows:
            if isinstance(document, dict):
                document = {**document, "id": rid, "version": version}
            yield rid, document

    def scan_by_field(self, name: str, value: Any) -> list[Requirement]:
        if isinstance(value, enum.Enum):
            value = value.value

        if name in INDEXED_FIELDS:
            column = getattr(RequirementRecord, name)
            rows = self.db.execute(
                select(RequirementRecord)
                .where(column == value)
                .order_by(RequirementRecord.created_at.desc())
            ).scalars().all()
            return [self._load(rec) for rec in rows]

        return [
            self._parse(doc)
            for _, doc in self.scan_documents()
            if isinstance(doc, dict) and doc.get(name) == value
        ]

    def max_sequence(self, prefix: str, year: int) -> int:
        pattern = re.compile(rf"^{re.escape(prefix)}-{year}-(\d+)$")
        numbers = self.db.execute(
            select(RequirementRecord.number).where(
                RequirementRecord.number.like(f"{prefix}-{year}-%")
            )
        ).scalars().all()

        best = 0
        for number in numbers:
            m = pattern.match(number or "")
            if m:
                best = max(best, int(m.group(1)))
        return best

    # ---------- écriture ----------
    def put(self, requirement: Requirement) -> Requirement:
        """
        Remplacement complet du document.

        - nouveau document : INSERT en version 1
        - existant : UPDATE ... WHERE version = <version lue>
          0 ligne touchée => quelqu'un a écrit entre-temps => ConflictError
        """
        document = requirement.model_dump(mode="json", exclude={"version"})

        existing = self.db.get(RequirementRecord, requirement.id)
        if existing is None:
            self.db.add(
                RequirementRecord(
                    id=requirement.id,
                    number=requirement.number,
                    state=requirement.state,
                    priority=requirement.priority,
                    version=1,
                    document=document,
                )
            )
            self.db.flush()
            return requirement.model_copy(update={"version": 1})

        result = self.db.execute(
            update(RequirementRecord)
            .where(RequirementRecord.id == requirement.id)
            .where(RequirementRecord.version == requirement.version)
            .values(
                number=requirement.number,
                state=requirement.state,
                priority=requirement.priority,
                version=requirement.version + 1,
                document=document,
            )
            .execution_options(synchronize_session=False)
        )
        # l'objet en identity map est périmé dans les deux cas
        self.db.expire(existing)
        if result.rowcount != 1:
            raise ConflictError(requirement.id, requirement.version)

        return requirement.model_copy(update={"version": requirement.version + 1})

    # ---------- helpers ----------
    @classmethod
    def _load(cls, rec: RequirementRecord) -> Requirement:
        return cls._parse({**(rec.document or {}), "id": rec.id, "version": rec.version})

    @staticmethod
    def _parse(document: dict) -> Requirement:
        req = Requirement.model_validate(document)
        if req.summary is None:
            req = req.model_copy(update={"summary": compute_summary(req.lines, req.assignments)})
        return req
