"""
Réconciliation des requerimientos.

Fonctions PURES : aucun accès DB, aucun effet de bord.
Les compteurs des lignes et le résumé sont toujours recalculés depuis
les asignaciones (source de vérité), jamais patchés incrémentalement.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Sequence

from backend.app.schemas.requirement import (
    Assignment,
    LineItem,
    Requirement,
    RequirementSummary,
)


def _totals_by_product(assignments: Iterable[Assignment]) -> tuple[dict[str, int], dict[str, int]]:
    assigned: dict[str, int] = defaultdict(int)
    received: dict[str, int] = defaultdict(int)

    for asg in assignments:
        for ln in asg.lines:
            if asg.is_active:
                assigned[ln.product_id] += ln.assigned
                received[ln.product_id] += ln.received
            else:
                # Asignación annulée : ce qui est déjà arrivé reste acquis,
                # seul le non-reçu retourne au pending.
                kept = max(0, ln.received)
                assigned[ln.product_id] += kept
                received[ln.product_id] += kept

    return assigned, received


def compute_lines(
    lines: Sequence[LineItem],
    assignments: Sequence[Assignment],
) -> list[LineItem]:
    """
    Recalcule les compteurs de chaque ligne.

    Règle métier :
        assigned  = SUM(asignación.assigned) sur asignaciones non annulées
        received  = SUM(asignación.received) sur les mêmes
        pending   = max(0, requested - assigned)
        completed = received >= requested

    Propriétés :
    - déterministe
    - idempotent
    - le résultat REMPLACE les lignes stockées
    """
    assigned, received = _totals_by_product(assignments)

    rebuilt = []
    for ln in lines:
        a = assigned.get(ln.product_id, 0)
        r = received.get(ln.product_id, 0)
        rebuilt.append(
            ln.model_copy(
                update={
                    "assigned": a,
                    "received": r,
                    "pending": max(0, ln.requested - a),
                    "completed": r >= ln.requested,
                }
            )
        )
    return rebuilt


def compute_summary(
    lines: Sequence[LineItem],
    assignments: Sequence[Assignment],
) -> RequirementSummary:
    all_parties = {a.party_id for a in assignments}
    active_parties = {a.party_id for a in assignments if a.is_active}

    total_requested = sum(ln.requested for ln in lines)
    total_assigned = sum(ln.assigned for ln in lines)
    total_received = sum(ln.received for ln in lines)

    return RequirementSummary(
        total_responsible_parties=len(all_parties),
        active_responsible_parties=len(active_parties),
        total_assigned_quantity=total_assigned,
        total_received_quantity=total_received,
        percent_complete=_percent(total_received, total_requested),
    )


def _percent(part: int, total: int) -> int:
    # arrondi "half up" en entiers (pas de surprise float)
    if total <= 0:
        return 0
    return (200 * max(0, part) + total) // (2 * total)


def all_lines_completed(lines: Sequence[LineItem]) -> bool:
    return bool(lines) and all(ln.completed for ln in lines)


def reconcile(requirement: Requirement) -> Requirement:
    """Retourne une copie avec lines + summary recalculés ensemble."""
    lines = compute_lines(requirement.lines, requirement.assignments)
    summary = compute_summary(lines, requirement.assignments)
    return requirement.model_copy(update={"lines": lines, "summary": summary})
