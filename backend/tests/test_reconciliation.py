from datetime import datetime, timezone

from backend.app.db.models.core_types import AssignmentState
from backend.app.schemas.requirement import Assignment, AssignmentLine, LineItem
from backend.services.reconciliation import (
    all_lines_completed,
    compute_lines,
    compute_summary,
)

NOW = datetime(2026, 3, 15, tzinfo=timezone.utc)


def _line(pid: str, requested: int) -> LineItem:
    return LineItem(
        product_id=pid,
        sku=f"SKU-{pid}",
        requested=requested,
        assigned=0,
        received=0,
        pending=requested,
        completed=False,
    )


def _asg(asg_id: str, party: str, state=AssignmentState.pending, **qty) -> Assignment:
    """qty = {product_id: (assigned, received)}"""
    return Assignment(
        id=asg_id,
        party_id=party,
        party_name=party,
        party_code=party,
        lines=[
            AssignmentLine(product_id=pid, assigned=a, received=r)
            for pid, (a, r) in qty.items()
        ],
        state=state,
        assigned_at=NOW,
        assigned_by="tester",
    )


def test_assigned_and_received_are_sums_over_active_assignments():
    lines = [_line("A", 10), _line("B", 4)]
    assignments = [
        _asg("1", "P1", A=(3, 1), B=(2, 2)),
        _asg("2", "P2", state=AssignmentState.in_transit, A=(5, 0)),
        _asg("3", "P1", A=(1, 0)),
    ]

    a, b = compute_lines(lines, assignments)

    assert (a.assigned, a.received, a.pending) == (9, 1, 1)
    assert (b.assigned, b.received, b.pending) == (2, 2, 2)
    assert a.completed is False
    assert b.completed is False


def test_pending_never_negative_when_over_assigned():
    lines = [_line("A", 5)]
    assignments = [_asg("1", "P1", A=(4, 0)), _asg("2", "P2", A=(4, 0))]

    (a,) = compute_lines(lines, assignments)

    assert a.assigned == 8
    assert a.pending == 0


def test_cancelled_assignment_returns_only_unreceived_quantity():
    """
    GIVEN une ligne requested=10, une asignación assigned=10 / received=3
    WHEN l'asignación est annulée
    THEN pending +7, received inchangé
    """
    lines = [_line("A", 10)]
    active = _asg("1", "P1", A=(10, 3))
    cancelled = active.model_copy(update={"state": AssignmentState.cancelled})

    (before,) = compute_lines(lines, [active])
    (after,) = compute_lines(lines, [cancelled])

    assert after.pending - before.pending == 7
    assert after.received == before.received == 3
    assert after.assigned == 3


def test_cancelled_assignment_without_receipt_is_ignored():
    lines = [_line("A", 10)]
    assignments = [_asg("1", "P1", state=AssignmentState.cancelled, A=(6, 0))]

    (a,) = compute_lines(lines, assignments)

    assert (a.assigned, a.received, a.pending) == (0, 0, 10)


def test_line_completed_when_received_reaches_requested():
    lines = [_line("A", 5), _line("B", 2)]
    assignments = [
        _asg("1", "P1", state=AssignmentState.received, A=(5, 5), B=(2, 2)),
    ]

    rebuilt = compute_lines(lines, assignments)

    assert all(ln.completed for ln in rebuilt)
    assert all_lines_completed(rebuilt)


def test_over_receipt_is_tolerated():
    # received > assigned (anciens documents / corrections) : pas d'exception
    lines = [_line("A", 5)]
    assignments = [_asg("1", "P1", A=(2, 6))]

    (a,) = compute_lines(lines, assignments)

    assert a.received == 6
    assert a.completed is True
    assert a.pending == 3


def test_lines_not_referenced_by_any_assignment_are_reset():
    stale = _line("A", 5).model_copy(update={"assigned": 4, "pending": 1, "received": 2})

    (a,) = compute_lines([stale], [])

    assert (a.assigned, a.received, a.pending, a.completed) == (0, 0, 5, False)


def test_compute_lines_does_not_mutate_input():
    lines = [_line("A", 10)]
    compute_lines(lines, [_asg("1", "P1", A=(4, 0))])

    assert lines[0].assigned == 0
    assert lines[0].pending == 10


def test_recompute_is_idempotent():
    lines = [_line("A", 10), _line("B", 3)]
    assignments = [
        _asg("1", "P1", A=(6, 2)),
        _asg("2", "P2", state=AssignmentState.cancelled, A=(4, 1), B=(3, 0)),
    ]

    first = compute_lines(lines, assignments)
    second = compute_lines(first, assignments)

    assert first == second
    assert compute_summary(first, assignments) == compute_summary(second, assignments)


def test_summary_counts_distinct_parties_and_percent():
    assignments = [
        _asg("1", "P1", A=(1, 1)),
        _asg("2", "P1", A=(1, 1)),
        _asg("3", "P2", state=AssignmentState.cancelled, A=(1, 0)),
    ]
    lines = compute_lines([_line("A", 3)], assignments)

    summary = compute_summary(lines, assignments)

    assert summary.total_responsible_parties == 2
    assert summary.active_responsible_parties == 1
    assert summary.total_assigned_quantity == 2
    assert summary.total_received_quantity == 2
    # 2/3 = 66.67 -> 67
    assert summary.percent_complete == 67


def test_summary_percent_rounds_half_up():
    lines = [
        _line("A", 8).model_copy(update={"received": 1}),
    ]
    # 1/8 = 12.5 -> 13
    assert compute_summary(lines, []).percent_complete == 13


def test_summary_with_zero_requested_is_zero_percent():
    lines = [_line("A", 0)]

    summary = compute_summary(lines, [])

    assert summary.percent_complete == 0
    assert summary.total_responsible_parties == 0
