# tests/test_matching.py
import random
from datetime import datetime, timedelta

import pytest

from group_formation.domain.matching import (
    Proposal,
    assign_fallback,
    priority_key,
    run_deferred_acceptance,
    run_matching,
)
from group_formation.domain.models import (
    FALLBACK,
    ProjectSlot,
    RankedChoice,
    Snapshot,
    StudentPreferences,
)

T0 = datetime(2025, 1, 10, 12, 0)


def student(sid, project_ids, minute=0):
    ts = T0 + timedelta(minutes=minute)
    return StudentPreferences(
        student_id=sid,
        choices=tuple(RankedChoice(pid, rank, ts) for rank, pid in enumerate(project_ids, start=1)),
    )


def snapshot(students, capacities):
    return Snapshot(
        students=tuple(students),
        projects=tuple(ProjectSlot(pid, cap, title=f"P{pid}", team_size=cap) for pid, cap in capacities.items()),
    )


def random_snapshot(seed, n_students=30, n_projects=6):
    rng = random.Random(seed)
    projects = {pid: rng.randint(1, 5) for pid in range(1, n_projects + 1)}
    students = []
    for sid in range(1, n_students + 1):
        k = rng.randint(0, 3)
        students.append(student(sid, rng.sample(sorted(projects), k), minute=rng.randint(0, 500)))
    return snapshot(students, projects)


# -------------------------------
# Concrete scenarios
# -------------------------------

def test_two_projects_four_students():
    # A=1, B=2, C=3, D=4; B submitted first, then A, then C
    A, B, C, D = 1, 2, 3, 4
    snap = snapshot(
        [
            student(A, [1, 2], minute=5),
            student(B, [1], minute=1),
            student(C, [1, 2], minute=9),
            student(D, [2, 1], minute=3),
        ],
        {1: 2, 2: 1},
    )
    result = run_matching(snap)
    by_student = result.by_student()

    assert by_student[A].project_id == 1 and by_student[A].rank_satisfied == 1
    assert by_student[B].project_id == 1 and by_student[B].rank_satisfied == 1
    assert by_student[D].project_id == 2 and by_student[D].rank_satisfied == 1
    assert result.unassigned == (C,)
    assert result.rounds <= 3


def test_overflow_single_project():
    snap = snapshot([student(sid, [1], minute=sid) for sid in range(1, 6)], {1: 2})
    result = run_matching(snap)
    assert [a.student_id for a in result.assignments] == [1, 2]
    assert result.unassigned == (3, 4, 5)


def test_empty_catalog_leaves_everyone_unassigned():
    snap = snapshot([student(1, []), student(2, [])], {})
    result = run_matching(snap)
    assert result.assignments == ()
    assert result.unassigned == (1, 2)


def test_empty_roster():
    result = run_matching(snapshot([], {1: 3}))
    assert result.assignments == ()
    assert result.unassigned == ()


# -------------------------------
# Priority and rank optimality
# -------------------------------

def test_priority_prefers_rank_then_timestamp_then_id():
    early = Proposal(5, 1, 2, T0)
    better_rank = Proposal(9, 1, 1, T0 + timedelta(days=1))
    same_time_low_id = Proposal(4, 1, 2, T0)
    no_time = Proposal(1, 1, 2, None)
    ordered = sorted([no_time, early, better_rank, same_time_low_id], key=priority_key)
    assert [p.student_id for p in ordered] == [9, 4, 5, 1]


def test_uncontested_first_choice_is_granted():
    snap = snapshot(
        [student(1, [1, 2]), student(2, [2, 1]), student(3, [3, 1])],
        {1: 1, 2: 1, 3: 1},
    )
    result = run_matching(snap)
    assert all(a.rank_satisfied == 1 for a in result.assignments)


def test_second_rank_cannot_displace_first_rank():
    # student 2 submitted before student 1 but ranks project 1 second
    snap = snapshot(
        [student(1, [1], minute=10), student(2, [3, 1], minute=5), student(3, [3], minute=0)],
        {1: 1, 3: 1},
    )
    result = run_matching(snap)
    by_student = result.by_student()
    assert by_student[1].project_id == 1
    assert by_student[3].project_id == 3
    assert result.unassigned == (2,)


def test_displaced_student_moves_to_next_choice():
    # 2 loses project 1 on timestamp and takes its second choice in round two
    snap = snapshot(
        [student(1, [1, 2], minute=0), student(2, [1, 2], minute=5)],
        {1: 1, 2: 1},
    )
    result = run_matching(snap)
    by_student = result.by_student()
    assert by_student[2].project_id == 2
    assert by_student[2].rank_satisfied == 2
    assert result.rounds == 2


# -------------------------------
# Fallback
# -------------------------------

def test_students_without_preferences_fill_least_loaded_project():
    snap = snapshot(
        [student(1, [1]), student(2, [1]), student(7, []), student(8, [])],
        {1: 3, 2: 3},
    )
    result = run_matching(snap)
    by_student = result.by_student()
    assert by_student[7].project_id == 2
    assert by_student[7].rank_satisfied == FALLBACK
    assert by_student[8].project_id == 2
    assert result.unassigned == ()


def test_exhausted_students_use_fallback_seats():
    snap = snapshot(
        [student(1, [1], minute=0), student(2, [1], minute=1)],
        {1: 1, 2: 2},
    )
    result = run_matching(snap)
    assert result.by_student()[2].project_id == 2
    assert result.by_student()[2].is_fallback


def test_assign_fallback_orders_by_student_id():
    seated, left = assign_fallback([9, 3, 6], {1: 0}, (ProjectSlot(1, 2),))
    assert [a.student_id for a in seated] == [3, 6]
    assert left == [9]


def test_zero_capacity_project_rejects_everyone():
    snap = snapshot([student(1, [1, 2])], {1: 0, 2: 1})
    result = run_matching(snap)
    assert result.by_student()[1].project_id == 2
    assert result.by_student()[1].rank_satisfied == 2


# -------------------------------
# Invariants over random rosters
# -------------------------------

@pytest.mark.parametrize("seed", range(12))
def test_capacity_and_uniqueness(seed):
    snap = random_snapshot(seed)
    result = run_matching(snap)

    ids = [a.student_id for a in result.assignments] + list(result.unassigned)
    assert sorted(ids) == sorted(snap.student_ids)
    assert len(set(ids)) == len(ids)

    for project_id, members in result.groups().items():
        assert len(members) <= snap.project(project_id).capacity

    # nobody is left out while a seat is free
    if result.unassigned:
        assert len(result.assignments) == snap.total_capacity


@pytest.mark.parametrize("seed", range(12))
def test_no_blocking_pair(seed):
    snap = random_snapshot(seed)
    state = run_deferred_acceptance(snap)
    held = state.held_students()

    for s in snap.students:
        current = held.get(s.student_id)
        current_rank = s.choice_for(current).rank if current else None
        for c in s.choices:
            if current_rank is not None and c.rank >= current_rank:
                continue
            # s prefers project c over its match; the project must be full of
            # proposers it ranks higher
            holders = state.held[c.project_id]
            capacity = snap.project(c.project_id).capacity
            assert len(holders) == capacity
            me = Proposal(s.student_id, c.project_id, c.rank, c.submitted_at)
            assert all(priority_key(h) < priority_key(me) for h in holders)


@pytest.mark.parametrize("seed", range(6))
def test_converges_within_three_rounds(seed):
    result = run_matching(random_snapshot(seed, n_students=60))
    assert result.rounds <= 3


def test_deterministic():
    snap = random_snapshot(42)
    assert run_matching(snap) == run_matching(snap)


def test_input_order_does_not_matter():
    snap = random_snapshot(7)
    shuffled = Snapshot(
        students=tuple(reversed(snap.students)),
        projects=snap.projects,
    )
    a = run_matching(snap)
    b = run_matching(shuffled)
    assert a.assignments == b.assignments
    assert a.unassigned == b.unassigned
