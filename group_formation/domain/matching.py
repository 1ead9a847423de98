# group_formation/domain/matching.py
"""
Pure matching logic for preference-based group formation.

Student-proposing deferred acceptance with fixed project capacities,
followed by a deterministic fallback pass for students left without a seat.
Nothing here touches the database; input is a Snapshot, output an
AssignmentResult.

Functions included:
- priority_key
- initial_state
- collect_proposals
- advance_round
- run_deferred_acceptance
- assign_fallback
- run_matching
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Tuple

from group_formation.domain.models import (
    FALLBACK,
    Assignment,
    AssignmentResult,
    ProjectSlot,
    RankedChoice,
    Snapshot,
    StudentPreferences,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Proposal:
    student_id: int
    project_id: int
    rank: int
    submitted_at: Optional[datetime] = None


@dataclass(frozen=True)
class RoundState:
    """
    State between two rounds.

    held: project_id -> proposals currently held, best first
    cursors: student_id -> index of the preference the student proposes next
    """
    held: Mapping[int, Tuple[Proposal, ...]]
    cursors: Mapping[int, int]
    round_no: int = 0

    def held_students(self) -> Dict[int, int]:
        """student_id -> project_id for every held student."""
        return {
            p.student_id: project_id
            for project_id, proposals in self.held.items()
            for p in proposals
        }


def priority_key(proposal: Proposal):
    """
    Order in which a project prefers its proposers.

    Lower declared rank first, then earliest submission, then lowest id.
    A missing timestamp sorts after every real one.

    >>> a = Proposal(student_id=2, project_id=1, rank=1, submitted_at=datetime(2025, 1, 2))
    >>> b = Proposal(student_id=1, project_id=1, rank=1, submitted_at=datetime(2025, 1, 3))
    >>> sorted([b, a], key=priority_key)[0].student_id
    2
    """
    ts = proposal.submitted_at
    return (proposal.rank, ts is None, ts or datetime.min, proposal.student_id)


def initial_state(snapshot: Snapshot) -> RoundState:
    return RoundState(
        held={p.project_id: () for p in snapshot.projects},
        cursors={s.student_id: 0 for s in snapshot.students},
        round_no=0,
    )


def collect_proposals(state: RoundState, students: Tuple[StudentPreferences, ...]) -> List[Proposal]:
    """Every unheld student with a preference left proposes to it."""
    held = state.held_students()
    proposals = []
    for s in students:
        if s.student_id in held:
            continue
        cursor = state.cursors[s.student_id]
        if cursor >= len(s.choices):
            continue
        choice: RankedChoice = s.choices[cursor]
        proposals.append(Proposal(
            student_id=s.student_id,
            project_id=choice.project_id,
            rank=choice.rank,
            submitted_at=choice.submitted_at,
        ))
    return proposals


def advance_round(state: RoundState, proposals: List[Proposal], projects: Tuple[ProjectSlot, ...]) -> RoundState:
    """
    Run one round and return the next state.

    Each project pools what it holds with its new proposers and keeps the best
    `capacity` of them. Rejected students move their cursor one step on.
    """
    capacities = {p.project_id: p.capacity for p in projects}

    incoming: Dict[int, List[Proposal]] = {}
    rejected: List[int] = []
    for prop in proposals:
        if prop.project_id not in capacities:
            rejected.append(prop.student_id)
            continue
        incoming.setdefault(prop.project_id, []).append(prop)

    held: Dict[int, Tuple[Proposal, ...]] = {}
    for project_id, current in state.held.items():
        pool = sorted(list(current) + incoming.get(project_id, []), key=priority_key)
        keep = max(capacities.get(project_id, 0), 0)
        held[project_id] = tuple(pool[:keep])
        rejected.extend(p.student_id for p in pool[keep:])

    cursors = dict(state.cursors)
    for student_id in rejected:
        cursors[student_id] += 1

    return RoundState(held=held, cursors=cursors, round_no=state.round_no + 1)


def run_deferred_acceptance(snapshot: Snapshot) -> RoundState:
    """
    Iterate rounds until nobody proposes.

    With ranks numbered 1, 2, 3 a held student can only be displaced by a
    better-ranked proposer, so the loop ends after at most three rounds. Each
    round consumes at least one preference, which bounds it in any case.
    """
    state = initial_state(snapshot)
    max_rounds = sum(len(s.choices) for s in snapshot.students)

    while True:
        proposals = collect_proposals(state, snapshot.students)
        if not proposals:
            break
        state = advance_round(state, proposals, snapshot.projects)
        logger.debug("round %s: %s proposals", state.round_no, len(proposals))
        if state.round_no > max_rounds:
            raise RuntimeError("deferred acceptance did not converge")

    return state


def assign_fallback(
    student_ids: List[int],
    occupancy: Mapping[int, int],
    projects: Tuple[ProjectSlot, ...],
) -> Tuple[List[Assignment], List[int]]:
    """
    Seat leftover students in ascending id order.

    Each goes to the project with residual capacity and the lowest current
    occupancy, ties broken by project id. Students who find no seat are
    returned as unassigned.

    >>> slots = (ProjectSlot(1, 3), ProjectSlot(2, 3))
    >>> seated, left = assign_fallback([5, 4], {1: 2, 2: 0}, slots)
    >>> [(a.student_id, a.project_id) for a in seated]
    [(4, 2), (5, 2)]
    """
    load = {p.project_id: occupancy.get(p.project_id, 0) for p in projects}
    capacity = {p.project_id: p.capacity for p in projects}

    seated = []
    unassigned = []
    for student_id in sorted(student_ids):
        open_projects = [pid for pid in load if load[pid] < capacity[pid]]
        if not open_projects:
            unassigned.append(student_id)
            continue
        target = min(open_projects, key=lambda pid: (load[pid], pid))
        load[target] += 1
        seated.append(Assignment(student_id=student_id, project_id=target, rank_satisfied=FALLBACK))
    return seated, unassigned


def run_matching(snapshot: Snapshot) -> AssignmentResult:
    """
    Compute the assignment for a snapshot.

    Deterministic: the same snapshot always yields the same result. An empty
    project catalog leaves every student unassigned.
    """
    if not snapshot.projects:
        return AssignmentResult(
            assignments=(),
            unassigned=tuple(sorted(snapshot.student_ids)),
            rounds=0,
        )

    state = run_deferred_acceptance(snapshot)

    matched = []
    for project_id, proposals in state.held.items():
        for p in proposals:
            matched.append(Assignment(student_id=p.student_id, project_id=project_id, rank_satisfied=p.rank))

    matched_ids = {a.student_id for a in matched}
    leftover = [sid for sid in snapshot.student_ids if sid not in matched_ids]
    occupancy = {pid: len(props) for pid, props in state.held.items()}
    seated, unassigned = assign_fallback(leftover, occupancy, snapshot.projects)

    assignments = tuple(sorted(matched + seated, key=lambda a: a.student_id))
    return AssignmentResult(
        assignments=assignments,
        unassigned=tuple(sorted(unassigned)),
        rounds=state.round_no,
    )
