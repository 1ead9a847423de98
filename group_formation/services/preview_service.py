# group_formation/services/preview_service.py
"""
Turn an AssignmentResult into the instructor-facing payload with summary
statistics. Pure: reads nothing, writes nothing.
"""
from datetime import datetime
from typing import Dict, List, Optional

from group_formation.domain.models import FALLBACK, AssignmentResult, Snapshot

# weight of each outcome in the satisfaction score
SATISFACTION_WEIGHTS = {1: 100, 2: 66, 3: 33, FALLBACK: 10}


def satisfaction_score(result: AssignmentResult) -> float:
    """
    Weighted average over assigned students, one decimal.

    >>> from group_formation.domain.models import Assignment
    >>> r = AssignmentResult(assignments=(Assignment(1, 1, 1), Assignment(2, 1, 3)))
    >>> satisfaction_score(r)
    66.5
    """
    if not result.assignments:
        return 0.0
    total = sum(SATISFACTION_WEIGHTS.get(a.rank_satisfied, 0) for a in result.assignments)
    return round(total / len(result.assignments), 1)


def project_fill(snapshot: Snapshot, result: AssignmentResult) -> List[Dict]:
    groups = result.groups()
    return [
        {
            "project_id": p.project_id,
            "title": p.title,
            "capacity": p.capacity,
            "filled": len(groups.get(p.project_id, [])),
        }
        for p in snapshot.projects
    ]


def build_stats(snapshot: Snapshot, result: AssignmentResult) -> Dict:
    eligible = len(snapshot.students)
    capacity = snapshot.total_capacity
    return {
        "total_students": eligible,
        "students_with_preferences": sum(1 for s in snapshot.students if s.choices),
        "assigned_students": len(result.assignments),
        "unassigned_students": len(result.unassigned),
        "first_choice": result.count_rank(1),
        "second_choice": result.count_rank(2),
        "third_choice": result.count_rank(3),
        "fallback": result.count_rank(FALLBACK),
        "total_capacity": capacity,
        "capacity_shortfall": max(eligible - capacity, 0),
        "satisfaction_score": satisfaction_score(result),
        "rounds": result.rounds,
        "projects": project_fill(snapshot, result),
    }


def serialize_assignments(result: AssignmentResult, names: Optional[Dict[int, str]] = None) -> List[Dict]:
    names = names or {}
    return [
        {
            "student_id": a.student_id,
            "student_name": names.get(a.student_id),
            "project_id": a.project_id,
            "rank_satisfied": a.rank_satisfied,
        }
        for a in result.assignments
    ]


def build_preview(
    snapshot: Snapshot,
    result: AssignmentResult,
    deadline: Optional[datetime] = None,
    names: Optional[Dict[int, str]] = None,
) -> Dict:
    return {
        "mode": snapshot.mode,
        "assignments": serialize_assignments(result, names),
        "unassigned": list(result.unassigned),
        "groups": {
            str(project_id): [a.student_id for a in members]
            for project_id, members in result.groups().items()
        },
        "stats": build_stats(snapshot, result),
        "preference_deadline": deadline.isoformat() if deadline else None,
    }
