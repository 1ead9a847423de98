# group_formation/domain/models.py
"""
Plain data passed between the snapshot loader, the matching engine and the
preview/commit paths. All of it is immutable; the engine never receives ORM
objects.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple, Union

FULL = "full"
PARTIAL = "partial"
MODES = (FULL, PARTIAL)

FALLBACK = "fallback"

RankSatisfied = Union[int, str]


@dataclass(frozen=True)
class RankedChoice:
    project_id: int
    rank: int
    submitted_at: Optional[datetime] = None


@dataclass(frozen=True)
class StudentPreferences:
    student_id: int
    choices: Tuple[RankedChoice, ...] = ()

    def choice_for(self, project_id: int) -> Optional[RankedChoice]:
        for c in self.choices:
            if c.project_id == project_id:
                return c
        return None


@dataclass(frozen=True)
class ProjectSlot:
    project_id: int
    capacity: int
    title: str = ""
    team_size: Optional[int] = None


@dataclass(frozen=True)
class Snapshot:
    """A point-in-time read of the roster, the catalog and the preferences."""

    students: Tuple[StudentPreferences, ...]
    projects: Tuple[ProjectSlot, ...]
    mode: str = FULL
    taken_at: Optional[datetime] = None

    @property
    def total_capacity(self) -> int:
        return sum(p.capacity for p in self.projects)

    @property
    def student_ids(self) -> List[int]:
        return [s.student_id for s in self.students]

    def project(self, project_id: int) -> Optional[ProjectSlot]:
        for p in self.projects:
            if p.project_id == project_id:
                return p
        return None


@dataclass(frozen=True)
class Assignment:
    student_id: int
    project_id: int
    rank_satisfied: RankSatisfied

    @property
    def is_fallback(self) -> bool:
        return self.rank_satisfied == FALLBACK

    @property
    def preference_rank(self) -> Optional[int]:
        return None if self.is_fallback else int(self.rank_satisfied)


@dataclass(frozen=True)
class AssignmentResult:
    assignments: Tuple[Assignment, ...] = ()
    unassigned: Tuple[int, ...] = ()
    rounds: int = 0

    def by_student(self) -> Dict[int, Assignment]:
        return {a.student_id: a for a in self.assignments}

    def groups(self) -> Dict[int, List[Assignment]]:
        """Assignments bucketed by project id, in ascending project order."""
        out: Dict[int, List[Assignment]] = {}
        for a in sorted(self.assignments, key=lambda a: (a.project_id, a.student_id)):
            out.setdefault(a.project_id, []).append(a)
        return out

    def count_rank(self, rank: RankSatisfied) -> int:
        return sum(1 for a in self.assignments if a.rank_satisfied == rank)
