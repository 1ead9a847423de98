# group_formation/infrastructure/repositories/snapshot_repo.py
"""
Read the roster, the approved catalog and the ranked preferences into an
immutable Snapshot. No matching logic lives here.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from group_formation.config.settings import settings
from group_formation.domain.errors import DataIntegrityError
from group_formation.domain.models import (
    FULL,
    MODES,
    PARTIAL,
    ProjectSlot,
    RankedChoice,
    Snapshot,
    StudentPreferences,
)
from group_formation.infrastructure.models import (
    GroupMember, Project, StudentGroup, StudentPreference, User
)

logger = logging.getLogger(__name__)


def _naive_utc(ts: Optional[datetime]) -> Optional[datetime]:
    if ts is None or ts.tzinfo is None:
        return ts
    return ts.astimezone(timezone.utc).replace(tzinfo=None)


def get_eligible_student_ids_repo(db: Session, mode: str = FULL) -> List[int]:
    stmt = (
        select(User.id)
        .where(User.role == "student", User.status == "active")
        .order_by(User.id)
    )
    if mode == PARTIAL:
        stmt = stmt.where(~User.id.in_(select(GroupMember.student_id)))
    return list(db.execute(stmt).scalars().all())


def get_committed_counts_repo(db: Session) -> Dict[int, int]:
    """project_id -> number of students already committed to it."""
    rows = db.execute(
        select(StudentGroup.project_id, func.count(GroupMember.id))
        .join(GroupMember, GroupMember.group_id == StudentGroup.id)
        .where(StudentGroup.project_id.is_not(None))
        .group_by(StudentGroup.project_id)
    ).all()
    return {project_id: count for project_id, count in rows}


def get_project_slots_repo(db: Session, mode: str = FULL) -> List[ProjectSlot]:
    projects = db.execute(
        select(Project)
        .where(Project.approval_status == "approved")
        .order_by(Project.id)
    ).scalars().all()

    committed = get_committed_counts_repo(db) if mode == PARTIAL else {}

    slots = []
    for p in projects:
        if p.team_size is None or p.team_size < 1:
            raise DataIntegrityError(f"project {p.id} has invalid team_size {p.team_size!r}")
        residual = max(p.team_size - committed.get(p.id, 0), 0)
        slots.append(ProjectSlot(
            project_id=p.id,
            capacity=residual,
            title=p.title,
            team_size=p.team_size,
        ))
    return slots


def get_preferences_repo(db: Session, student_ids: List[int]) -> Dict[int, List[StudentPreference]]:
    if not student_ids:
        return {}
    rows = db.execute(
        select(StudentPreference)
        .where(StudentPreference.student_id.in_(student_ids))
        .order_by(StudentPreference.student_id, StudentPreference.rank_order, StudentPreference.id)
    ).scalars().all()
    out: Dict[int, List[StudentPreference]] = {}
    for row in rows:
        out.setdefault(row.student_id, []).append(row)
    return out


def _validate_preferences(student_id: int, rows: List[StudentPreference], approved: Dict[int, ProjectSlot], known: Dict[int, str]):
    seen_ranks = set()
    seen_projects = set()
    for row in rows:
        if not 1 <= row.rank_order <= settings.MAX_PREFERENCES:
            raise DataIntegrityError(
                f"rank {row.rank_order} outside 1..{settings.MAX_PREFERENCES}", student_id=student_id
            )
        if row.rank_order in seen_ranks:
            raise DataIntegrityError(f"duplicate rank {row.rank_order}", student_id=student_id)
        if row.project_id in seen_projects:
            raise DataIntegrityError(f"project {row.project_id} ranked twice", student_id=student_id)
        if row.project_id not in known:
            raise DataIntegrityError(f"preference references missing project {row.project_id}", student_id=student_id)
        if row.project_id not in approved:
            raise DataIntegrityError(
                f"preference references project {row.project_id} with status {known[row.project_id]!r}",
                student_id=student_id,
            )
        seen_ranks.add(row.rank_order)
        seen_projects.add(row.project_id)


def load_snapshot(db: Session, mode: str = FULL) -> Snapshot:
    """
    Read a snapshot for one matching run.

    full: every active student, full team sizes.
    partial: only students without a committed group, and each project's
    capacity reduced by the members it already has.

    Raises DataIntegrityError for dangling, unapproved, duplicate or
    out-of-range preferences instead of dropping them.
    """
    if mode not in MODES:
        raise ValueError(f"Unknown assignment mode: {mode!r}")

    student_ids = get_eligible_student_ids_repo(db, mode)
    slots = get_project_slots_repo(db, mode)
    approved = {s.project_id: s for s in slots}
    prefs = get_preferences_repo(db, student_ids)

    referenced = {row.project_id for rows in prefs.values() for row in rows}
    known = {}
    if referenced:
        known = dict(db.execute(
            select(Project.id, Project.approval_status).where(Project.id.in_(referenced))
        ).all())

    students = []
    for sid in student_ids:
        rows = prefs.get(sid, [])
        _validate_preferences(sid, rows, approved, known)
        choices = tuple(
            RankedChoice(
                project_id=row.project_id,
                rank=row.rank_order,
                submitted_at=_naive_utc(row.submitted_at),
            )
            for row in rows
        )
        students.append(StudentPreferences(student_id=sid, choices=choices))

    snapshot = Snapshot(
        students=tuple(students),
        projects=tuple(slots),
        mode=mode,
        taken_at=datetime.now(timezone.utc).replace(tzinfo=None),
    )
    logger.info(
        "Loaded %s snapshot: %s students, %s projects, capacity %s",
        mode, len(snapshot.students), len(snapshot.projects), snapshot.total_capacity,
    )
    return snapshot
