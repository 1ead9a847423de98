# group_formation/infrastructure/repositories/group_repo.py
from typing import Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, selectinload

from group_formation.domain.models import AssignmentResult, Snapshot
from group_formation.infrastructure.models import GroupMember, StudentGroup, User

# None of these commit: the caller owns the transaction.


def count_groups_repo(db: Session) -> int:
    return db.execute(select(func.count(StudentGroup.id))).scalar_one()


def delete_all_groups_repo(db: Session) -> int:
    """Delete every membership and group. Returns the number of groups removed."""
    existing = count_groups_repo(db)
    db.execute(delete(GroupMember))
    db.execute(delete(StudentGroup))
    return existing


def next_group_number_repo(db: Session) -> int:
    current = db.execute(select(func.max(StudentGroup.group_number))).scalar()
    return (current or 0) + 1


def create_groups_repo(db: Session, result: AssignmentResult, snapshot: Snapshot) -> List[StudentGroup]:
    """
    Insert one group per project that received at least one student.

    The group's capacity is the project's team size at commit time.
    """
    created = []
    number = next_group_number_repo(db)
    for project_id, assignments in result.groups().items():
        slot = snapshot.project(project_id)
        grp = StudentGroup(
            group_number=number,
            group_name=f"Group - {slot.title}" if slot and slot.title else f"Group {number}",
            project_id=project_id,
            capacity=slot.team_size if slot and slot.team_size else len(assignments),
            status="active",
        )
        grp.members = [
            GroupMember(student_id=a.student_id, preference_rank=a.preference_rank)
            for a in assignments
        ]
        db.add(grp)
        created.append(grp)
        number += 1
    db.flush()
    return created


def list_groups_repo(db: Session) -> List[StudentGroup]:
    return list(db.execute(
        select(StudentGroup)
        .options(
            selectinload(StudentGroup.members).selectinload(GroupMember.student),
            selectinload(StudentGroup.project),
        )
        .order_by(StudentGroup.group_number, StudentGroup.id)
    ).scalars().all())


def get_group_repo(db: Session, group_id: int) -> Optional[StudentGroup]:
    return db.execute(
        select(StudentGroup)
        .options(
            selectinload(StudentGroup.members).selectinload(GroupMember.student),
            selectinload(StudentGroup.project),
        )
        .where(StudentGroup.id == group_id)
    ).scalar_one_or_none()


def get_student_names_repo(db: Session, student_ids: List[int]) -> Dict[int, str]:
    if not student_ids:
        return {}
    rows = db.execute(
        select(User.id, User.full_name, User.email).where(User.id.in_(student_ids))
    ).all()
    return {uid: (name or email) for uid, name, email in rows}
