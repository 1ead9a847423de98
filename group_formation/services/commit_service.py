# group_formation/services/commit_service.py
"""
Persist a freshly computed assignment as groups, or clear all groups.

Both functions expect to run inside a transaction owned by the caller and
never commit themselves; the caller rolls back on any exception, so a failed
commit leaves the previously committed groups untouched.
"""
import logging
from typing import Dict

from sqlalchemy.orm import Session

from group_formation.domain.errors import NoEligibleProjectsError
from group_formation.domain.matching import run_matching
from group_formation.domain.models import FULL
from group_formation.infrastructure.repositories import group_repo, snapshot_repo

logger = logging.getLogger(__name__)


def commit(db: Session, mode: str = FULL) -> Dict:
    """
    Re-read the snapshot, re-run the engine and write the result.

    full: every existing group is replaced.
    partial: only students without a group are matched, into new groups,
    against the capacity their projects have left.
    """
    snapshot = snapshot_repo.load_snapshot(db, mode)
    if not snapshot.projects or snapshot.total_capacity == 0:
        raise NoEligibleProjectsError()

    result = run_matching(snapshot)

    deleted = 0
    if mode == FULL:
        deleted = group_repo.delete_all_groups_repo(db)

    created = group_repo.create_groups_repo(db, result, snapshot)

    if result.unassigned:
        logger.warning("%s students left unassigned: capacity ran out", len(result.unassigned))
    logger.info(
        "Committed %s assignment: %s groups created, %s replaced, %s students placed",
        mode, len(created), deleted, len(result.assignments),
    )
    return {
        "mode": mode,
        "groups_created": len(created),
        "groups_deleted": deleted,
        "assigned": len(result.assignments),
        "unassigned": list(result.unassigned),
    }


def clear(db: Session) -> Dict:
    deleted = group_repo.delete_all_groups_repo(db)
    logger.info("Cleared %s groups", deleted)
    return {"groups_deleted": deleted}
