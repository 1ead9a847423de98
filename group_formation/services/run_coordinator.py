# group_formation/services/run_coordinator.py
"""
Lifecycle of an assignment run: preview, commit, clear.

Previews are read-only and run freely. Commit and clear take the persisted
"assignment_run" lock without waiting; a second caller gets
ConcurrentRunError right away. The preference deadline is not checked here,
so an instructor can re-run after the window closes.
"""
import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError, OperationalError

from group_formation.config.settings import settings
from group_formation.domain.errors import ConcurrentRunError, GroupFormationError
from group_formation.domain.matching import run_matching
from group_formation.domain.models import FULL, MODES, PARTIAL
from group_formation.infrastructure.db.session import SessionLocal
from group_formation.infrastructure.repositories import (
    group_repo,
    run_lock_repo,
    settings_repo,
    snapshot_repo,
)
from group_formation.services import commit_service
from group_formation.services.preview_service import build_preview

logger = logging.getLogger(__name__)

ASSIGNMENT_RUN = "assignment_run"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _check_mode(mode: str):
    if mode not in MODES:
        raise ValueError(f"Unknown assignment mode: {mode!r} (expected one of {', '.join(MODES)})")


def _is_busy(exc: OperationalError) -> bool:
    """True when the store refused a write because another transaction holds it."""
    return "locked" in str(exc.orig).lower()


def serialize_group(group) -> Dict:
    members = [
        {
            "student_id": m.student_id,
            "student_name": (m.student.full_name or m.student.email) if m.student else None,
            "preference_rank": m.preference_rank,
        }
        for m in group.members
    ]
    return {
        "id": group.id,
        "group_number": group.group_number,
        "name": group.group_name,
        "project_id": group.project_id,
        "project_title": group.project.title if group.project else None,
        "capacity": group.capacity,
        "status": group.status,
        "created_at": str(group.created_at),
        "members": members,
        "member_count": len(members),
    }


class RunCoordinator:
    def __init__(
        self,
        session_factory=None,
        resource: str = ASSIGNMENT_RUN,
        lock_ttl_seconds: Optional[int] = None,
        isolation_level: Optional[str] = settings.COMMIT_ISOLATION_LEVEL,
    ):
        self.session_factory = session_factory or SessionLocal
        self.resource = resource
        if lock_ttl_seconds is None:
            lock_ttl_seconds = settings.RUN_LOCK_TTL_SECONDS
        self.lock_ttl = timedelta(seconds=lock_ttl_seconds)
        self.isolation_level = isolation_level

    # ----------------------------
    # Run lock
    # ----------------------------

    def acquire(self, operation: str) -> str:
        """Take the run lock or raise ConcurrentRunError. Returns the holder token."""
        token = uuid.uuid4().hex
        now = _utcnow()
        stale_before = now - self.lock_ttl
        try:
            with self.session_factory.begin() as db:
                # read before writing: a writer mid-commit does not block readers
                lock = run_lock_repo.get_lock_repo(db, self.resource)
                if lock is not None and lock.acquired_at >= stale_before:
                    raise ConcurrentRunError(self.resource, held_by=lock.operation)
                if lock is not None:
                    db.expunge(lock)
                    run_lock_repo.purge_stale_lock_repo(db, self.resource, stale_before)
                    logger.warning("Reclaimed stale %s lock older than %s", self.resource, self.lock_ttl)
                run_lock_repo.insert_lock_repo(db, self.resource, token, operation, now)
        except ConcurrentRunError as e:
            logger.warning("Rejected %s: %s held by %s", operation, self.resource, e.held_by)
            raise
        except IntegrityError:
            self._reject(operation)
        except OperationalError as e:
            if not _is_busy(e):
                raise
            self._reject(operation)
        logger.debug("Acquired %s lock for %s", self.resource, operation)
        return token

    def _reject(self, operation: str):
        try:
            held_by = self.current_holder()
        except OperationalError:
            held_by = None
        logger.warning("Rejected %s: %s held by %s", operation, self.resource, held_by)
        raise ConcurrentRunError(self.resource, held_by=held_by) from None

    def release(self, token: str) -> bool:
        with self.session_factory.begin() as db:
            released = run_lock_repo.release_lock_repo(db, self.resource, token)
        if not released:
            logger.warning("%s lock was no longer held by this run", self.resource)
        return released

    def current_holder(self) -> Optional[str]:
        with self.session_factory() as db:
            lock = run_lock_repo.get_lock_repo(db, self.resource)
            return lock.operation if lock else None

    @contextmanager
    def hold(self, operation: str):
        token = self.acquire(operation)
        try:
            yield token
        finally:
            self.release(token)

    # ----------------------------
    # Operations
    # ----------------------------

    def preview_assignment(self, mode: str = FULL) -> Dict:
        """Run the engine on the current snapshot without writing anything."""
        _check_mode(mode)
        with self.session_factory() as db:
            snapshot = snapshot_repo.load_snapshot(db, mode)
            deadline = settings_repo.get_preference_deadline_repo(db)
            names = group_repo.get_student_names_repo(db, snapshot.student_ids)

        result = run_matching(snapshot)
        logger.info(
            "Preview (%s): %s assigned, %s unassigned",
            mode, len(result.assignments), len(result.unassigned),
        )
        return build_preview(snapshot, result, deadline=deadline, names=names)

    def commit_assignment(self, mode: str = FULL) -> Dict:
        """
        Recompute and persist groups in one transaction.

        Raises ConcurrentRunError if another commit/clear is running and
        NoEligibleProjectsError if no approved project has room.
        """
        _check_mode(mode)
        with self.hold("commit"):
            try:
                with self.session_factory() as db, db.begin():
                    self._set_isolation(db)
                    return commit_service.commit(db, mode)
            except GroupFormationError as e:
                logger.warning("Commit (%s) aborted: %s", mode, e)
                raise
            except Exception:
                logger.exception("Commit (%s) failed and was rolled back", mode)
                raise

    def clear_assignment(self) -> Dict:
        with self.hold("clear"):
            try:
                with self.session_factory() as db, db.begin():
                    return commit_service.clear(db)
            except Exception:
                logger.exception("Clear failed and was rolled back")
                raise

    def list_groups(self) -> List[Dict]:
        with self.session_factory() as db:
            return [serialize_group(g) for g in group_repo.list_groups_repo(db)]

    def list_unassigned_students(self) -> List[Dict]:
        """Active students with no committed group, i.e. who a partial run would place."""
        with self.session_factory() as db:
            student_ids = snapshot_repo.get_eligible_student_ids_repo(db, PARTIAL)
            names = group_repo.get_student_names_repo(db, student_ids)
        return [{"student_id": sid, "student_name": names.get(sid)} for sid in student_ids]

    def get_group(self, group_id: int) -> Optional[Dict]:
        with self.session_factory() as db:
            g = group_repo.get_group_repo(db, group_id)
            return serialize_group(g) if g else None

    def _set_isolation(self, db):
        if self.isolation_level:
            # must be the first use of the connection in this transaction
            db.connection(execution_options={"isolation_level": self.isolation_level})
