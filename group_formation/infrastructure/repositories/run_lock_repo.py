# group_formation/infrastructure/repositories/run_lock_repo.py
"""
Persisted mutual-exclusion token for the assignment run.

A lock is a row keyed by resource name; the primary key makes a second
insert fail, which is how a concurrent holder is detected without waiting.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from group_formation.infrastructure.models import RunLock


def get_lock_repo(db: Session, resource: str) -> Optional[RunLock]:
    return db.execute(select(RunLock).where(RunLock.resource == resource)).scalar_one_or_none()


def purge_stale_lock_repo(db: Session, resource: str, older_than: datetime) -> int:
    res = db.execute(
        delete(RunLock).where(RunLock.resource == resource, RunLock.acquired_at < older_than)
    )
    return res.rowcount or 0


def insert_lock_repo(db: Session, resource: str, token: str, operation: str, acquired_at: datetime) -> RunLock:
    """Flushes immediately so a clash surfaces as IntegrityError here."""
    lock = RunLock(resource=resource, token=token, operation=operation, acquired_at=acquired_at)
    db.add(lock)
    db.flush()
    return lock


def release_lock_repo(db: Session, resource: str, token: str) -> bool:
    res = db.execute(
        delete(RunLock).where(RunLock.resource == resource, RunLock.token == token)
    )
    return bool(res.rowcount)
