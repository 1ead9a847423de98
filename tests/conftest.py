# tests/conftest.py
from datetime import datetime, timedelta

import pytest

from group_formation.infrastructure import models
from group_formation.infrastructure.db.session import Base, make_engine, make_session_factory
from group_formation.services.run_coordinator import RunCoordinator

T0 = datetime(2025, 1, 10, 12, 0)


@pytest.fixture
def engine():
    eng = make_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def coordinator(session_factory):
    return RunCoordinator(session_factory)


class Roster:
    """Small helper to seed users, projects and preferences."""

    def __init__(self, session_factory):
        self.session_factory = session_factory
        self._n = 0

    def student(self, name=None, status="active"):
        with self.session_factory.begin() as db:
            self._n += 1
            u = models.User(
                email=f"s{self._n}@example.edu",
                full_name=name or f"Student {self._n}",
                role="student",
                status=status,
            )
            db.add(u)
            db.flush()
            return u.id

    def project(self, title="Project", team_size=4, approval_status="approved"):
        with self.session_factory.begin() as db:
            p = models.Project(title=title, team_size=team_size, approval_status=approval_status)
            db.add(p)
            db.flush()
            return p.id

    def prefer(self, student_id, project_ids, submitted_at=None, start_rank=1):
        submitted_at = submitted_at or T0
        with self.session_factory.begin() as db:
            for rank, pid in enumerate(project_ids, start=start_rank):
                db.add(models.StudentPreference(
                    student_id=student_id,
                    project_id=pid,
                    rank_order=rank,
                    submitted_at=submitted_at,
                ))

    def raw_preference(self, student_id, project_id, rank):
        with self.session_factory.begin() as db:
            db.add(models.StudentPreference(
                student_id=student_id, project_id=project_id, rank_order=rank, submitted_at=T0,
            ))

    def setting(self, key, value):
        with self.session_factory.begin() as db:
            db.add(models.AppSetting(setting_key=key, setting_value=value))


@pytest.fixture
def roster(session_factory):
    return Roster(session_factory)


@pytest.fixture
def at():
    """at(n) -> a submission timestamp n minutes after a fixed origin."""
    return lambda minutes: T0 + timedelta(minutes=minutes)


@pytest.fixture
def make_roster():
    """Roster bound to a session factory of the test's choosing."""
    return Roster
