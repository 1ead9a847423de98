# group_formation/simulation/simulate.py
"""
Simulation script: creates a fake roster of students and approved projects,
lets every student rank up to three projects, then previews and commits a
group formation run.

Uses the coordinator and repositories directly (no HTTP calls).
"""
import random
import uuid
from datetime import datetime, timedelta

from faker import Faker

from group_formation.config.settings import settings
from group_formation.infrastructure.db.session import Base, SessionLocal
from group_formation.infrastructure.models import Project, StudentPreference, User
from group_formation.services.run_coordinator import RunCoordinator

NUM_STUDENTS = 40
NUM_PROJECTS = 9
NO_PREFERENCE_RATE = 0.1


def seed_roster(db, num_students=NUM_STUDENTS, num_projects=NUM_PROJECTS, seed=None):
    """Insert students, projects and preferences. Returns (student_ids, project_ids)."""
    fake = Faker()
    if seed is not None:
        Faker.seed(seed)
    rng = random.Random(seed)
    # emails are unique in the store; keep repeated runs on one database apart
    run_tag = uuid.uuid4().hex[:8]

    projects = [
        Project(
            title=fake.catch_phrase(),
            description=fake.sentence(),
            team_size=rng.randint(3, 5),
            approval_status="approved",
        )
        for _ in range(num_projects)
    ]
    students = [
        User(email=f"student{i}.{run_tag}@example.edu", full_name=fake.name(), role="student", status="active")
        for i in range(num_students)
    ]
    db.add_all(projects + students)
    db.flush()

    # a few projects are much more popular than the rest
    weights = [num_projects - i for i in range(num_projects)]
    start = datetime(2025, 1, 6, 9, 0)
    for s in students:
        if rng.random() < NO_PREFERENCE_RATE:
            continue
        picked = []
        while len(picked) < min(settings.MAX_PREFERENCES, num_projects):
            p = rng.choices(projects, weights=weights)[0]
            if p not in picked:
                picked.append(p)
        submitted = start + timedelta(minutes=rng.randint(0, 60 * 24 * 7))
        for rank, p in enumerate(picked, start=1):
            db.add(StudentPreference(student_id=s.id, project_id=p.id, rank_order=rank, submitted_at=submitted))

    db.commit()
    return [s.id for s in students], [p.id for p in projects]


def run_simulation(session_factory=None, seed=None):
    session_factory = session_factory or SessionLocal
    Base.metadata.create_all(bind=session_factory.kw["bind"])

    with session_factory() as db:
        seed_roster(db, seed=seed)

    coordinator = RunCoordinator(session_factory)
    preview = coordinator.preview_assignment()
    stats = preview["stats"]
    print(f"Preview: {stats['assigned_students']} assigned, {stats['unassigned_students']} unassigned")
    print(f"  1st {stats['first_choice']}  2nd {stats['second_choice']}  3rd {stats['third_choice']}"
          f"  fallback {stats['fallback']}  satisfaction {stats['satisfaction_score']}")

    committed = coordinator.commit_assignment()
    print(f"Committed {committed['groups_created']} groups")
    for g in coordinator.list_groups():
        print(f"- {g['name']}: {g['member_count']}/{g['capacity']}")

    return preview, committed


if __name__ == "__main__":
    run_simulation()
