# group_formation/infrastructure/models.py
"""
SQLAlchemy ORM models for the capstone group formation store.

Users, projects and preferences are owned by other parts of the portal and
are only read here. Groups, memberships and run locks are written by the
assignment committer and the run coordinator.
"""
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship

from group_formation.config.settings import settings
from group_formation.infrastructure.db.session import Base


def now():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), nullable=False, unique=True)
    full_name = Column(String(200), nullable=True)
    role = Column(String(20), nullable=False, default="student", index=True)
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime, default=now)

    # Relationships
    preferences = relationship("StudentPreference", back_populates="student")
    group_membership = relationship("GroupMember", back_populates="student", uselist=False)


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    team_size = Column(Integer, nullable=False, default=settings.DEFAULT_TEAM_SIZE)
    approval_status = Column(String(20), nullable=False, default="pending", index=True)
    created_at = Column(DateTime, default=now)

    # Relationships
    preferences = relationship("StudentPreference", back_populates="project")
    groups = relationship("StudentGroup", back_populates="project")


class StudentPreference(Base):
    __tablename__ = "student_preferences"

    id = Column(Integer, primary_key=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    # not enforced by SQLite; the loader reports dangling ids
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), index=True, nullable=False)
    rank_order = Column(Integer, nullable=False)
    submitted_at = Column(DateTime, default=now, nullable=False)
    updated_at = Column(DateTime, default=now, onupdate=now)

    __table_args__ = (
        UniqueConstraint("student_id", "project_id", name="uq_student_project"),
    )

    # Relationships
    student = relationship("User", back_populates="preferences")
    project = relationship("Project", back_populates="preferences")


class StudentGroup(Base):
    __tablename__ = "student_groups"

    id = Column(Integer, primary_key=True)
    group_number = Column(Integer, nullable=True)
    group_name = Column(String(100), nullable=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="SET NULL"), index=True, nullable=True)
    capacity = Column(Integer, nullable=False)
    status = Column(String(20), default="active")
    created_at = Column(DateTime, default=now)

    # Relationships
    project = relationship("Project", back_populates="groups")
    members = relationship(
        "GroupMember",
        back_populates="group",
        cascade="all, delete-orphan",
        order_by="GroupMember.student_id",
    )


class GroupMember(Base):
    __tablename__ = "group_members"

    id = Column(Integer, primary_key=True)
    group_id = Column(Integer, ForeignKey("student_groups.id", ondelete="CASCADE"), index=True, nullable=False)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # NULL when the seat came from the fallback phase
    preference_rank = Column(Integer, nullable=True)
    joined_at = Column(DateTime, default=now)

    __table_args__ = (
        UniqueConstraint("student_id", name="uq_group_member_student"),
    )

    # Relationships
    group = relationship("StudentGroup", back_populates="members")
    student = relationship("User", back_populates="group_membership")


class AppSetting(Base):
    __tablename__ = "app_settings"

    id = Column(Integer, primary_key=True)
    setting_key = Column(String(100), nullable=False, unique=True)
    setting_value = Column(Text, nullable=True)
    description = Column(String(255), nullable=True)
    updated_at = Column(DateTime, default=now, onupdate=now)


class RunLock(Base):
    __tablename__ = "run_locks"

    resource = Column(String(64), primary_key=True)
    token = Column(String(64), nullable=False)
    operation = Column(String(20), nullable=False)
    acquired_at = Column(DateTime, default=now, nullable=False)
