# group_formation/domain/errors.py
"""
Failures of a group formation run.

Soft outcomes (unassigned students, capacity shortfall) are never raised;
they are reported in the result payloads.
"""
from dataclasses import dataclass
from typing import Optional


class GroupFormationError(RuntimeError):
    """Base of all errors raised by the group formation engine and workflow."""


@dataclass(eq=True)
class DataIntegrityError(GroupFormationError):
    """Malformed, duplicate or dangling preference data in the store."""

    detail: str
    student_id: Optional[int] = None

    def __str__(self) -> str:
        if self.student_id is None:
            return self.detail
        return f"student {self.student_id}: {self.detail}"


@dataclass(eq=True)
class ConcurrentRunError(GroupFormationError):
    """A commit or clear already holds the assignment run lock."""

    resource: str
    held_by: Optional[str] = None

    def __str__(self) -> str:
        if self.held_by:
            return f"{self.resource} is busy ({self.held_by} in progress)"
        return f"{self.resource} is busy"


@dataclass(eq=True)
class NoEligibleProjectsError(GroupFormationError):
    """No approved project with remaining capacity exists."""

    message: str = "No approved projects available for assignment"

    def __str__(self) -> str:
        return self.message
