# group_formation/api/routers/assignments.py
"""
Router for the group formation run: preview, commit, clear, and reading
committed groups. Authentication is handled in front of this router.
"""
from enum import Enum

from fastapi import APIRouter, Depends, HTTPException, Query

from group_formation.domain.errors import (
    ConcurrentRunError,
    DataIntegrityError,
    NoEligibleProjectsError,
)
from group_formation.services.run_coordinator import RunCoordinator

router = APIRouter()


class AssignmentMode(str, Enum):
    full = "full"
    partial = "partial"


def get_coordinator() -> RunCoordinator:
    return RunCoordinator()


@router.post("/preview", summary="Preview group formation without saving")
def preview_groups(
    mode: AssignmentMode = Query(AssignmentMode.full),
    coordinator: RunCoordinator = Depends(get_coordinator),
):
    """
    Run the matching engine on the current preferences.
    Unassigned students are reported in the payload, not as an error.
    """
    try:
        data = coordinator.preview_assignment(mode.value)
    except DataIntegrityError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"ok": True, "preview": True, "data": data}


@router.post("/commit", summary="Form groups and save them")
def commit_groups(
    mode: AssignmentMode = Query(AssignmentMode.full),
    coordinator: RunCoordinator = Depends(get_coordinator),
):
    """
    full: replace every group with a fresh assignment.
    partial: only place students who have no group yet.
    """
    try:
        data = coordinator.commit_assignment(mode.value)
    except ConcurrentRunError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except NoEligibleProjectsError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DataIntegrityError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"ok": True, "data": data}


@router.delete("/groups", summary="Delete all groups")
def clear_groups(coordinator: RunCoordinator = Depends(get_coordinator)):
    try:
        data = coordinator.clear_assignment()
    except ConcurrentRunError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"ok": True, "data": data}


@router.get("/groups", summary="List committed groups")
def list_groups(coordinator: RunCoordinator = Depends(get_coordinator)):
    return {"ok": True, "data": coordinator.list_groups()}


@router.get("/unassigned-students", summary="List students without a group")
def list_unassigned_students(coordinator: RunCoordinator = Depends(get_coordinator)):
    return {"ok": True, "data": coordinator.list_unassigned_students()}


@router.get("/groups/{group_id}", summary="Get group details")
def get_group(group_id: int, coordinator: RunCoordinator = Depends(get_coordinator)):
    group = coordinator.get_group(group_id)
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    return {"ok": True, "data": group}
