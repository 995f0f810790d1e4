"""
Plans API Router

Daily plans with optional subtasks. Completion state is derived by
services/completion.py; only POST /{id}/complete awards achievements.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from core.auth import get_owner_id
from core.database import get_db
from schemas import AchievementResponse, PlanCompletionResponse, PlanCreate, PlanUpdate, SubtaskToggle, envelope
from services import plans as plan_service

router = APIRouter(prefix="/api/plans", tags=["Plans"])


@router.get("")
def list_plans(
    date: Optional[str] = Query(None, description="YYYY-MM-DD; restricts to that calendar day"),
    db: Session = Depends(get_db),
    owner_id: UUID = Depends(get_owner_id),
):
    """List the caller's plans, newest first, optionally for a single day."""
    on_day = plan_service.parse_plan_date(date) if date else None
    plans = plan_service.list_plans(db, owner_id, on_day)
    return envelope("Plans loaded", [plan_service.to_response(p) for p in plans])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_plan(
    body: PlanCreate,
    db: Session = Depends(get_db),
    owner_id: UUID = Depends(get_owner_id),
):
    plan = plan_service.create_plan(db, owner_id, body.model_dump(exclude_unset=True))
    return envelope("Plan created", plan_service.to_response(plan, expand_goal=False))


@router.get("/{plan_id}")
def get_plan(
    plan_id: str,
    db: Session = Depends(get_db),
    owner_id: UUID = Depends(get_owner_id),
):
    plan = plan_service.get_plan(db, owner_id, plan_service.parse_plan_id(plan_id))
    return envelope("Plan loaded", plan_service.to_response(plan))


@router.put("/{plan_id}")
def update_plan(
    plan_id: str,
    body: PlanUpdate,
    db: Session = Depends(get_db),
    owner_id: UUID = Depends(get_owner_id),
):
    plan = plan_service.get_plan(db, owner_id, plan_service.parse_plan_id(plan_id))
    plan = plan_service.update_plan(db, plan, body.model_dump(exclude_unset=True))
    return envelope("Plan updated", plan_service.to_response(plan))


@router.delete("/{plan_id}")
def delete_plan(
    plan_id: str,
    db: Session = Depends(get_db),
    owner_id: UUID = Depends(get_owner_id),
):
    """Permanent delete."""
    plan = plan_service.get_plan(db, owner_id, plan_service.parse_plan_id(plan_id))
    plan_service.delete_plan(db, plan)
    return envelope("Plan deleted", {"id": plan_id})


@router.patch("/{plan_id}/subtasks/{index}")
def toggle_subtask(
    plan_id: str,
    index: int,
    body: SubtaskToggle,
    db: Session = Depends(get_db),
    owner_id: UUID = Depends(get_owner_id),
):
    """Check or uncheck one subtask; the plan flag follows the subtasks."""
    plan = plan_service.get_plan(db, owner_id, plan_service.parse_plan_id(plan_id))
    plan = plan_service.toggle_subtask(db, plan, index, body.completed)
    return envelope("Subtask updated", plan_service.to_response(plan))


@router.post("/{plan_id}/complete")
def complete_plan(
    plan_id: str,
    db: Session = Depends(get_db),
    owner_id: UUID = Depends(get_owner_id),
):
    """
    Mark a plan completed directly.

    Awards one plan_complete achievement (10 points, 5 coins) on the first
    completion only; repeating the call returns the plan with no achievement.
    """
    plan, achievement = plan_service.complete_plan(db, owner_id, plan_service.parse_plan_id(plan_id))
    result = PlanCompletionResponse(
        plan=plan_service.to_response(plan),
        achievement=AchievementResponse.model_validate(achievement) if achievement else None,
    )
    message = "Plan completed" if achievement else "Plan already completed"
    return envelope(message, result)
