"""
Goals API Router

Flat goal list for the caller. The tree view with per-node editing lives in
routers/tree.py; both share services/goals.py.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from uuid import UUID

from core.auth import get_owner_id
from core.database import get_db
from schemas import GoalCreate, GoalResponse, envelope
from services import goals as goal_service

router = APIRouter(prefix="/api/goals", tags=["Goals"])


@router.get("")
def list_goals(
    db: Session = Depends(get_db),
    owner_id: UUID = Depends(get_owner_id),
):
    """All of the caller's goals, archived included, newest first."""
    goals = goal_service.list_goals(db, owner_id)
    return envelope("Goals loaded", {"goals": [GoalResponse.from_goal(g) for g in goals]})


@router.post("", status_code=status.HTTP_201_CREATED)
def create_goal(
    body: GoalCreate,
    db: Session = Depends(get_db),
    owner_id: UUID = Depends(get_owner_id),
):
    goal = goal_service.create_goal(db, owner_id, body.model_dump(exclude_unset=True))
    return envelope("Goal created", {"goal": GoalResponse.from_goal(goal)})
