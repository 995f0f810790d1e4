"""
Goal Tree API Router

Nodes of the growth tree. Every field of a create or patch is validated
before it is assigned; DELETE archives the goal instead of removing it.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from uuid import UUID

from core.auth import get_owner_id
from core.database import get_db
from schemas import GoalCreate, GoalResponse, GoalUpdate, envelope
from services import goals as goal_service

router = APIRouter(prefix="/api/tree", tags=["Goal Tree"])


@router.get("")
def list_tree_nodes(
    db: Session = Depends(get_db),
    owner_id: UUID = Depends(get_owner_id),
):
    """Non-archived goals, newest first."""
    goals = goal_service.list_goals(db, owner_id, include_archived=False)
    return envelope("Goal tree loaded", [GoalResponse.from_goal(g) for g in goals])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_tree_node(
    body: GoalCreate,
    db: Session = Depends(get_db),
    owner_id: UUID = Depends(get_owner_id),
):
    fields = body.model_dump(exclude_unset=True)
    # New tree nodes always start active
    fields.pop("status", None)
    goal = goal_service.create_goal(db, owner_id, fields)
    return envelope("Goal created", GoalResponse.from_goal(goal))


@router.get("/{goal_id}")
def get_tree_node(
    goal_id: str,
    db: Session = Depends(get_db),
    owner_id: UUID = Depends(get_owner_id),
):
    goal = goal_service.get_goal(db, owner_id, goal_service.parse_goal_id(goal_id))
    return envelope("Goal loaded", GoalResponse.from_goal(goal))


@router.put("/{goal_id}")
def update_tree_node(
    goal_id: str,
    body: GoalUpdate,
    db: Session = Depends(get_db),
    owner_id: UUID = Depends(get_owner_id),
):
    """Partial update: only fields present in the body are touched."""
    goal = goal_service.get_goal(db, owner_id, goal_service.parse_goal_id(goal_id))
    goal = goal_service.update_goal(db, goal, body.model_dump(exclude_unset=True))
    return envelope("Goal updated", GoalResponse.from_goal(goal))


@router.delete("/{goal_id}")
def delete_tree_node(
    goal_id: str,
    db: Session = Depends(get_db),
    owner_id: UUID = Depends(get_owner_id),
):
    """Soft delete: the goal is archived and drops out of the tree."""
    goal = goal_service.get_goal(db, owner_id, goal_service.parse_goal_id(goal_id))
    goal_service.archive_goal(db, goal)
    return envelope("Goal deleted", {"id": str(goal.id)})
