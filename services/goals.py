"""
Goal (tree node) repository and field validation.

Each field is validated on its own before it is assigned, so a rejected
patch never leaves a half-applied goal behind.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from core.exceptions import NotFoundError, ValidationError
from models import Goal, GOAL_STAGES, GOAL_STATUSES

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 50


def validate_title(title: Optional[str]) -> str:
    if title is None or not title.strip():
        raise ValidationError("Title must not be empty", error_code="MISSING_TITLE")
    title = title.strip()
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(
            f"Title must be at most {MAX_TITLE_LENGTH} characters", error_code="TITLE_TOO_LONG"
        )
    return title


def validate_stage(stage: Optional[str]) -> str:
    if stage not in GOAL_STAGES:
        raise ValidationError(
            f"Stage must be one of: {', '.join(GOAL_STAGES)}", error_code="INVALID_STAGE"
        )
    return stage


def validate_status(status: Optional[str]) -> str:
    if status not in GOAL_STATUSES:
        raise ValidationError(
            f"Status must be one of: {', '.join(GOAL_STATUSES)}", error_code="INVALID_STATUS"
        )
    return status


def validate_achievement_value(value: Optional[int]) -> int:
    if value is None or value < 0 or value > 100:
        raise ValidationError(
            "Achievement value must be between 0 and 100", error_code="INVALID_ACHIEVEMENT_VALUE"
        )
    return value


def validate_position(position: Optional[Dict[str, Any]]) -> Dict[str, float]:
    if position is None:
        raise ValidationError("Position must be an object with x and y", error_code="INVALID_POSITION")
    return {"x": float(position.get("x", 0.0)), "y": float(position.get("y", 0.0))}


def parse_goal_id(raw: str) -> UUID:
    try:
        return UUID(str(raw))
    except ValueError:
        raise ValidationError("Goal id is not valid", error_code="INVALID_GOAL_ID")


def list_goals(db: Session, owner_id: UUID, include_archived: bool = True) -> List[Goal]:
    query = db.query(Goal).filter(Goal.owner_id == owner_id)
    if not include_archived:
        query = query.filter(Goal.status != "archived")
    return query.order_by(Goal.created_at.desc()).all()


def get_goal(db: Session, owner_id: UUID, goal_id: UUID) -> Goal:
    goal = db.query(Goal).filter(Goal.id == goal_id, Goal.owner_id == owner_id).first()
    if goal is None:
        raise NotFoundError("Goal not found", error_code="NOT_FOUND")
    return goal


def create_goal(db: Session, owner_id: UUID, fields: Dict[str, Any]) -> Goal:
    """
    Create a goal from already-parsed request fields.

    Defaults apply only to absent keys; a present value, null or empty
    included, goes through its validator.
    """
    title = validate_title(fields.get("title"))
    stage = validate_stage(fields.get("stage", "flower"))
    status = validate_status(fields.get("status", "active"))
    achievement_value = validate_achievement_value(fields.get("achievement_value", 0))
    position = validate_position(fields.get("position", {"x": 0.0, "y": 0.0}))

    goal = Goal(
        owner_id=owner_id,
        title=title,
        stage=stage,
        status=status,
        achievement_value=achievement_value,
        position_x=position["x"],
        position_y=position["y"],
    )
    db.add(goal)
    db.commit()
    db.refresh(goal)
    logger.info(f"Goal created: {goal.id}")
    return goal


def update_goal(db: Session, goal: Goal, patch: Dict[str, Any]) -> Goal:
    """Apply a partial patch; only keys present in ``patch`` are touched."""
    changes: Dict[str, Any] = {}
    if "title" in patch:
        changes["title"] = validate_title(patch["title"])
    if "stage" in patch:
        changes["stage"] = validate_stage(patch["stage"])
    if "status" in patch:
        changes["status"] = validate_status(patch["status"])
    if "achievement_value" in patch:
        changes["achievement_value"] = validate_achievement_value(patch["achievement_value"])
    if "position" in patch:
        position = validate_position(patch["position"])
        changes["position_x"] = position["x"]
        changes["position_y"] = position["y"]

    for field, value in changes.items():
        setattr(goal, field, value)
    db.commit()
    db.refresh(goal)
    return goal


def archive_goal(db: Session, goal: Goal) -> Goal:
    """Soft delete."""
    goal.status = "archived"
    db.commit()
    db.refresh(goal)
    logger.info(f"Goal archived: {goal.id}")
    return goal
