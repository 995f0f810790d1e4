"""
Plan repository.

Owner-scoped CRUD for plans, the day-bucket date filter, subtask toggling and
direct completion with its achievement reward. Completion rules themselves
live in services/completion.py; this module only loads and persists.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from core.exceptions import NotFoundError, ValidationError
from models import Achievement, Goal, Plan, User
from schemas import ExpandedGoal, GoalReference, PlanResponse, Subtask
from services import completion
from services.completion import CompletionState, SubtaskState

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- PARSING ---

def parse_plan_id(raw: str) -> UUID:
    try:
        return UUID(str(raw))
    except ValueError:
        raise ValidationError("Plan id is not valid", error_code="INVALID_PLAN_ID")


def parse_plan_date(raw: Optional[str]) -> datetime:
    """
    Accepts ``YYYY-MM-DD`` or an ISO-8601 timestamp.

    Aware timestamps are converted to UTC; the stored value is naive.
    """
    if raw is None or not str(raw).strip():
        raise ValidationError("Plan date is required", error_code="MISSING_DATE")
    text = str(raw).strip()
    try:
        if len(text) == 10:
            return datetime.combine(date.fromisoformat(text), time.min)
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError("Plan date is not a valid date", error_code="INVALID_DATE")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def day_bounds(day: datetime) -> Tuple[datetime, datetime]:
    """``[startOfDay, startOfDay + 1 day)`` for the day containing ``day``."""
    start = datetime.combine(day.date(), time.min)
    return start, start + timedelta(days=1)


def validate_content(content: Optional[str]) -> str:
    if content is None or not content.strip():
        raise ValidationError("Plan content must not be empty", error_code="MISSING_CONTENT")
    return content.strip()


def validate_subtasks(raw: Optional[List[Dict[str, Any]]]) -> Tuple[SubtaskState, ...]:
    subtasks = []
    for i, item in enumerate(raw or []):
        content = (item.get("content") or "").strip()
        quantity = item.get("quantity")
        quantity = 0 if quantity is None else quantity
        if not content:
            raise ValidationError(f"Subtask {i} has no content", error_code="INVALID_SUBTASK")
        if quantity < 0:
            raise ValidationError(f"Subtask {i} quantity must be >= 0", error_code="INVALID_SUBTASK")
        subtasks.append(SubtaskState(content=content, quantity=quantity, completed=bool(item.get("completed"))))
    return tuple(subtasks)


def resolve_goal_id(db: Session, owner_id: UUID, raw: Optional[str]) -> Optional[UUID]:
    """Only the caller's own goals can be linked."""
    if raw is None or raw == "":
        return None
    try:
        goal_id = UUID(str(raw))
    except ValueError:
        raise ValidationError("Goal id is not valid", error_code="INVALID_GOAL_ID")
    exists = db.query(Goal.id).filter(Goal.id == goal_id, Goal.owner_id == owner_id).first()
    if not exists:
        raise NotFoundError("Goal not found", error_code="GOAL_NOT_FOUND")
    return goal_id


# --- STATE MAPPING ---

def state_of(plan: Plan) -> CompletionState:
    return CompletionState(
        completed=bool(plan.completed),
        completed_at=plan.completed_at,
        subtasks=tuple(SubtaskState.from_dict(s) for s in (plan.subtasks or [])),
    )


def apply_state(plan: Plan, state: CompletionState) -> None:
    """Copy a state onto the row. A fresh list is assigned so the JSON column is flagged dirty."""
    plan.completed = state.completed
    plan.completed_at = state.completed_at
    plan.subtasks = state.subtask_dicts()


def to_response(plan: Plan, expand_goal: bool = True) -> PlanResponse:
    """Resolve the goal link explicitly: expanded when the goal is loaded, else a bare reference."""
    goal = None
    if plan.goal_id is not None:
        if expand_goal and plan.goal is not None:
            goal = ExpandedGoal(id=plan.goal.id, title=plan.goal.title)
        else:
            goal = GoalReference(id=plan.goal_id)
    return PlanResponse(
        id=plan.id,
        goal=goal,
        content=plan.content,
        date=plan.date,
        completed=bool(plan.completed),
        completed_at=plan.completed_at,
        subtasks=[Subtask(**s) for s in (plan.subtasks or [])],
        created_at=plan.created_at,
        updated_at=plan.updated_at,
    )


# --- QUERIES ---

def list_plans(db: Session, owner_id: UUID, on_day: Optional[datetime] = None) -> List[Plan]:
    query = db.query(Plan).filter(Plan.owner_id == owner_id)
    if on_day is not None:
        start, end = day_bounds(on_day)
        query = query.filter(Plan.date >= start, Plan.date < end)
    return query.order_by(Plan.created_at.desc()).all()


def get_plan(db: Session, owner_id: UUID, plan_id: UUID) -> Plan:
    plan = db.query(Plan).filter(Plan.id == plan_id, Plan.owner_id == owner_id).first()
    if plan is None:
        raise NotFoundError("Plan not found", error_code="PLAN_NOT_FOUND")
    return plan


# --- MUTATIONS ---

def create_plan(db: Session, owner_id: UUID, fields: Dict[str, Any]) -> Plan:
    content = validate_content(fields.get("content"))
    plan_date = parse_plan_date(fields.get("date"))
    goal_id = resolve_goal_id(db, owner_id, fields.get("goal_id"))
    subtasks = validate_subtasks(fields.get("subtasks"))

    state = completion.reconcile(CompletionState(False, None, subtasks), _utcnow())
    plan = Plan(owner_id=owner_id, goal_id=goal_id, content=content, date=plan_date)
    apply_state(plan, state)
    db.add(plan)
    db.commit()
    db.refresh(plan)
    logger.info(f"Plan created: {plan.id}")
    return plan


def update_plan(db: Session, plan: Plan, patch: Dict[str, Any]) -> Plan:
    """
    Partial update.

    A new subtask list is reconciled against the plan's flag. An explicit
    ``completed`` in the same patch wins and carries every subtask with it,
    so the stored flag never contradicts the subtasks. Neither path awards.
    """
    now = _utcnow()
    if "content" in patch:
        plan.content = validate_content(patch["content"])
    if "date" in patch:
        plan.date = parse_plan_date(patch["date"])
    if "goal_id" in patch:
        plan.goal_id = resolve_goal_id(db, plan.owner_id, patch["goal_id"])

    state = state_of(plan)
    if "subtasks" in patch:
        state = CompletionState(state.completed, state.completed_at, validate_subtasks(patch["subtasks"]))
        state = completion.reconcile(state, now)
    if patch.get("completed") is not None:
        state = completion.apply_flag(state, bool(patch["completed"]), now)
    apply_state(plan, state)

    db.commit()
    db.refresh(plan)
    return plan


def toggle_subtask(db: Session, plan: Plan, index: int, completed: bool) -> Plan:
    """Flip one subtask and reconcile the plan flag in the same commit."""
    subtasks = plan.subtasks or []
    if index < 0 or index >= len(subtasks):
        raise ValidationError("Subtask index out of range", error_code="INVALID_SUBTASK_INDEX")

    state = completion.toggle_subtask(state_of(plan), index, completed, _utcnow())
    apply_state(plan, state)
    db.commit()
    db.refresh(plan)
    return plan


def delete_plan(db: Session, plan: Plan) -> None:
    db.delete(plan)
    db.commit()
    logger.info(f"Plan deleted: {plan.id}")


def complete_plan(db: Session, owner_id: UUID, plan_id: UUID) -> Tuple[Plan, Optional[Achievement]]:
    """
    Direct completion.

    The false -> true transition is claimed with a conditional UPDATE, so only
    one caller can win it. The winner marks every subtask done, records one
    plan_complete achievement and increments the owner's counters in SQL, all
    in one transaction. Completing an already completed plan awards nothing.
    """
    plan = get_plan(db, owner_id, plan_id)
    now = _utcnow()

    claimed = (
        db.query(Plan)
        .filter(Plan.id == plan_id, Plan.owner_id == owner_id, Plan.completed.is_(False))
        .update({Plan.completed: True, Plan.completed_at: now}, synchronize_session=False)
    )
    if not claimed:
        db.rollback()
        db.refresh(plan)
        logger.info(f"Plan {plan_id} already completed; no reward issued")
        return plan, None

    db.refresh(plan)
    apply_state(plan, completion.complete_all(state_of(plan), now))

    achievement = Achievement(
        owner_id=owner_id,
        type="plan_complete",
        points=completion.PLAN_COMPLETE_POINTS,
        coins=completion.PLAN_COMPLETE_COINS,
        description=f"Completed plan: {plan.content}",
    )
    db.add(achievement)
    db.query(User).filter(User.id == owner_id).update(
        {
            User.achievement_points: User.achievement_points + completion.PLAN_COMPLETE_POINTS,
            User.achievement_coins: User.achievement_coins + completion.PLAN_COMPLETE_COINS,
        },
        synchronize_session=False,
    )
    db.commit()
    db.refresh(plan)
    db.refresh(achievement)

    logger.info(
        f"Plan {plan_id} completed",
        extra={"extra_fields": {"plan_id": str(plan_id), "points": achievement.points, "coins": achievement.coins}},
    )
    return plan, achievement
