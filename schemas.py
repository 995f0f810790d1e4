from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from datetime import datetime
from uuid import UUID
from typing import Any, Literal, Optional, List, Union, Annotated


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def envelope(message: str, data: Any = None) -> dict:
    """Success body shared by every API route."""
    return {"success": True, "message": message, "data": data}


# --- AUTH ---

class RegisterRequest(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class UserResponse(CamelModel):
    """Public profile. The password hash is never part of it."""
    id: UUID
    name: str
    email: str
    avatar: Optional[str] = None
    achievement_points: int = 0
    achievement_coins: int = 0

    @classmethod
    def from_user(cls, user) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.display_name,
            email=user.email,
            avatar=user.avatar_url,
            achievement_points=user.achievement_points or 0,
            achievement_coins=user.achievement_coins or 0,
        )


class AuthResponse(CamelModel):
    user: UserResponse
    token: str


# --- GOALS / TREE ---

class Position(CamelModel):
    x: float = 0.0
    y: float = 0.0


class GoalCreate(CamelModel):
    title: Optional[str] = None
    stage: Optional[str] = None
    status: Optional[str] = None
    achievement_value: Optional[int] = None
    position: Optional[Position] = None


class GoalUpdate(CamelModel):
    """Partial patch: only fields present in the body are validated and applied."""
    title: Optional[str] = None
    stage: Optional[str] = None
    status: Optional[str] = None
    achievement_value: Optional[int] = None
    position: Optional[Position] = None


class GoalResponse(CamelModel):
    id: UUID
    title: str
    stage: str
    status: str
    achievement_value: int
    position: Position
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_goal(cls, goal) -> "GoalResponse":
        return cls(
            id=goal.id,
            title=goal.title,
            stage=goal.stage,
            status=goal.status,
            achievement_value=goal.achievement_value,
            position=Position(x=goal.position_x, y=goal.position_y),
            created_at=goal.created_at,
            updated_at=goal.updated_at,
        )


# --- PLANS ---

class SubtaskIn(CamelModel):
    content: Optional[str] = None
    quantity: Optional[int] = 0
    completed: Optional[bool] = False


class Subtask(CamelModel):
    content: str
    quantity: int = 0
    completed: bool = False


class PlanCreate(CamelModel):
    content: Optional[str] = None
    date: Optional[str] = None
    goal_id: Optional[str] = None
    subtasks: Optional[List[SubtaskIn]] = None


class PlanUpdate(CamelModel):
    content: Optional[str] = None
    date: Optional[str] = None
    goal_id: Optional[str] = None
    completed: Optional[bool] = None
    subtasks: Optional[List[SubtaskIn]] = None


class SubtaskToggle(CamelModel):
    completed: bool


class GoalReference(CamelModel):
    """Plan links to a goal by id only."""
    kind: Literal["reference"] = "reference"
    id: UUID


class ExpandedGoal(CamelModel):
    """Plan link resolved with the goal's title."""
    kind: Literal["expanded"] = "expanded"
    id: UUID
    title: str


GoalLink = Annotated[Union[GoalReference, ExpandedGoal], Field(discriminator="kind")]


class PlanResponse(CamelModel):
    id: UUID
    goal: Optional[GoalLink] = None
    content: str
    date: datetime
    completed: bool
    completed_at: Optional[datetime] = None
    subtasks: List[Subtask] = []
    created_at: datetime
    updated_at: datetime


# --- ACHIEVEMENTS ---

class AchievementResponse(CamelModel):
    id: UUID
    type: str
    points: int
    coins: int
    description: str
    created_at: datetime


class PlanCompletionResponse(CamelModel):
    plan: PlanResponse
    # None when the plan was already completed: nothing is awarded twice
    achievement: Optional[AchievementResponse] = None


class AchievementSummary(CamelModel):
    points: int
    coins: int
    achievements: List[AchievementResponse]
