from sqlalchemy import Column, Integer, Boolean, CheckConstraint, Float, DateTime, ForeignKey, Text, String, Index, JSON, Uuid
from sqlalchemy.orm import relationship
from core.database import Base
import uuid
from datetime import datetime, timezone


GOAL_STAGES = ("flower", "apple", "root")
GOAL_STATUSES = ("active", "completed", "archived")
ACHIEVEMENT_TYPES = ("plan_complete", "goal_complete", "daily_checkin")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _in(column: str, values) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


class User(Base):
    __tablename__ = "user_account"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
    email = Column(Text, unique=True, nullable=False)  # Stored lowercased
    password_hash = Column(Text, nullable=False)
    display_name = Column(Text, nullable=False)
    avatar_url = Column(Text, nullable=True)

    # --- GAMIFICATION ---
    # Only ever changed with SQL-side increments (see services/plans.py)
    achievement_points = Column(Integer, default=0, nullable=False)
    achievement_coins = Column(Integer, default=0, nullable=False)

    goals = relationship("Goal", back_populates="owner", lazy="dynamic")

    __table_args__ = (
        CheckConstraint("achievement_points >= 0", name="ck_user_points_non_negative"),
        CheckConstraint("achievement_coins >= 0", name="ck_user_coins_non_negative"),
    )


class Goal(Base):
    """
    A long-running objective shown as a node of the growth tree.

    Never physically deleted: DELETE archives it.
    """
    __tablename__ = "goal"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id = Column(Uuid, ForeignKey("user_account.id"), nullable=False, index=True)
    title = Column(String(50), nullable=False)
    stage = Column(Text, default="flower", nullable=False)  # 'flower', 'apple', 'root'
    status = Column(Text, default="active", nullable=False)  # 'active', 'completed', 'archived'
    achievement_value = Column(Integer, default=0, nullable=False)  # 0-100
    # Cosmetic tree layout
    position_x = Column(Float, default=0.0, nullable=False)
    position_y = Column(Float, default=0.0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    owner = relationship("User", back_populates="goals")

    __table_args__ = (
        CheckConstraint(_in("stage", GOAL_STAGES), name="ck_goal_stage"),
        CheckConstraint(_in("status", GOAL_STATUSES), name="ck_goal_status"),
        CheckConstraint(
            "achievement_value >= 0 AND achievement_value <= 100",
            name="ck_goal_achievement_value_range",
        ),
        Index("ix_goal_owner_status", "owner_id", "status"),
        Index("ix_goal_owner_stage", "owner_id", "stage"),
    )


class Plan(Base):
    """
    A dated task, optionally linked to a goal.

    ``subtasks`` is an ordered list of {"content", "quantity", "completed"}.
    Invariant: completed_at is set iff completed is true.
    """
    __tablename__ = "plan"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id = Column(Uuid, ForeignKey("user_account.id"), nullable=False, index=True)
    goal_id = Column(Uuid, ForeignKey("goal.id"), nullable=True, index=True)
    content = Column(Text, nullable=False)
    date = Column(DateTime, nullable=False, index=True)  # Calendar day, compared by day bucket
    completed = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    subtasks = Column(JSON, default=list, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    goal = relationship("Goal", lazy="joined")

    __table_args__ = (
        CheckConstraint(
            "(completed AND completed_at IS NOT NULL) OR (NOT completed AND completed_at IS NULL)",
            name="ck_plan_completed_at_matches_flag",
        ),
        Index("ix_plan_owner_date", "owner_id", "date"),
    )


class Achievement(Base):
    """Immutable ledger entry. Inserted once per qualifying event, never updated."""
    __tablename__ = "achievement"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id = Column(Uuid, ForeignKey("user_account.id"), nullable=False, index=True)
    type = Column(Text, nullable=False)  # 'plan_complete', 'goal_complete', 'daily_checkin'
    points = Column(Integer, nullable=False)
    coins = Column(Integer, nullable=False)
    description = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)

    __table_args__ = (
        CheckConstraint(_in("type", ACHIEVEMENT_TYPES), name="ck_achievement_type"),
    )
