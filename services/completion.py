"""
Derived-Completion Engine

Keeps a plan's top-level ``completed`` flag consistent with its subtasks.

Plan completion has two states, Incomplete and Complete, both freely
revisitable:

- Incomplete -> Complete: direct completion (rewarded, see
  services/plans.complete_plan), a user edit of the flag, or every subtask
  checked (the last two are not rewarded)
- Complete -> Incomplete: user edit of the flag or a subtask unchecked
  (no reward reversal)

A user edit of the flag checks or unchecks every subtask along with it.

Everything here is pure: functions take a CompletionState and return a new
one. The caller persists the result in a single update.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List, Optional, Tuple

# Reward for completing a plan directly
PLAN_COMPLETE_POINTS = 10
PLAN_COMPLETE_COINS = 5


@dataclass(frozen=True)
class SubtaskState:
    content: str
    quantity: int = 0
    completed: bool = False

    def to_dict(self) -> dict:
        return {"content": self.content, "quantity": self.quantity, "completed": self.completed}

    @classmethod
    def from_dict(cls, data: dict) -> "SubtaskState":
        return cls(
            content=data.get("content", ""),
            quantity=int(data.get("quantity") or 0),
            completed=bool(data.get("completed", False)),
        )


@dataclass(frozen=True)
class CompletionState:
    completed: bool
    completed_at: Optional[datetime]
    subtasks: Tuple[SubtaskState, ...] = field(default_factory=tuple)

    @property
    def all_subtasks_done(self) -> bool:
        return bool(self.subtasks) and all(s.completed for s in self.subtasks)

    def subtask_dicts(self) -> List[dict]:
        return [s.to_dict() for s in self.subtasks]


def reconcile(state: CompletionState, now: datetime) -> CompletionState:
    """
    Align the top-level flag with the subtasks.

    Plans without subtasks are left alone; direct completion is their only path.
    """
    if not state.subtasks:
        return state

    all_done = state.all_subtasks_done
    if all_done and not state.completed:
        return replace(state, completed=True, completed_at=now)
    if not all_done and state.completed:
        return replace(state, completed=False, completed_at=None)
    return state


def toggle_subtask(state: CompletionState, index: int, completed: bool, now: datetime) -> CompletionState:
    """Set one subtask's flag and reconcile. ``index`` must already be validated."""
    subtasks = list(state.subtasks)
    subtasks[index] = replace(subtasks[index], completed=completed)
    return reconcile(replace(state, subtasks=tuple(subtasks)), now)


def set_completed(state: CompletionState, completed: bool, now: datetime) -> CompletionState:
    """Explicit user edit of the flag; keeps completed_at in step with it."""
    if completed:
        if state.completed:
            return state
        return replace(state, completed=True, completed_at=now)
    return replace(state, completed=False, completed_at=None)


def complete_all(state: CompletionState, now: datetime) -> CompletionState:
    """Direct completion: the plan and every subtask become completed."""
    subtasks = tuple(replace(s, completed=True) for s in state.subtasks)
    return replace(set_completed(state, True, now), subtasks=subtasks)


def reopen_all(state: CompletionState, now: datetime) -> CompletionState:
    """Explicit reopen: the plan and every subtask become incomplete."""
    subtasks = tuple(replace(s, completed=False) for s in state.subtasks)
    return replace(set_completed(state, False, now), subtasks=subtasks)


def apply_flag(state: CompletionState, completed: bool, now: datetime) -> CompletionState:
    """
    User edit of the plan flag. Subtasks follow the flag so the result is
    already reconciled; no reward is involved.
    """
    if completed:
        return complete_all(state, now)
    return reopen_all(state, now)
