"""
Achievements API Router

Read-only view of the caller's achievement ledger and totals.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.auth import get_current_user
from core.database import get_db
from models import User
from schemas import AchievementResponse, AchievementSummary, envelope
from services.achievements import list_achievements

router = APIRouter(prefix="/api/achievements", tags=["Achievements"])


@router.get("")
def get_achievements(
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Ledger entries, newest first, with the running totals from the account."""
    records = list_achievements(db, current_user.id, limit=limit)
    summary = AchievementSummary(
        points=current_user.achievement_points,
        coins=current_user.achievement_coins,
        achievements=[AchievementResponse.model_validate(a) for a in records],
    )
    return envelope("Achievements loaded", summary)
