"""Achievement ledger queries. Records are written by services/plans.complete_plan."""

from __future__ import annotations

from typing import List
from uuid import UUID

from sqlalchemy.orm import Session

from models import Achievement


def list_achievements(db: Session, owner_id: UUID, limit: int = 100) -> List[Achievement]:
    return (
        db.query(Achievement)
        .filter(Achievement.owner_id == owner_id)
        .order_by(Achievement.created_at.desc())
        .limit(limit)
        .all()
    )
