from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from backstage.auth.deps import get_optional_user
from backstage.core.access import Action, EntityTarget, EventTarget, FestivalTarget, LineupTarget
from backstage.core.db import get_db
from backstage.core.errors import ValidationError
from backstage.models import User
from backstage.services.access import resolve

router = APIRouter(prefix="/access", tags=["access"])

TARGET_TYPES = {
    "entity": EntityTarget,
    "event": EventTarget,
    "festival": FestivalTarget,
    "lineup": LineupTarget,
}


@router.get("/check")
def check_access(
    action: str = Query(..., description="view|edit|invite|publish"),
    target_type: str = Query(..., description="entity|event|festival|lineup"),
    target_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    """UI gating only; every write path re-checks on its own."""
    try:
        act = Action(action.strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown action: {action!r}")

    target_cls = TARGET_TYPES.get(target_type.strip().lower())
    if target_cls is None:
        raise ValidationError(f"Unknown target type: {target_type!r}")

    decision = resolve(db, user, act, target_cls(target_id))
    return {
        "action": act.value,
        "target_type": target_type,
        "target_id": target_id,
        "decision": decision.value,
        "allowed": decision.value == "allowed",
    }
