from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backstage.auth.deps import get_current_user, get_optional_user
from backstage.core.access import Action
from backstage.core.db import get_db
from backstage.models import User
from backstage.services import zones as zone_svc
from backstage.services.access import can_perform
from backstage.services.zones import ZoneScope

router = APIRouter(tags=["zones"])


class ZoneAssignmentIn(BaseModel):
    participant_kind: str = Field(..., description="persona|entity (project is accepted as entity)")
    participant_id: int = Field(..., gt=0)
    sort_order: int | None = Field(default=None, description="1-based position in the zone")
    role_label: str | None = Field(default=None, max_length=100)
    is_public: bool | None = None


class MoveIn(BaseModel):
    direction: str = Field(..., description="up|down")


def assignment_out(row) -> dict:
    return {
        "id": row.id,
        "zone": row.zone,
        "participant_kind": row.participant_kind,
        "participant_id": row.participant_id,
        "sort_order": row.sort_order,
        "role_label": row.role_label,
        "is_public": row.is_public,
    }


def _list(db: Session, scope: ZoneScope, zone: str, include_private: bool, user: User | None) -> dict:
    # скрытые строки показываем только тем, кто может видеть лайнап
    private_ok = include_private and can_perform(db, user, Action.VIEW, scope.target())
    items = zone_svc.list_zone(db, scope=scope, zone=zone, include_private=private_ok)
    return {"zone": zone, "items": items}


# ---------- Events ----------

@router.get("/events/{event_id}/zones/{zone}")
def list_event_zone(
    event_id: int,
    zone: str,
    include_private: bool = Query(False),
    db: Session = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    return {"event_id": event_id, **_list(db, ZoneScope(event_id=event_id), zone, include_private, user)}


@router.put("/events/{event_id}/zones/{zone}")
def set_event_zone_assignment(
    event_id: int,
    zone: str,
    payload: ZoneAssignmentIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    row = zone_svc.set_zone_assignment(
        db, actor=user, scope=ZoneScope(event_id=event_id), zone=zone, **payload.model_dump()
    )
    return assignment_out(row)


@router.post("/events/{event_id}/participants/{assignment_id}/move")
def move_event_assignment(
    event_id: int,
    assignment_id: int,
    payload: MoveIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    row = zone_svc.move_zone_assignment(
        db, actor=user, scope=ZoneScope(event_id=event_id), assignment_id=assignment_id, direction=payload.direction
    )
    return assignment_out(row)


@router.delete("/events/{event_id}/participants/{assignment_id}")
def remove_event_assignment(
    event_id: int,
    assignment_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    zone_svc.remove_zone_assignment(db, actor=user, scope=ZoneScope(event_id=event_id), assignment_id=assignment_id)
    return {"ok": True}


# ---------- Festivals ----------

@router.get("/festivals/{festival_id}/zones/{zone}")
def list_festival_zone(
    festival_id: int,
    zone: str,
    include_private: bool = Query(False),
    db: Session = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    return {"festival_id": festival_id, **_list(db, ZoneScope(festival_id=festival_id), zone, include_private, user)}


@router.put("/festivals/{festival_id}/zones/{zone}")
def set_festival_zone_assignment(
    festival_id: int,
    zone: str,
    payload: ZoneAssignmentIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    row = zone_svc.set_zone_assignment(
        db, actor=user, scope=ZoneScope(festival_id=festival_id), zone=zone, **payload.model_dump()
    )
    return assignment_out(row)


@router.post("/festivals/{festival_id}/participants/{assignment_id}/move")
def move_festival_assignment(
    festival_id: int,
    assignment_id: int,
    payload: MoveIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    row = zone_svc.move_zone_assignment(
        db,
        actor=user,
        scope=ZoneScope(festival_id=festival_id),
        assignment_id=assignment_id,
        direction=payload.direction,
    )
    return assignment_out(row)


@router.delete("/festivals/{festival_id}/participants/{assignment_id}")
def remove_festival_assignment(
    festival_id: int,
    assignment_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    zone_svc.remove_zone_assignment(
        db, actor=user, scope=ZoneScope(festival_id=festival_id), assignment_id=assignment_id
    )
    return {"ok": True}
