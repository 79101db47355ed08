from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backstage.auth.deps import get_current_user
from backstage.core.db import get_db
from backstage.core.timeutil import as_utc
from backstage.models import EventInvitation, User
from backstage.services import event_invitations as ev_inv_svc

router = APIRouter(tags=["event-invitations"])


class EventInvitationCreateIn(BaseModel):
    entity_id: int = Field(..., gt=0)
    access_on_accept: str = Field(default="viewer", description="admin|editor|viewer")
    message: str | None = Field(default=None, max_length=2000)
    invited_by_persona_id: int | None = Field(default=None, gt=0)


def event_invitation_out(inv: EventInvitation) -> dict:
    return {
        "id": inv.id,
        "event_id": inv.event_id,
        "entity_id": inv.entity_id,
        "invited_by": inv.invited_by,
        "invited_by_persona_id": inv.invited_by_persona_id,
        "access_on_accept": inv.access_on_accept,
        "message": inv.message,
        "status": inv.status,
        "created_at": as_utc(inv.created_at).isoformat() if inv.created_at else None,
        "responded_at": as_utc(inv.responded_at).isoformat() if inv.responded_at else None,
        "entity": {
            "id": inv.entity.id,
            "name": inv.entity.name,
            "slug": inv.entity.slug,
            "hero_image_url": inv.entity.hero_image_url,
        },
        "event": {"id": inv.event.id, "title": inv.event.title, "slug": inv.event.slug},
        "inviter_persona": (
            {"id": inv.inviter_persona.id, "name": inv.inviter_persona.name, "slug": inv.inviter_persona.slug}
            if inv.inviter_persona
            else None
        ),
    }


@router.post("/events/{event_id}/invitations", status_code=status.HTTP_201_CREATED)
def create_event_invitation(
    event_id: int,
    payload: EventInvitationCreateIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    inv = ev_inv_svc.create_event_invitation(db, inviter=user, event_id=event_id, **payload.model_dump())
    return event_invitation_out(inv)


@router.get("/events/{event_id}/invitations")
def list_event_invitations(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    rows = ev_inv_svc.list_event_invitations(db, actor=user, event_id=event_id)
    return {"event_id": event_id, "invitations": [event_invitation_out(i) for i in rows]}


@router.get("/entities/{entity_id}/event-invitations")
def list_entity_event_invitations(
    entity_id: int,
    pending_only: bool = Query(default=True),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    rows = ev_inv_svc.list_entity_event_invitations(db, actor=user, entity_id=entity_id, pending_only=pending_only)
    return {"entity_id": entity_id, "invitations": [event_invitation_out(i) for i in rows]}


@router.post("/event-invitations/{invitation_id}/accept")
def accept_event_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    inv = ev_inv_svc.accept_event_invitation(db, actor=user, invitation_id=invitation_id)
    return event_invitation_out(inv)


@router.post("/event-invitations/{invitation_id}/decline")
def decline_event_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    inv = ev_inv_svc.decline_event_invitation(db, actor=user, invitation_id=invitation_id)
    return event_invitation_out(inv)
