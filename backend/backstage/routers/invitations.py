from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backstage.auth.deps import get_current_user
from backstage.core.db import get_db
from backstage.core.timeutil import as_utc
from backstage.models import Invitation, User
from backstage.routers.entities import entity_out, member_out
from backstage.services import invitations as inv_svc
from backstage.services.notify import invitation_link

router = APIRouter(tags=["invitations"])


class InvitationCreateIn(BaseModel):
    access: str = Field(..., description="admin|editor|viewer")
    entity_id: int | None = Field(default=None, gt=0)
    festival_id: int | None = Field(default=None, gt=0)
    email: str | None = Field(default=None, max_length=254)
    invited_user_id: int | None = Field(default=None, gt=0)
    invited_persona_id: int | None = Field(default=None, gt=0)
    role_labels: list[str] | None = None


class InvitationAcceptIn(BaseModel):
    token: str = Field(..., min_length=1, max_length=64)


def invitation_out(inv: Invitation) -> dict:
    return {
        "id": inv.id,
        "entity_id": inv.entity_id,
        "festival_id": inv.festival_id,
        "email": inv.email,
        "invited_user_id": inv.invited_user_id,
        "invited_persona_id": inv.invited_persona_id,
        "access": inv.access,
        "role_labels": list(inv.role_labels or []),
        "status": inv_svc.effective_status(inv).value,
        "invited_by": inv.invited_by,
        "invited_at": as_utc(inv.invited_at).isoformat() if inv.invited_at else None,
        "expires_at": as_utc(inv.expires_at).isoformat(),
        "responded_at": as_utc(inv.responded_at).isoformat() if inv.responded_at else None,
    }


@router.post("/invitations", status_code=status.HTTP_201_CREATED)
def create_invitation(
    payload: InvitationCreateIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    inv = inv_svc.create_invitation(db, inviter=user, **payload.model_dump())
    # ссылку видит только тот, кто приглашает
    return {**invitation_out(inv), "link": invitation_link(inv.token)}


@router.get("/accept-invitation")
def resolve_invitation(
    token: str | None = Query(default=None),
    email: str | None = Query(default=None),
    entity_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    """Public: the acceptance page loads this before the visitor signs in."""
    view = inv_svc.resolve_invitation(db, token=token, email=email, entity_id=entity_id)
    return view.as_dict()


@router.post("/invitations/accept")
def accept_invitation(
    payload: InvitationAcceptIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    mem = inv_svc.accept_invitation_by_token(db, token=payload.token, user=user)
    return {"ok": True, "membership": member_out(mem), "entity": entity_out(mem.entity)}


@router.post("/invitations/{invitation_id}/decline")
def decline_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    inv = inv_svc.decline_invitation(db, user=user, invitation_id=invitation_id)
    return invitation_out(inv)


@router.post("/invitations/{invitation_id}/revoke")
def revoke_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    inv = inv_svc.revoke_invitation(db, actor=user, invitation_id=invitation_id)
    return invitation_out(inv)


@router.get("/entities/{entity_id}/invitations")
def list_entity_invitations(
    entity_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    rows = inv_svc.list_entity_invitations(db, actor=user, entity_id=entity_id)
    return {"entity_id": entity_id, "invitations": [invitation_out(i) for i in rows]}
