from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backstage.auth.deps import get_current_user, get_persona_scope
from backstage.core.db import get_db
from backstage.models import User
from backstage.routers.auth import user_out
from backstage.routers.entities import entity_out
from backstage.routers.personas import persona_out
from backstage.services import invitations as inv_svc
from backstage.services import personas as persona_svc
from backstage.services import team as team_svc
from backstage.services.access import platform_access_level
from backstage.services.personas import PersonaScope

router = APIRouter(tags=["me"])


class ProfileUpdateIn(BaseModel):
    full_name: str | None = Field(default=None, max_length=128)


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return user_out(user)


@router.patch("/me/profile")
def update_profile(
    payload: ProfileUpdateIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    # пустые строки считаем как None
    if payload.full_name is not None:
        user.full_name = payload.full_name.strip() or None
    db.commit()
    return {"ok": True}


@router.get("/me/entities")
def my_entities(
    db: Session = Depends(get_db),
    scope: PersonaScope = Depends(get_persona_scope),
):
    rows = team_svc.list_my_entities(db, scope=scope)
    return [
        {**entity_out(e), "my_access": m.access, "membership_id": m.id, "persona_id": m.persona_id}
        for e, m in rows
    ]


@router.get("/me/personas")
def my_personas(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return [persona_out(p) for p in persona_svc.list_my_personas(db, owner=user)]


@router.get("/me/invitations")
def my_invitations(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    views = inv_svc.list_my_pending_invitations(db, user=user)
    # addressed to this user, so the token may be shown
    return [{**v.as_dict(), "token": v.invitation.token} for v in views]


@router.get("/me/platform-access")
def my_platform_access(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    lvl = platform_access_level(db, user)
    return {"access": lvl.value if lvl else None}
