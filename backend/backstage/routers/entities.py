from __future__ import annotations

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from backstage.auth.deps import get_current_user, get_optional_user
from backstage.core.access import Action, EntityTarget
from backstage.core.db import get_db
from backstage.core.errors import NotFoundError
from backstage.core.timeutil import as_utc
from backstage.models import AccessLevel, Entity, Event, Festival, TeamMembership, User
from backstage.services import entities as entity_svc
from backstage.services import team as team_svc
from backstage.services.access import can_perform

router = APIRouter(tags=["entities"])


# ---------- Schemas ----------

class EntityCreateIn(BaseModel):
    type: str = Field(..., description="venue|solo|band")
    name: str = Field(..., min_length=1, max_length=200)
    slug: str | None = Field(default=None, max_length=100)
    tagline: str | None = Field(default=None, max_length=300)
    hero_image_url: str | None = None
    acts_as_host: bool = False
    is_published: bool = False


class EntityUpdateIn(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    slug: str | None = Field(default=None, max_length=100)
    tagline: str | None = Field(default=None, max_length=300)
    hero_image_url: str | None = None


class PublishIn(BaseModel):
    is_published: bool


class TeamMemberAddIn(BaseModel):
    user_id: int = Field(..., gt=0)
    access: str = AccessLevel.VIEWER.value
    persona_id: int | None = Field(default=None, gt=0)
    role_labels: list[str] | None = None


class TeamAccessIn(BaseModel):
    access: str = Field(..., description="admin|editor|viewer")


class TeamProfileIn(BaseModel):
    role_labels: list[str] | None = None
    persona_id: int | None = Field(default=None, gt=0)


class FestivalCreateIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    host_entity_id: int = Field(..., gt=0)
    slug: str | None = Field(default=None, max_length=100)


class EventCreateIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    host_entity_id: int | None = Field(default=None, gt=0)
    festival_id: int | None = Field(default=None, gt=0)
    slug: str | None = Field(default=None, max_length=100)


# ---------- Output ----------

def entity_out(e: Entity) -> dict:
    return {
        "id": e.id,
        "type": e.type,
        "kind": e.kind.value,
        "name": e.name,
        "slug": e.slug,
        "tagline": e.tagline,
        "hero_image_url": e.hero_image_url,
        "is_published": e.is_published,
    }


def member_out(m: TeamMembership) -> dict:
    return {
        "id": m.id,
        "entity_id": m.entity_id,
        "user_id": m.user_id,
        "access": m.access,
        "role_labels": list(m.role_labels or []),
        "joined_at": as_utc(m.joined_at).isoformat() if m.joined_at else None,
        "user": {"id": m.user.id, "email": m.user.email, "full_name": m.user.full_name} if m.user else None,
        "persona": (
            {"id": m.persona.id, "name": m.persona.name, "slug": m.persona.slug, "avatar_url": m.persona.avatar_url}
            if m.persona
            else None
        ),
    }


def festival_out(f: Festival) -> dict:
    return {"id": f.id, "name": f.name, "slug": f.slug, "host_entity_id": f.host_entity_id}


def event_out(ev: Event) -> dict:
    return {
        "id": ev.id,
        "title": ev.title,
        "slug": ev.slug,
        "host_entity_id": ev.host_entity_id,
        "festival_id": ev.festival_id,
    }


# ---------- Entities ----------

@router.post("/entities", status_code=status.HTTP_201_CREATED)
def create_entity(
    payload: EntityCreateIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    entity = entity_svc.create_entity(db, creator=user, **payload.model_dump())
    return entity_out(entity)


@router.get("/entities/{slug}")
def get_entity_by_slug(
    slug: str,
    db: Session = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    entity = db.execute(select(Entity).where(Entity.slug == slug)).scalar_one_or_none()
    if entity is None:
        raise NotFoundError("Entity not found")
    # черновики видит только команда
    if not entity.is_published and not can_perform(db, user, Action.VIEW, EntityTarget(entity.id)):
        raise NotFoundError("Entity not found")
    return entity_out(entity)


@router.patch("/entities/{entity_id}")
def update_entity(
    entity_id: int,
    payload: EntityUpdateIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    entity = entity_svc.update_entity(db, actor=user, entity_id=entity_id, **payload.model_dump())
    return entity_out(entity)


@router.post("/entities/{entity_id}/publish")
def publish_entity(
    entity_id: int,
    payload: PublishIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    entity = entity_svc.set_entity_published(db, actor=user, entity_id=entity_id, is_published=payload.is_published)
    return entity_out(entity)


# ---------- Team ----------

@router.get("/entities/{entity_id}/team")
def list_team(
    entity_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    entity_svc.get_entity(db, entity_id)
    if not can_perform(db, user, Action.VIEW, EntityTarget(entity_id)):
        return {"entity_id": entity_id, "members": []}
    return {"entity_id": entity_id, "members": [member_out(m) for m in team_svc.list_team(db, entity_id=entity_id)]}


@router.post("/entities/{entity_id}/team", status_code=status.HTTP_201_CREATED)
def add_team_member(
    entity_id: int,
    payload: TeamMemberAddIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    mem = team_svc.add_team_member(db, actor=user, entity_id=entity_id, **payload.model_dump())
    return member_out(mem)


@router.patch("/team/{membership_id}/access")
def update_member_access(
    membership_id: int,
    payload: TeamAccessIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    mem = team_svc.update_member_access(db, actor=user, membership_id=membership_id, access=payload.access)
    return member_out(mem)


@router.patch("/team/{membership_id}")
def update_member_profile(
    membership_id: int,
    payload: TeamProfileIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    mem = team_svc.update_member_profile(db, actor=user, membership_id=membership_id, **payload.model_dump())
    return member_out(mem)


@router.delete("/team/{membership_id}")
def remove_member(
    membership_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    team_svc.remove_member(db, actor=user, membership_id=membership_id)
    return {"ok": True}


# ---------- Festivals / events ----------

@router.post("/festivals", status_code=status.HTTP_201_CREATED)
def create_festival(
    payload: FestivalCreateIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    festival = entity_svc.create_festival(db, creator=user, **payload.model_dump())
    return festival_out(festival)


@router.post("/events", status_code=status.HTTP_201_CREATED)
def create_event(
    payload: EventCreateIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    event = entity_svc.create_event(db, creator=user, **payload.model_dump())
    return event_out(event)
