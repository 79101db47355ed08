from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backstage.auth.deps import get_current_user, get_optional_user
from backstage.core.access import Action, EntityTarget
from backstage.core.db import get_db
from backstage.models import Persona, PersonaBinding, User
from backstage.services import personas as persona_svc
from backstage.services.access import can_perform
from backstage.services.entities import get_entity

router = APIRouter(tags=["personas"])


class PersonaCreateIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    slug: str | None = Field(default=None, max_length=100)
    is_public: bool = False
    avatar_url: str | None = None
    bio: str | None = Field(default=None, max_length=4000)
    category_tags: list[str] | None = None


class PersonaUpdateIn(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    is_public: bool | None = None
    avatar_url: str | None = None
    bio: str | None = Field(default=None, max_length=4000)
    category_tags: list[str] | None = None


class BindingIn(BaseModel):
    persona_id: int = Field(..., gt=0)
    is_public: bool = True
    role_label: str | None = Field(default=None, max_length=100)


def persona_out(p: Persona) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "slug": p.slug,
        "is_public": p.is_public,
        "avatar_url": p.avatar_url,
        "bio": p.bio,
        "category_tags": list(p.category_tags or []),
    }


def binding_out(b: PersonaBinding) -> dict:
    return {
        "id": b.id,
        "entity_id": b.entity_id,
        "persona_id": b.persona_id,
        "is_public": b.is_public,
        "role_label": b.role_label,
        "persona": {"id": b.persona.id, "name": b.persona.name, "slug": b.persona.slug} if b.persona else None,
        "entity": {"id": b.entity.id, "name": b.entity.name, "slug": b.entity.slug} if b.entity else None,
    }


@router.post("/personas", status_code=status.HTTP_201_CREATED)
def create_persona(
    payload: PersonaCreateIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    persona = persona_svc.create_persona(db, owner=user, **payload.model_dump())
    return persona_out(persona)


@router.patch("/personas/{persona_id}")
def update_persona(
    persona_id: int,
    payload: PersonaUpdateIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    persona = persona_svc.update_persona(db, owner=user, persona_id=persona_id, **payload.model_dump())
    return persona_out(persona)


@router.get("/personas/{slug}")
def get_public_persona(slug: str, db: Session = Depends(get_db)):
    persona = persona_svc.get_public_persona(db, slug=slug)
    bindings = persona_svc.list_persona_bindings(db, persona_id=persona.id, public_only=True)
    return {**persona_out(persona), "bindings": [binding_out(b) for b in bindings]}


# ---------- Bindings ----------

@router.get("/entities/{entity_id}/bindings")
def list_entity_bindings(
    entity_id: int,
    include_private: bool = Query(False),
    db: Session = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    get_entity(db, entity_id)
    # приватные видит только команда
    public_only = not (include_private and can_perform(db, user, Action.VIEW, EntityTarget(entity_id)))
    rows = persona_svc.list_entity_bindings(db, entity_id=entity_id, public_only=public_only)
    return {"entity_id": entity_id, "bindings": [binding_out(b) for b in rows]}


@router.put("/entities/{entity_id}/bindings")
def set_persona_binding(
    entity_id: int,
    payload: BindingIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    binding = persona_svc.set_persona_binding(db, actor=user, entity_id=entity_id, **payload.model_dump())
    return binding_out(binding)


@router.delete("/bindings/{binding_id}")
def remove_persona_binding(
    binding_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    persona_svc.remove_persona_binding(db, actor=user, binding_id=binding_id)
    return {"ok": True}
