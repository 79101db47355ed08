from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from backstage.core.access import Action, EntityTarget
from backstage.core.errors import NotFoundError, PermissionDenied, ValidationError
from backstage.models.entity import Entity
from backstage.models.persona import Persona
from backstage.models.persona_binding import PersonaBinding
from backstage.models.user import User
from backstage.services.access import require
from backstage.services.entities import unique_slug


@dataclass(frozen=True)
class PersonaScope:
    """Which persona the user is currently acting as.

    Passed explicitly into queries that filter by persona; persona_id=None
    means "all of my personas".
    """

    user_id: int
    persona_id: int | None = None


def resolve_persona_scope(db: Session, *, user: User, persona_id: int | None) -> PersonaScope:
    if persona_id is None:
        return PersonaScope(user_id=user.id)
    persona = db.get(Persona, persona_id)
    if persona is None or persona.user_id != user.id:
        raise PermissionDenied("Persona does not belong to the current user")
    return PersonaScope(user_id=user.id, persona_id=persona.id)


def _clean_tags(tags: list[str] | None) -> list[str]:
    out = [t.strip().lower() for t in (tags or []) if t and t.strip()]
    # уникализируем, сохраняя порядок
    return list(dict.fromkeys(out))


def create_persona(
    db: Session,
    *,
    owner: User,
    name: str,
    slug: str | None = None,
    is_public: bool = False,
    avatar_url: str | None = None,
    bio: str | None = None,
    category_tags: list[str] | None = None,
) -> Persona:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name is required")

    persona = Persona(
        user_id=owner.id,
        name=name,
        slug=unique_slug(db, Persona, slug or name, fallback="persona"),
        is_public=is_public,
        avatar_url=avatar_url,
        bio=bio,
        category_tags=_clean_tags(category_tags),
    )
    db.add(persona)
    db.commit()
    db.refresh(persona)
    return persona


def get_owned_persona(db: Session, *, owner: User, persona_id: int) -> Persona:
    persona = db.get(Persona, persona_id)
    if persona is None:
        raise NotFoundError("Persona not found")
    if persona.user_id != owner.id:
        raise PermissionDenied("Only the owner can edit this persona")
    return persona


def update_persona(
    db: Session,
    *,
    owner: User,
    persona_id: int,
    name: str | None = None,
    is_public: bool | None = None,
    avatar_url: str | None = None,
    bio: str | None = None,
    category_tags: list[str] | None = None,
) -> Persona:
    persona = get_owned_persona(db, owner=owner, persona_id=persona_id)

    if name is not None:
        v = name.strip()
        if not v:
            raise ValidationError("Name cannot be empty")
        persona.name = v
    if is_public is not None:
        persona.is_public = bool(is_public)
    # пустые строки считаем как None
    if avatar_url is not None:
        persona.avatar_url = avatar_url.strip() or None
    if bio is not None:
        persona.bio = bio.strip() or None
    if category_tags is not None:
        persona.category_tags = _clean_tags(category_tags)

    db.commit()
    db.refresh(persona)
    return persona


def list_my_personas(db: Session, *, owner: User) -> list[Persona]:
    return list(
        db.execute(select(Persona).where(Persona.user_id == owner.id).order_by(Persona.id)).scalars().all()
    )


def get_public_persona(db: Session, *, slug: str) -> Persona:
    persona = db.execute(select(Persona).where(Persona.slug == slug)).scalar_one_or_none()
    if persona is None or not persona.is_public:
        raise NotFoundError("Persona not found")
    return persona


# ---------- Entity bindings (credit only, no rights) ----------

def set_persona_binding(
    db: Session,
    *,
    actor: User,
    entity_id: int,
    persona_id: int,
    is_public: bool = True,
    role_label: str | None = None,
) -> PersonaBinding:
    if db.get(Entity, entity_id) is None:
        raise NotFoundError("Entity not found")
    require(db, actor, Action.INVITE, EntityTarget(entity_id))

    if db.get(Persona, persona_id) is None:
        raise NotFoundError("Persona not found")

    label = (role_label or "").strip() or None

    binding = db.execute(
        select(PersonaBinding).where(
            PersonaBinding.entity_id == entity_id,
            PersonaBinding.persona_id == persona_id,
        )
    ).scalar_one_or_none()

    if binding:
        binding.is_public = bool(is_public)
        binding.role_label = label
    else:
        binding = PersonaBinding(
            entity_id=entity_id,
            persona_id=persona_id,
            is_public=bool(is_public),
            role_label=label,
        )
        db.add(binding)

    db.commit()
    db.refresh(binding)
    return binding


def remove_persona_binding(db: Session, *, actor: User, binding_id: int) -> None:
    binding = db.get(PersonaBinding, binding_id)
    if binding is None:
        raise NotFoundError("Binding not found")
    require(db, actor, Action.INVITE, EntityTarget(binding.entity_id))

    db.delete(binding)
    db.commit()


def list_entity_bindings(db: Session, *, entity_id: int, public_only: bool = True) -> list[PersonaBinding]:
    stmt = (
        select(PersonaBinding)
        .join(Persona, Persona.id == PersonaBinding.persona_id)
        .where(PersonaBinding.entity_id == entity_id)
        .order_by(PersonaBinding.id)
    )
    if public_only:
        stmt = stmt.where(PersonaBinding.is_public.is_(True), Persona.is_public.is_(True))
    return list(db.execute(stmt).scalars().all())


def list_persona_bindings(db: Session, *, persona_id: int, public_only: bool = True) -> list[PersonaBinding]:
    stmt = (
        select(PersonaBinding)
        .join(Entity, Entity.id == PersonaBinding.entity_id)
        .where(PersonaBinding.persona_id == persona_id)
        .order_by(PersonaBinding.id)
    )
    if public_only:
        stmt = stmt.where(PersonaBinding.is_public.is_(True), Entity.is_published.is_(True))
    return list(db.execute(stmt).scalars().all())
