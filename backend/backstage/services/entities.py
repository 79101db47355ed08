from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from backstage.core.access import Action, EntityTarget, FestivalTarget
from backstage.core.errors import NotFoundError, ValidationError
from backstage.core.slugs import slugify
from backstage.models.entity import Entity
from backstage.models.enums import AccessLevel, EntityKind, EntityType
from backstage.models.event import Event
from backstage.models.festival import Festival
from backstage.models.team_membership import TeamMembership
from backstage.models.user import User
from backstage.services.access import require

log = logging.getLogger("backstage.entities")


def unique_slug(db: Session, model, wanted: str, *, fallback: str = "item") -> str:
    base = slugify(wanted) or fallback
    slug = base
    n = 2
    while db.execute(select(model.id).where(model.slug == slug)).first() is not None:
        slug = f"{base}-{n}"
        n += 1
    return slug


def get_entity(db: Session, entity_id: int) -> Entity:
    entity = db.get(Entity, entity_id)
    if entity is None:
        raise NotFoundError("Entity not found")
    return entity


def get_festival(db: Session, festival_id: int) -> Festival:
    festival = db.get(Festival, festival_id)
    if festival is None:
        raise NotFoundError("Festival not found")
    return festival


def get_event(db: Session, event_id: int) -> Event:
    event = db.get(Event, event_id)
    if event is None:
        raise NotFoundError("Event not found")
    return event


# создаёт сущность; создатель становится владельцем (единственный путь к owner)
def create_entity(
    db: Session,
    *,
    creator: User,
    type: str,
    name: str,
    slug: str | None = None,
    tagline: str | None = None,
    hero_image_url: str | None = None,
    acts_as_host: bool = False,
    is_published: bool = False,
) -> Entity:
    try:
        entity_type = EntityType((type or "").strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown entity type: {type!r}")

    name = (name or "").strip()
    if not name:
        raise ValidationError("Name is required")

    entity = Entity(
        type=entity_type.value,
        name=name,
        slug=unique_slug(db, Entity, slug or name, fallback=entity_type.value),
        tagline=tagline,
        hero_image_url=hero_image_url,
        entity_kind_override=EntityKind.HOST.value if acts_as_host and entity_type != EntityType.VENUE else None,
        is_published=is_published,
        created_by=creator.id,
    )
    db.add(entity)
    db.flush()  # чтобы entity.id появился

    db.add(
        TeamMembership(
            entity_id=entity.id,
            user_id=creator.id,
            access=AccessLevel.OWNER.value,
            role_labels=[],
        )
    )
    db.commit()
    db.refresh(entity)

    log.info("entity created id=%s type=%s owner=%s", entity.id, entity.type, creator.id)
    return entity


def update_entity(
    db: Session,
    *,
    actor: User,
    entity_id: int,
    name: str | None = None,
    tagline: str | None = None,
    hero_image_url: str | None = None,
    slug: str | None = None,
) -> Entity:
    entity = get_entity(db, entity_id)
    require(db, actor, Action.EDIT, EntityTarget(entity_id))

    if name is not None:
        v = name.strip()
        if not v:
            raise ValidationError("Name cannot be empty")
        entity.name = v
    if tagline is not None:
        entity.tagline = tagline.strip() or None
    if hero_image_url is not None:
        entity.hero_image_url = hero_image_url.strip() or None
    if slug is not None:
        wanted = slugify(slug)
        if not wanted:
            raise ValidationError("Invalid slug")
        if wanted != entity.slug:
            entity.slug = unique_slug(db, Entity, wanted)

    db.commit()
    db.refresh(entity)
    return entity


def set_entity_published(db: Session, *, actor: User, entity_id: int, is_published: bool) -> Entity:
    entity = get_entity(db, entity_id)
    require(db, actor, Action.PUBLISH, EntityTarget(entity_id))

    if entity.is_published != is_published:
        entity.is_published = is_published
        db.commit()
        db.refresh(entity)
        log.info("entity publish toggled id=%s is_published=%s by=%s", entity.id, is_published, actor.id)
    return entity


def create_festival(
    db: Session,
    *,
    creator: User,
    name: str,
    host_entity_id: int,
    slug: str | None = None,
) -> Festival:
    host = get_entity(db, host_entity_id)
    if host.kind != EntityKind.HOST:
        raise ValidationError("Festival host must be a host entity")
    require(db, creator, Action.EDIT, EntityTarget(host.id))

    name = (name or "").strip()
    if not name:
        raise ValidationError("Name is required")

    festival = Festival(
        name=name,
        slug=unique_slug(db, Festival, slug or name, fallback="festival"),
        host_entity_id=host.id,
        created_by=creator.id,
    )
    db.add(festival)
    db.commit()
    db.refresh(festival)
    return festival


def create_event(
    db: Session,
    *,
    creator: User,
    title: str,
    host_entity_id: int | None = None,
    festival_id: int | None = None,
    slug: str | None = None,
) -> Event:
    if host_entity_id is None and festival_id is None:
        raise ValidationError("Event needs a host entity or a festival")

    if host_entity_id is not None:
        get_entity(db, host_entity_id)
        require(db, creator, Action.EDIT, EntityTarget(host_entity_id))
    if festival_id is not None:
        get_festival(db, festival_id)
        require(db, creator, Action.EDIT, FestivalTarget(festival_id))

    title = (title or "").strip()
    if not title:
        raise ValidationError("Title is required")

    event = Event(
        title=title,
        slug=unique_slug(db, Event, slug or title, fallback="event"),
        host_entity_id=host_entity_id,
        festival_id=festival_id,
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    return event
