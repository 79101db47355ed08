from __future__ import annotations

import logging

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from backstage.core.access import Action, EntityTarget
from backstage.core.errors import ConflictError, NotFoundError, ValidationError
from backstage.core.timeutil import utcnow
from backstage.models.entity import Entity
from backstage.models.enums import AccessLevel
from backstage.models.persona import Persona
from backstage.models.persona_binding import PersonaBinding
from backstage.models.team_membership import TeamMembership
from backstage.models.user import User
from backstage.services.access import get_active_membership, require
from backstage.services.personas import PersonaScope

log = logging.getLogger("backstage.team")


def _parse_grantable(access: str) -> AccessLevel:
    lvl = AccessLevel.parse(access)
    if lvl is None:
        raise ValidationError(f"Unknown access level: {access!r}")
    if lvl == AccessLevel.OWNER:
        raise ValidationError("Owner access is only set when the entity is created")
    return lvl


def _check_member_persona(db: Session, *, user_id: int, persona_id: int | None) -> None:
    if persona_id is None:
        return
    persona = db.get(Persona, persona_id)
    if persona is None or persona.user_id != user_id:
        raise ValidationError("Persona does not belong to the member")


def _clean_labels(labels: list[str] | None) -> list[str]:
    return list(dict.fromkeys(x.strip() for x in (labels or []) if x and x.strip()))


def get_membership(db: Session, membership_id: int) -> TeamMembership:
    mem = db.get(TeamMembership, membership_id)
    if mem is None:
        raise NotFoundError("Team member not found")
    return mem


def list_team(db: Session, *, entity_id: int) -> list[TeamMembership]:
    """Active members only, strongest access first."""
    rows = (
        db.execute(
            select(TeamMembership)
            .options(joinedload(TeamMembership.user), joinedload(TeamMembership.persona))
            .where(TeamMembership.entity_id == entity_id, TeamMembership.left_at.is_(None))
            .order_by(TeamMembership.joined_at, TeamMembership.id)
        )
        .scalars()
        .all()
    )
    return sorted(rows, key=lambda m: -(AccessLevel.parse(m.access) or AccessLevel.VIEWER).rank)


def add_team_member(
    db: Session,
    *,
    actor: User,
    entity_id: int,
    user_id: int,
    access: str = AccessLevel.VIEWER.value,
    persona_id: int | None = None,
    role_labels: list[str] | None = None,
) -> TeamMembership:
    """Direct add by an admin (no invitation round trip)."""
    if db.get(Entity, entity_id) is None:
        raise NotFoundError("Entity not found")
    require(db, actor, Action.INVITE, EntityTarget(entity_id))

    lvl = _parse_grantable(access)
    if db.get(User, user_id) is None:
        raise NotFoundError("User not found")
    _check_member_persona(db, user_id=user_id, persona_id=persona_id)

    if get_active_membership(db, entity_id=entity_id, user_id=user_id) is not None:
        raise ConflictError("User is already on the team")

    mem = TeamMembership(
        entity_id=entity_id,
        user_id=user_id,
        access=lvl.value,
        persona_id=persona_id,
        role_labels=_clean_labels(role_labels),
    )
    db.add(mem)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("User is already on the team")
    db.refresh(mem)

    log.info("team member added entity_id=%s user_id=%s access=%s by=%s", entity_id, user_id, lvl.value, actor.id)
    return mem


def update_member_access(db: Session, *, actor: User, membership_id: int, access: str) -> TeamMembership:
    mem = get_membership(db, membership_id)
    if mem.left_at is not None:
        raise NotFoundError("Team member not found")
    require(db, actor, Action.INVITE, EntityTarget(mem.entity_id))

    lvl = _parse_grantable(access)
    if mem.access == AccessLevel.OWNER.value:
        raise ValidationError("Owner access cannot be changed")

    if mem.access != lvl.value:
        mem.access = lvl.value
        db.commit()
        db.refresh(mem)
        log.info("team access changed membership_id=%s access=%s by=%s", mem.id, lvl.value, actor.id)
    return mem


def update_member_profile(
    db: Session,
    *,
    actor: User,
    membership_id: int,
    role_labels: list[str] | None = None,
    persona_id: int | None = None,
) -> TeamMembership:
    """Role labels / representing persona. Admins, or the member for themself."""
    mem = get_membership(db, membership_id)
    if mem.left_at is not None:
        raise NotFoundError("Team member not found")
    if mem.user_id != actor.id:
        require(db, actor, Action.INVITE, EntityTarget(mem.entity_id))

    if role_labels is not None:
        mem.role_labels = _clean_labels(role_labels)
    if persona_id is not None:
        _check_member_persona(db, user_id=mem.user_id, persona_id=persona_id)
        mem.persona_id = persona_id

    db.commit()
    db.refresh(mem)
    return mem


def remove_member(db: Session, *, actor: User, membership_id: int) -> None:
    mem = get_membership(db, membership_id)
    if mem.left_at is not None:
        return
    if mem.access == AccessLevel.OWNER.value:
        raise ValidationError("The owner cannot be removed")
    if mem.user_id != actor.id:
        require(db, actor, Action.INVITE, EntityTarget(mem.entity_id))

    mem.left_at = utcnow()
    db.commit()
    log.info("team member removed membership_id=%s entity_id=%s by=%s", mem.id, mem.entity_id, actor.id)


def list_my_entities(db: Session, *, scope: PersonaScope) -> list[tuple[Entity, TeamMembership]]:
    stmt = (
        select(Entity, TeamMembership)
        .join(TeamMembership, TeamMembership.entity_id == Entity.id)
        .where(TeamMembership.user_id == scope.user_id, TeamMembership.left_at.is_(None))
        .order_by(Entity.name, Entity.id)
    )
    if scope.persona_id is not None:
        bound = select(PersonaBinding.entity_id).where(PersonaBinding.persona_id == scope.persona_id)
        stmt = stmt.where(
            or_(
                TeamMembership.persona_id == scope.persona_id,
                Entity.id.in_(bound),
            )
        )
    return [(r[0], r[1]) for r in db.execute(stmt).all()]

