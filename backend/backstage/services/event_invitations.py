"""Event invitations: an event's host asks a project to play.

pending → accepted | declined. Accepting places the project in the event's
``on_stage`` zone and gives the inviter ``access_on_accept`` on the project's
team, both in the same commit.
"""
from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from backstage.core.access import Action, EntityTarget, EventTarget
from backstage.core.errors import AlreadyProcessedError, ConflictError, NotFoundError, ValidationError
from backstage.core.timeutil import utcnow
from backstage.models.entity import Entity
from backstage.models.enums import (
    INVITABLE_ACCESS,
    AccessLevel,
    EntityKind,
    EventInvitationStatus,
    ParticipantKind,
    Zone,
)
from backstage.models.event import Event
from backstage.models.event_invitation import EventInvitation
from backstage.models.persona import Persona
from backstage.models.team_membership import TeamMembership
from backstage.models.user import User
from backstage.services.access import get_active_membership, require
from backstage.services.zones import ZoneScope, place_in_zone

log = logging.getLogger("backstage.event_invitations")


def get_event_invitation(db: Session, invitation_id: int) -> EventInvitation:
    inv = db.get(EventInvitation, invitation_id)
    if inv is None:
        raise NotFoundError("Event invitation not found")
    return inv


def create_event_invitation(
    db: Session,
    *,
    inviter: User,
    event_id: int,
    entity_id: int,
    access_on_accept: str = "viewer",
    message: str | None = None,
    invited_by_persona_id: int | None = None,
) -> EventInvitation:
    lvl = AccessLevel.parse(access_on_accept)
    if lvl is None or lvl not in INVITABLE_ACCESS:
        raise ValidationError(f"Invalid access_on_accept: {access_on_accept!r}")

    if db.get(Event, event_id) is None:
        raise NotFoundError("Event not found")
    entity = db.get(Entity, entity_id)
    if entity is None:
        raise NotFoundError("Entity not found")
    if entity.kind != EntityKind.PROJECT:
        raise ValidationError("Only projects can be invited to an event")

    require(db, inviter, Action.INVITE, EventTarget(event_id))

    if invited_by_persona_id is not None:
        persona = db.get(Persona, invited_by_persona_id)
        if persona is None or persona.user_id != inviter.id:
            raise ValidationError("Persona does not belong to the inviter")

    pending = db.execute(
        select(EventInvitation.id).where(
            EventInvitation.event_id == event_id,
            EventInvitation.entity_id == entity_id,
            EventInvitation.status == EventInvitationStatus.PENDING.value,
        )
    ).first()
    if pending is not None:
        raise ConflictError("This project already has a pending invitation to the event")

    inv = EventInvitation(
        event_id=event_id,
        entity_id=entity_id,
        invited_by=inviter.id,
        invited_by_persona_id=invited_by_persona_id,
        access_on_accept=lvl.value,
        message=(message or "").strip() or None,
        status=EventInvitationStatus.PENDING.value,
    )
    db.add(inv)
    db.commit()
    db.refresh(inv)
    log.info("event invitation created id=%s event_id=%s entity_id=%s by=%s", inv.id, event_id, entity_id, inviter.id)
    return inv


def _grant_inviter(db: Session, inv: EventInvitation) -> TeamMembership:
    offered = AccessLevel(inv.access_on_accept)
    mem = get_active_membership(db, entity_id=inv.entity_id, user_id=inv.invited_by)
    if mem is None:
        mem = TeamMembership(
            entity_id=inv.entity_id,
            user_id=inv.invited_by,
            access=offered.value,
            persona_id=inv.invited_by_persona_id,
            role_labels=[],
        )
        db.add(mem)
        db.flush()
        return mem

    # never lowers what the inviter already has
    if not AccessLevel(mem.access).at_least(offered):
        mem.access = offered.value
    return mem


def accept_event_invitation(db: Session, *, actor: User, invitation_id: int) -> EventInvitation:
    """Answered by an admin of the invited project. Accepting twice is a no-op."""
    inv = get_event_invitation(db, invitation_id)
    require(db, actor, Action.INVITE, EntityTarget(inv.entity_id))

    status = EventInvitationStatus(inv.status)
    if status == EventInvitationStatus.ACCEPTED:
        return inv
    if status == EventInvitationStatus.DECLINED:
        raise AlreadyProcessedError("Invitation was declined")

    place_in_zone(
        db,
        scope=ZoneScope(event_id=inv.event_id),
        zone=Zone.ON_STAGE,
        kind=ParticipantKind.ENTITY,
        participant_id=inv.entity_id,
    )
    mem = _grant_inviter(db, inv)

    inv.status = EventInvitationStatus.ACCEPTED.value
    inv.responded_at = utcnow()
    inv.responded_by = actor.id
    db.commit()
    db.refresh(inv)

    log.info(
        "event invitation accepted id=%s event_id=%s entity_id=%s by=%s inviter_membership_id=%s",
        inv.id,
        inv.event_id,
        inv.entity_id,
        actor.id,
        mem.id,
    )
    return inv


def decline_event_invitation(db: Session, *, actor: User, invitation_id: int) -> EventInvitation:
    inv = get_event_invitation(db, invitation_id)
    require(db, actor, Action.INVITE, EntityTarget(inv.entity_id))

    if inv.status != EventInvitationStatus.PENDING.value:
        return inv

    inv.status = EventInvitationStatus.DECLINED.value
    inv.responded_at = utcnow()
    inv.responded_by = actor.id
    db.commit()
    db.refresh(inv)
    log.info("event invitation declined id=%s by=%s", inv.id, actor.id)
    return inv


def list_event_invitations(db: Session, *, actor: User, event_id: int) -> list[EventInvitation]:
    if db.get(Event, event_id) is None:
        raise NotFoundError("Event not found")
    require(db, actor, Action.VIEW, EventTarget(event_id))

    return list(
        db.execute(
            select(EventInvitation)
            .where(EventInvitation.event_id == event_id)
            .order_by(EventInvitation.created_at.desc(), EventInvitation.id.desc())
        )
        .scalars()
        .all()
    )


def list_entity_event_invitations(
    db: Session, *, actor: User, entity_id: int, pending_only: bool = True
) -> list[EventInvitation]:
    if db.get(Entity, entity_id) is None:
        raise NotFoundError("Entity not found")
    require(db, actor, Action.VIEW, EntityTarget(entity_id))

    stmt = select(EventInvitation).where(EventInvitation.entity_id == entity_id)
    if pending_only:
        stmt = stmt.where(EventInvitation.status == EventInvitationStatus.PENDING.value)
    return list(
        db.execute(stmt.order_by(EventInvitation.created_at.desc(), EventInvitation.id.desc())).scalars().all()
    )
