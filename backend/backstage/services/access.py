from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from backstage.core.access import (
    AccessSnapshot,
    Action,
    Decision,
    EntityTarget,
    EventHosts,
    EventTarget,
    FestivalTarget,
    LineupTarget,
    Subject,
    Target,
    decide,
)
from backstage.core.config import settings
from backstage.core.errors import PermissionDenied
from backstage.models.entity import Entity
from backstage.models.enums import AccessLevel, SystemRole
from backstage.models.event import Event
from backstage.models.festival import Festival
from backstage.models.team_membership import TeamMembership
from backstage.models.user import User

log = logging.getLogger("backstage.access")


def is_super_admin(user: User | None) -> bool:
    return bool(user and user.system_role == SystemRole.SUPER_ADMIN.value)


def subject_for(user: User | None) -> Subject | None:
    if user is None:
        return None
    return Subject(user_id=user.id, is_super_admin=is_super_admin(user))


def get_active_membership(db: Session, *, entity_id: int, user_id: int) -> TeamMembership | None:
    return db.execute(
        select(TeamMembership).where(
            TeamMembership.entity_id == entity_id,
            TeamMembership.user_id == user_id,
            TeamMembership.left_at.is_(None),
        )
    ).scalar_one_or_none()


def _target_entity_ids(db: Session, target: Target) -> tuple[set[int], dict[int, int], dict[int, EventHosts]]:
    entity_ids: set[int] = set()
    festival_hosts: dict[int, int] = {}
    event_hosts: dict[int, EventHosts] = {}

    if isinstance(target, EntityTarget):
        entity_ids.add(target.entity_id)

    elif isinstance(target, FestivalTarget):
        host_id = db.execute(
            select(Festival.host_entity_id).where(Festival.id == target.festival_id)
        ).scalar_one_or_none()
        if host_id is not None:
            festival_hosts[target.festival_id] = host_id
            entity_ids.add(host_id)

    elif isinstance(target, (EventTarget, LineupTarget)):
        row = db.execute(
            select(Event.host_entity_id, Festival.host_entity_id.label("festival_host_id"))
            .outerjoin(Festival, Festival.id == Event.festival_id)
            .where(Event.id == target.event_id)
        ).one_or_none()
        if row is not None:
            hosts = EventHosts(host_entity_id=row.host_entity_id, festival_host_entity_id=row.festival_host_id)
            event_hosts[target.event_id] = hosts
            entity_ids.update(hosts.candidates())

    return entity_ids, festival_hosts, event_hosts


def load_snapshot(db: Session, *, user_id: int, target: Target) -> AccessSnapshot:
    entity_ids, festival_hosts, event_hosts = _target_entity_ids(db, target)

    existing = set()
    memberships: dict[int, AccessLevel] = {}
    if entity_ids:
        existing = set(db.execute(select(Entity.id).where(Entity.id.in_(entity_ids))).scalars().all())
        rows = db.execute(
            select(TeamMembership.entity_id, TeamMembership.access).where(
                TeamMembership.entity_id.in_(entity_ids),
                TeamMembership.user_id == user_id,
                TeamMembership.left_at.is_(None),
            )
        ).all()
        for r in rows:
            lvl = AccessLevel.parse(r.access)
            if lvl is not None:
                memberships[r.entity_id] = lvl

    return AccessSnapshot(
        memberships=memberships,
        festival_hosts=festival_hosts,
        event_hosts=event_hosts,
        entities=frozenset(existing),
    )


def resolve(db: Session, user: User | None, action: Action, target: Target) -> Decision:
    """Tri-state answer. Never raises: lookup failures are reported as denied."""
    subject = subject_for(user)
    if subject is None:
        return Decision.DENIED
    if subject.is_super_admin:
        return Decision.ALLOWED
    try:
        snapshot = load_snapshot(db, user_id=subject.user_id, target=target)
    except Exception:
        log.exception("access lookup failed user_id=%s action=%s target=%r", subject.user_id, action.value, target)
        return Decision.DENIED
    return decide(subject, action, target, snapshot)


def can_perform(db: Session, user: User | None, action: Action, target: Target) -> bool:
    return resolve(db, user, action, target) == Decision.ALLOWED


def require(db: Session, user: User | None, action: Action, target: Target) -> None:
    """Write-path re-check; raises PermissionDenied when the resolver says no."""
    decision = resolve(db, user, action, target)
    if decision != Decision.ALLOWED:
        log.info(
            "permission denied user_id=%s action=%s target=%r decision=%s",
            getattr(user, "id", None),
            action.value,
            target,
            decision.value,
        )
        raise PermissionDenied(f"Not allowed to {action.value}")


def get_platform_entity(db: Session) -> Entity | None:
    return db.execute(
        select(Entity).where(Entity.slug == settings.PLATFORM_ENTITY_SLUG)
    ).scalar_one_or_none()


def platform_access_level(db: Session, user: User | None) -> AccessLevel | None:
    if user is None:
        return None
    if is_super_admin(user):
        return AccessLevel.OWNER
    platform = get_platform_entity(db)
    if platform is None:
        return None
    mem = get_active_membership(db, entity_id=platform.id, user_id=user.id)
    return AccessLevel.parse(mem.access) if mem else None
