"""Access decisions over entities, festivals, events and lineups.

Everything here is pure: the caller loads an :class:`AccessSnapshot` for the
subject and the target, and :func:`decide` answers without touching the
database. The store-backed wrapper lives in ``backstage.services.access``.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Mapping, Union

from backstage.models.enums import AccessLevel


class Action(str, enum.Enum):
    VIEW = "view"
    EDIT = "edit"
    INVITE = "invite"
    PUBLISH = "publish"


REQUIRED_LEVEL: dict[Action, AccessLevel] = {
    Action.VIEW: AccessLevel.VIEWER,
    Action.EDIT: AccessLevel.EDITOR,
    Action.INVITE: AccessLevel.ADMIN,
    Action.PUBLISH: AccessLevel.ADMIN,
}

# lineup actions that any festival crew member may perform
LINEUP_READ_THROUGH = frozenset({Action.VIEW, Action.EDIT})


class Decision(str, enum.Enum):
    ALLOWED = "allowed"
    DENIED = "denied"
    NOT_APPLICABLE = "not_applicable"


@dataclass(frozen=True)
class EntityTarget:
    entity_id: int


@dataclass(frozen=True)
class FestivalTarget:
    festival_id: int


@dataclass(frozen=True)
class EventTarget:
    event_id: int


@dataclass(frozen=True)
class LineupTarget:
    """The participant zones of an event."""

    event_id: int


Target = Union[EntityTarget, FestivalTarget, EventTarget, LineupTarget]


@dataclass(frozen=True)
class Subject:
    user_id: int
    is_super_admin: bool = False


@dataclass(frozen=True)
class EventHosts:
    host_entity_id: int | None
    festival_host_entity_id: int | None

    def candidates(self) -> list[int]:
        return [x for x in (self.host_entity_id, self.festival_host_entity_id) if x is not None]


@dataclass(frozen=True)
class AccessSnapshot:
    """Records needed to decide: active memberships and how targets map to entities."""

    # entity_id -> access of the subject's single active membership
    memberships: Mapping[int, AccessLevel] = field(default_factory=dict)
    festival_hosts: Mapping[int, int] = field(default_factory=dict)
    event_hosts: Mapping[int, EventHosts] = field(default_factory=dict)
    # entities known to exist; targets outside it are not applicable
    entities: frozenset = frozenset()


def best_level(levels) -> AccessLevel | None:
    best: AccessLevel | None = None
    for lvl in levels:
        if lvl is None:
            continue
        if best is None or lvl.rank > best.rank:
            best = lvl
    return best


def _allows(level: AccessLevel | None, action: Action) -> bool:
    return level is not None and level.at_least(REQUIRED_LEVEL[action])


def decide(subject: Subject | None, action: Action, target: Target, snapshot: AccessSnapshot) -> Decision:
    if subject is None:
        return Decision.DENIED

    if subject.is_super_admin:
        return Decision.ALLOWED

    if isinstance(target, (EventTarget, LineupTarget)):
        hosts = snapshot.event_hosts.get(target.event_id)
        if hosts is None:
            return Decision.NOT_APPLICABLE

        level = best_level(snapshot.memberships.get(eid) for eid in hosts.candidates())
        if _allows(level, action):
            return Decision.ALLOWED

        if (
            isinstance(target, LineupTarget)
            and action in LINEUP_READ_THROUGH
            and hosts.festival_host_entity_id is not None
            and hosts.festival_host_entity_id in snapshot.memberships
        ):
            return Decision.ALLOWED
        return Decision.DENIED

    if isinstance(target, FestivalTarget):
        host_id = snapshot.festival_hosts.get(target.festival_id)
        if host_id is None:
            return Decision.NOT_APPLICABLE
        return Decision.ALLOWED if _allows(snapshot.memberships.get(host_id), action) else Decision.DENIED

    if isinstance(target, EntityTarget):
        if target.entity_id not in snapshot.entities:
            return Decision.NOT_APPLICABLE
        level = snapshot.memberships.get(target.entity_id)
        return Decision.ALLOWED if _allows(level, action) else Decision.DENIED

    return Decision.NOT_APPLICABLE
