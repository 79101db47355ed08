from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from backstage.core.access import Action, FestivalTarget, LineupTarget, Target
from backstage.core.errors import NotFoundError, ValidationError
from backstage.models.entity import Entity
from backstage.models.enums import INHERITED_ZONES, ParticipantKind, Zone
from backstage.models.event import Event
from backstage.models.festival import Festival
from backstage.models.persona import Persona
from backstage.models.user import User
from backstage.models.zone_assignment import EventParticipant, FestivalParticipant
from backstage.services.access import require

log = logging.getLogger("backstage.zones")


@dataclass(frozen=True)
class ZoneScope:
    """An event or a festival; exactly one id is set."""

    event_id: int | None = None
    festival_id: int | None = None

    def __post_init__(self) -> None:
        if (self.event_id is None) == (self.festival_id is None):
            raise ValidationError("Zone scope needs exactly one of event_id / festival_id")

    @property
    def model(self):
        return EventParticipant if self.event_id is not None else FestivalParticipant

    @property
    def scope_column(self):
        return EventParticipant.event_id if self.event_id is not None else FestivalParticipant.festival_id

    @property
    def scope_id(self) -> int:
        return self.event_id if self.event_id is not None else self.festival_id

    def target(self) -> Target:
        if self.event_id is not None:
            return LineupTarget(self.event_id)
        return FestivalTarget(self.festival_id)

    def owns(self, row) -> bool:
        if self.event_id is not None:
            return isinstance(row, EventParticipant) and row.event_id == self.event_id
        return isinstance(row, FestivalParticipant) and row.festival_id == self.festival_id


def _parse_zone(zone: str) -> Zone:
    try:
        return Zone((zone or "").strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown zone: {zone!r}")


def _parse_kind(kind: str) -> ParticipantKind:
    pk = ParticipantKind.parse(kind)
    if pk is None:
        raise ValidationError(f"Unknown participant kind: {kind!r}")
    return pk


def _check_scope_exists(db: Session, scope: ZoneScope) -> None:
    if scope.event_id is not None:
        if db.get(Event, scope.event_id) is None:
            raise NotFoundError("Event not found")
    elif db.get(Festival, scope.festival_id) is None:
        raise NotFoundError("Festival not found")


def _check_participant_exists(db: Session, kind: ParticipantKind, participant_id: int) -> None:
    model = Persona if kind == ParticipantKind.PERSONA else Entity
    if db.get(model, participant_id) is None:
        raise NotFoundError(f"{kind.value.capitalize()} not found")


def _zone_rows(db: Session, scope: ZoneScope, zone: Zone) -> list:
    model = scope.model
    return list(
        db.execute(
            select(model)
            .where(scope.scope_column == scope.scope_id, model.zone == zone.value)
            .order_by(model.sort_order, model.id)
            .with_for_update()
        )
        .scalars()
        .all()
    )


def _renumber(rows: list) -> None:
    for i, r in enumerate(rows, start=1):
        if r.sort_order != i:
            r.sort_order = i


def _get_scoped_row(db: Session, scope: ZoneScope, assignment_id: int):
    row = db.get(scope.model, assignment_id)
    if row is None or not scope.owns(row):
        raise NotFoundError("Assignment not found")
    return row


def _new_row(scope: ZoneScope, zone: Zone, kind: ParticipantKind, pid: int, *, sort_order: int, role_label=None):
    fields = {"event_id": scope.event_id} if scope.event_id is not None else {"festival_id": scope.festival_id}
    return scope.model(
        **fields,
        zone=zone.value,
        participant_kind=kind.value,
        participant_id=pid,
        sort_order=sort_order,
        role_label=(role_label or "").strip() or None,
        is_public=True,
    )


def set_zone_assignment(
    db: Session,
    *,
    actor: User,
    scope: ZoneScope,
    zone: str,
    participant_kind: str,
    participant_id: int,
    sort_order: int | None = None,
    role_label: str | None = None,
    is_public: bool | None = None,
):
    """Add or update a participant in a zone.

    sort_order is a 1-based position inside the zone; the zone is renumbered
    densely in the same transaction.
    """
    z = _parse_zone(zone)
    kind = _parse_kind(participant_kind)
    _check_scope_exists(db, scope)
    require(db, actor, Action.EDIT, scope.target())
    _check_participant_exists(db, kind, participant_id)

    rows = _zone_rows(db, scope, z)
    row = next(
        (r for r in rows if r.participant_kind == kind.value and r.participant_id == participant_id),
        None,
    )

    if row is None:
        row = _new_row(scope, z, kind, participant_id, sort_order=len(rows) + 1, role_label=role_label)
        row.is_public = True if is_public is None else bool(is_public)
        db.add(row)
        rows.append(row)
    else:
        if role_label is not None:
            row.role_label = role_label.strip() or None
        if is_public is not None:
            row.is_public = bool(is_public)

    if sort_order is not None:
        rows.remove(row)
        pos = min(max(int(sort_order), 1), len(rows) + 1)
        rows.insert(pos - 1, row)

    _renumber(rows)
    db.commit()
    db.refresh(row)
    return row


def move_zone_assignment(db: Session, *, actor: User, scope: ZoneScope, assignment_id: int, direction: str):
    """Swap with the neighbour above/below. Both rows change in one commit."""
    if direction not in ("up", "down"):
        raise ValidationError("direction must be 'up' or 'down'")

    row = _get_scoped_row(db, scope, assignment_id)
    require(db, actor, Action.EDIT, scope.target())

    rows = _zone_rows(db, scope, Zone(row.zone))
    idx = rows.index(row)
    other = idx - 1 if direction == "up" else idx + 1
    if 0 <= other < len(rows):
        rows[idx], rows[other] = rows[other], rows[idx]
    _renumber(rows)
    db.commit()
    db.refresh(row)
    return row


def remove_zone_assignment(db: Session, *, actor: User, scope: ZoneScope, assignment_id: int) -> None:
    """Remove one of the scope's own rows; inherited festival rows are out of reach here."""
    row = _get_scoped_row(db, scope, assignment_id)
    require(db, actor, Action.EDIT, scope.target())

    rows = _zone_rows(db, scope, Zone(row.zone))
    rows.remove(row)
    db.delete(row)
    db.flush()
    _renumber(rows)
    db.commit()
    log.info("zone assignment removed scope=%r id=%s by=%s", scope, assignment_id, actor.id)



def place_in_zone(db: Session, *, scope: ZoneScope, zone: Zone, kind: ParticipantKind, participant_id: int):
    """Append a participant to a zone unless it is already there.

    No permission check and no commit: the caller owns the transaction.
    """
    rows = _zone_rows(db, scope, zone)
    for r in rows:
        if r.participant_kind == kind.value and r.participant_id == participant_id:
            return r

    row = _new_row(scope, zone, kind, participant_id, sort_order=len(rows) + 1)
    db.add(row)
    db.flush()
    return row


# ---------- Read ----------

def _resolve_names(db: Session, rows: list) -> dict[tuple[str, int], Any]:
    persona_ids = {r.participant_id for r in rows if r.participant_kind == ParticipantKind.PERSONA.value}
    entity_ids = {r.participant_id for r in rows if r.participant_kind == ParticipantKind.ENTITY.value}

    out: dict[tuple[str, int], Any] = {}
    if persona_ids:
        for p in db.execute(select(Persona).where(Persona.id.in_(persona_ids))).scalars():
            out[(ParticipantKind.PERSONA.value, p.id)] = p
    if entity_ids:
        for e in db.execute(select(Entity).where(Entity.id.in_(entity_ids))).scalars():
            out[(ParticipantKind.ENTITY.value, e.id)] = e
    return out


def _is_visible(row, ref) -> bool:
    if not row.is_public or ref is None:
        return False
    if isinstance(ref, Persona):
        return bool(ref.is_public)
    return bool(ref.is_published)


def list_zone(db: Session, *, scope: ZoneScope, zone: str, include_private: bool = False) -> list[dict[str, Any]]:
    """Rows of one zone in display order.

    For an event, the festival's host/backstage rows come first, flagged
    ``inherited`` (they can only be edited on the festival).
    """
    z = _parse_zone(zone)
    _check_scope_exists(db, scope)

    inherited: list = []
    if scope.event_id is not None and z in INHERITED_ZONES:
        festival_id = db.execute(select(Event.festival_id).where(Event.id == scope.event_id)).scalar_one_or_none()
        if festival_id is not None:
            inherited = list(
                db.execute(
                    select(FestivalParticipant)
                    .where(FestivalParticipant.festival_id == festival_id, FestivalParticipant.zone == z.value)
                    .order_by(FestivalParticipant.sort_order, FestivalParticipant.id)
                )
                .scalars()
                .all()
            )

    model = scope.model
    own = list(
        db.execute(
            select(model)
            .where(scope.scope_column == scope.scope_id, model.zone == z.value)
            .order_by(model.sort_order, model.id)
        )
        .scalars()
        .all()
    )

    refs = _resolve_names(db, inherited + own)
    out: list[dict[str, Any]] = []
    for is_inherited, rows in ((True, inherited), (False, own)):
        for r in rows:
            ref = refs.get((r.participant_kind, r.participant_id))
            if not include_private and not _is_visible(r, ref):
                continue
            out.append(
                {
                    "id": r.id,
                    "zone": r.zone,
                    "participant_kind": r.participant_kind,
                    "participant_id": r.participant_id,
                    "name": getattr(ref, "name", None),
                    "slug": getattr(ref, "slug", None),
                    "sort_order": r.sort_order,
                    "role_label": r.role_label,
                    "is_public": r.is_public,
                    "inherited": is_inherited,
                }
            )
    return out
