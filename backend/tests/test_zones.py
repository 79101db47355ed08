import pytest

from backstage.core.errors import NotFoundError, PermissionDenied, ValidationError
from backstage.models import TeamMembership
from backstage.services import zones as zone_svc
from backstage.services.personas import create_persona
from backstage.services.zones import ZoneScope


@pytest.fixture
def lineup(db, make_user, make_entity, make_festival, make_event):
    alice = make_user()
    host = make_entity(alice, name="Festival AS", is_published=True)
    festival = make_festival(host)
    event = make_event(festival=festival)
    artists = [create_persona(db, owner=make_user(), name=n, is_public=True) for n in ("Astrid", "Bjørn", "Cato")]
    return alice, host, festival, event, artists


def _put(db, actor, scope, persona, **kwargs):
    kwargs.setdefault("zone", "on_stage")
    return zone_svc.set_zone_assignment(
        db, actor=actor, scope=scope, participant_kind="persona", participant_id=persona.id, **kwargs
    )


def _order(db, scope, zone="on_stage"):
    return [(r["participant_id"], r["sort_order"]) for r in zone_svc.list_zone(db, scope=scope, zone=zone, include_private=True)]


def test_zone_scope_needs_exactly_one_id():
    with pytest.raises(ValidationError):
        ZoneScope()
    with pytest.raises(ValidationError):
        ZoneScope(event_id=1, festival_id=1)


def test_append_and_upsert(db, lineup):
    alice, _, _, event, (a, b, c) = lineup
    scope = ZoneScope(event_id=event.id)

    _put(db, alice, scope, a)
    _put(db, alice, scope, b)
    again = _put(db, alice, scope, a, role_label="Headliner")

    assert again.sort_order == 1
    assert again.role_label == "Headliner"
    assert _order(db, scope) == [(a.id, 1), (b.id, 2)]


def test_positions_are_clamped_and_dense(db, lineup):
    alice, _, _, event, (a, b, c) = lineup
    scope = ZoneScope(event_id=event.id)
    for p in (a, b, c):
        _put(db, alice, scope, p)

    _put(db, alice, scope, c, sort_order=1)
    assert _order(db, scope) == [(c.id, 1), (a.id, 2), (b.id, 3)]

    _put(db, alice, scope, c, sort_order=99)
    assert _order(db, scope) == [(a.id, 1), (b.id, 2), (c.id, 3)]

    _put(db, alice, scope, b, sort_order=0)
    assert _order(db, scope) == [(b.id, 1), (a.id, 2), (c.id, 3)]


def test_move_swaps_neighbours(db, lineup):
    alice, _, _, event, (a, b, c) = lineup
    scope = ZoneScope(event_id=event.id)
    rows = [_put(db, alice, scope, p) for p in (a, b, c)]

    zone_svc.move_zone_assignment(db, actor=alice, scope=scope, assignment_id=rows[2].id, direction="up")
    assert _order(db, scope) == [(a.id, 1), (c.id, 2), (b.id, 3)]

    # edges are no-ops
    zone_svc.move_zone_assignment(db, actor=alice, scope=scope, assignment_id=rows[0].id, direction="up")
    zone_svc.move_zone_assignment(db, actor=alice, scope=scope, assignment_id=rows[1].id, direction="down")
    assert _order(db, scope) == [(a.id, 1), (c.id, 2), (b.id, 3)]

    with pytest.raises(ValidationError):
        zone_svc.move_zone_assignment(db, actor=alice, scope=scope, assignment_id=rows[0].id, direction="left")


def test_remove_redensifies(db, lineup):
    alice, _, _, event, (a, b, c) = lineup
    scope = ZoneScope(event_id=event.id)
    rows = [_put(db, alice, scope, p) for p in (a, b, c)]

    zone_svc.remove_zone_assignment(db, actor=alice, scope=scope, assignment_id=rows[0].id)
    assert _order(db, scope) == [(b.id, 1), (c.id, 2)]


def test_participant_may_sit_in_several_zones(db, lineup):
    alice, _, _, event, (a, _, _) = lineup
    scope = ZoneScope(event_id=event.id)
    _put(db, alice, scope, a, zone="on_stage")
    _put(db, alice, scope, a, zone="backstage")

    assert _order(db, scope, "on_stage") == [(a.id, 1)]
    assert _order(db, scope, "backstage") == [(a.id, 1)]


def test_validation(db, lineup):
    alice, host, _, event, (a, _, _) = lineup
    scope = ZoneScope(event_id=event.id)

    with pytest.raises(ValidationError):
        _put(db, alice, scope, a, zone="moshpit")
    with pytest.raises(ValidationError):
        zone_svc.set_zone_assignment(
            db, actor=alice, scope=scope, zone="host", participant_kind="venue", participant_id=host.id
        )
    with pytest.raises(NotFoundError):
        zone_svc.set_zone_assignment(
            db, actor=alice, scope=scope, zone="host", participant_kind="entity", participant_id=9999
        )
    with pytest.raises(NotFoundError):
        _put(db, alice, ZoneScope(event_id=9999), a)


def test_project_alias_normalizes_to_entity(db, lineup):
    alice, host, _, event, _ = lineup
    row = zone_svc.set_zone_assignment(
        db, actor=alice, scope=ZoneScope(event_id=event.id), zone="host", participant_kind="project", participant_id=host.id
    )
    assert row.participant_kind == "entity"


def test_outsiders_cannot_edit(db, lineup, make_user):
    _, _, festival, event, (a, _, _) = lineup
    outsider = make_user()

    with pytest.raises(PermissionDenied):
        _put(db, outsider, ZoneScope(event_id=event.id), a)
    with pytest.raises(PermissionDenied):
        _put(db, outsider, ZoneScope(festival_id=festival.id), a, zone="host")


def test_festival_crew_edits_event_lineup(db, lineup, make_user):
    _, host, festival, event, (a, _, _) = lineup
    crew = make_user()
    db.add(TeamMembership(entity_id=host.id, user_id=crew.id, access="viewer", role_labels=[]))
    db.commit()

    _put(db, crew, ZoneScope(event_id=event.id), a)
    # festival zones need editor on the host
    with pytest.raises(PermissionDenied):
        _put(db, crew, ZoneScope(festival_id=festival.id), a, zone="host")


def test_event_inherits_festival_host_and_backstage(db, lineup):
    alice, host, festival, event, (a, b, c) = lineup
    fscope = ZoneScope(festival_id=festival.id)
    escope = ZoneScope(event_id=event.id)

    zone_svc.set_zone_assignment(
        db, actor=alice, scope=fscope, zone="host", participant_kind="entity", participant_id=host.id
    )
    _put(db, alice, fscope, a, zone="backstage")
    _put(db, alice, fscope, b, zone="on_stage")
    _put(db, alice, escope, c, zone="backstage")

    host_rows = zone_svc.list_zone(db, scope=escope, zone="host")
    assert [(r["participant_id"], r["inherited"], r["name"]) for r in host_rows] == [(host.id, True, "Festival AS")]

    backstage = zone_svc.list_zone(db, scope=escope, zone="backstage")
    assert [(r["participant_id"], r["inherited"]) for r in backstage] == [(a.id, True), (c.id, False)]

    # on_stage is not inherited
    assert zone_svc.list_zone(db, scope=escope, zone="on_stage") == []


def test_removing_event_row_keeps_festival_row(db, lineup):
    alice, _, festival, event, (a, b, _) = lineup
    fscope = ZoneScope(festival_id=festival.id)
    escope = ZoneScope(event_id=event.id)

    _put(db, alice, fscope, a, zone="backstage")
    own = _put(db, alice, escope, b, zone="backstage")

    zone_svc.remove_zone_assignment(db, actor=alice, scope=escope, assignment_id=own.id)

    assert [r["participant_id"] for r in zone_svc.list_zone(db, scope=fscope, zone="backstage")] == [a.id]
    rows = zone_svc.list_zone(db, scope=escope, zone="backstage")
    assert [(r["participant_id"], r["inherited"]) for r in rows] == [(a.id, True)]


def test_festival_row_is_out_of_reach_from_event(db, lineup, make_event):
    alice, _, festival, _, (a, _, _) = lineup
    # no event rows exist yet, so the festival row id cannot hit an event row
    event = make_event(festival=festival, title="Day two")
    frow = _put(db, alice, ZoneScope(festival_id=festival.id), a, zone="host")

    with pytest.raises(NotFoundError):
        zone_svc.remove_zone_assignment(db, actor=alice, scope=ZoneScope(event_id=event.id), assignment_id=frow.id)
    with pytest.raises(NotFoundError):
        zone_svc.move_zone_assignment(
            db, actor=alice, scope=ZoneScope(event_id=event.id), assignment_id=frow.id, direction="up"
        )


def test_public_listing_hides_private_rows(db, lineup, make_user):
    alice, _, _, event, (a, b, _) = lineup
    scope = ZoneScope(event_id=event.id)
    hidden_persona = create_persona(db, owner=make_user(), name="Secret")

    _put(db, alice, scope, a)
    _put(db, alice, scope, b, is_public=False)
    _put(db, alice, scope, hidden_persona)

    public = zone_svc.list_zone(db, scope=scope, zone="on_stage")
    assert [r["participant_id"] for r in public] == [a.id]
    assert len(zone_svc.list_zone(db, scope=scope, zone="on_stage", include_private=True)) == 3
