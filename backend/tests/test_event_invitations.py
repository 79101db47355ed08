import pytest

from backstage.core.errors import AlreadyProcessedError, ConflictError, NotFoundError, PermissionDenied, ValidationError
from backstage.services import event_invitations as ev_inv_svc
from backstage.services.access import get_active_membership
from backstage.services.personas import create_persona
from backstage.services.team import add_team_member
from backstage.services.zones import ZoneScope, list_zone, set_zone_assignment


@pytest.fixture
def stage(db, make_user, make_entity, make_event):
    alice = make_user("alice@example.com")
    bob = make_user("bob@example.com")
    venue = make_entity(alice, name="Blå")
    band = make_entity(bob, type="band", name="Kvelertak")
    event = make_event(host=venue)
    return alice, bob, venue, band, event


def _invite(db, alice, event, band, **kwargs):
    return ev_inv_svc.create_event_invitation(db, inviter=alice, event_id=event.id, entity_id=band.id, **kwargs)


def _on_stage(db, event):
    rows = list_zone(db, scope=ZoneScope(event_id=event.id), zone="on_stage", include_private=True)
    return [(r["participant_kind"], r["participant_id"], r["sort_order"]) for r in rows]


def test_accept_puts_project_on_stage_and_grants_inviter(db, stage):
    alice, bob, _, band, event = stage
    inv = _invite(db, alice, event, band, access_on_accept="editor", message="  Hei!  ")

    assert inv.status == "pending"
    assert inv.message == "Hei!"
    assert _on_stage(db, event) == []

    out = ev_inv_svc.accept_event_invitation(db, actor=bob, invitation_id=inv.id)

    assert out.status == "accepted"
    assert out.responded_by == bob.id
    assert out.responded_at is not None
    assert _on_stage(db, event) == [("entity", band.id, 1)]
    assert get_active_membership(db, entity_id=band.id, user_id=alice.id).access == "editor"


def test_accept_twice_is_a_noop(db, stage):
    alice, bob, _, band, event = stage
    inv = _invite(db, alice, event, band)

    ev_inv_svc.accept_event_invitation(db, actor=bob, invitation_id=inv.id)
    ev_inv_svc.accept_event_invitation(db, actor=bob, invitation_id=inv.id)

    assert _on_stage(db, event) == [("entity", band.id, 1)]


def test_accept_appends_after_existing_lineup(db, stage, make_user):
    alice, bob, _, band, event = stage
    opener = create_persona(db, owner=make_user(), name="Opener", is_public=True)
    set_zone_assignment(
        db,
        actor=alice,
        scope=ZoneScope(event_id=event.id),
        zone="on_stage",
        participant_kind="persona",
        participant_id=opener.id,
    )
    inv = _invite(db, alice, event, band)
    ev_inv_svc.accept_event_invitation(db, actor=bob, invitation_id=inv.id)

    assert _on_stage(db, event) == [("persona", opener.id, 1), ("entity", band.id, 2)]


def test_accept_never_lowers_inviter_access(db, stage):
    alice, bob, _, band, event = stage
    add_team_member(db, actor=bob, entity_id=band.id, user_id=alice.id, access="admin")
    inv = _invite(db, alice, event, band, access_on_accept="viewer")

    ev_inv_svc.accept_event_invitation(db, actor=bob, invitation_id=inv.id)

    assert get_active_membership(db, entity_id=band.id, user_id=alice.id).access == "admin"


def test_only_projects_are_invited(db, stage, make_user, make_entity):
    alice, _, _, _, event = stage
    other_venue = make_entity(make_user(), name="Rockefeller")

    with pytest.raises(ValidationError):
        _invite(db, alice, event, other_venue)


def test_validation(db, stage):
    alice, _, _, band, event = stage

    with pytest.raises(ValidationError):
        _invite(db, alice, event, band, access_on_accept="owner")
    with pytest.raises(NotFoundError):
        ev_inv_svc.create_event_invitation(db, inviter=alice, event_id=9999, entity_id=band.id)
    with pytest.raises(NotFoundError):
        ev_inv_svc.create_event_invitation(db, inviter=alice, event_id=event.id, entity_id=9999)


def test_inviter_persona_must_be_theirs(db, stage):
    alice, bob, _, band, event = stage
    bobs = create_persona(db, owner=bob, name="Bob")
    alices = create_persona(db, owner=alice, name="Alice")

    with pytest.raises(ValidationError):
        _invite(db, alice, event, band, invited_by_persona_id=bobs.id)
    inv = _invite(db, alice, event, band, invited_by_persona_id=alices.id)
    assert inv.invited_by_persona_id == alices.id


def test_inviter_needs_admin_on_event_host(db, stage, make_user):
    _, _, _, band, event = stage
    outsider = make_user()

    with pytest.raises(PermissionDenied):
        ev_inv_svc.create_event_invitation(db, inviter=outsider, event_id=event.id, entity_id=band.id)


def test_one_pending_invitation_per_project(db, stage):
    alice, bob, _, band, event = stage
    first = _invite(db, alice, event, band)

    with pytest.raises(ConflictError):
        _invite(db, alice, event, band)

    ev_inv_svc.decline_event_invitation(db, actor=bob, invitation_id=first.id)
    again = _invite(db, alice, event, band)
    assert again.id != first.id


def test_only_project_admins_answer(db, stage, make_user):
    alice, bob, _, band, event = stage
    crew = make_user()
    add_team_member(db, actor=bob, entity_id=band.id, user_id=crew.id, access="editor")
    inv = _invite(db, alice, event, band)

    for actor in (alice, crew):
        with pytest.raises(PermissionDenied):
            ev_inv_svc.accept_event_invitation(db, actor=actor, invitation_id=inv.id)
        with pytest.raises(PermissionDenied):
            ev_inv_svc.decline_event_invitation(db, actor=actor, invitation_id=inv.id)


def test_declined_cannot_be_accepted(db, stage):
    alice, bob, _, band, event = stage
    inv = _invite(db, alice, event, band)

    out = ev_inv_svc.decline_event_invitation(db, actor=bob, invitation_id=inv.id)
    assert out.status == "declined"

    with pytest.raises(AlreadyProcessedError):
        ev_inv_svc.accept_event_invitation(db, actor=bob, invitation_id=inv.id)
    assert _on_stage(db, event) == []
    assert get_active_membership(db, entity_id=band.id, user_id=alice.id) is None

    # declining again changes nothing
    assert ev_inv_svc.decline_event_invitation(db, actor=bob, invitation_id=inv.id).status == "declined"


def test_listings(db, stage, make_user):
    alice, bob, _, band, event = stage
    answered = _invite(db, alice, event, band)
    ev_inv_svc.decline_event_invitation(db, actor=bob, invitation_id=answered.id)
    pending = _invite(db, alice, event, band)

    assert [i.id for i in ev_inv_svc.list_event_invitations(db, actor=alice, event_id=event.id)] == [
        pending.id,
        answered.id,
    ]
    assert [i.id for i in ev_inv_svc.list_entity_event_invitations(db, actor=bob, entity_id=band.id)] == [pending.id]
    everything = ev_inv_svc.list_entity_event_invitations(db, actor=bob, entity_id=band.id, pending_only=False)
    assert len(everything) == 2

    outsider = make_user()
    with pytest.raises(PermissionDenied):
        ev_inv_svc.list_event_invitations(db, actor=outsider, event_id=event.id)
    with pytest.raises(PermissionDenied):
        ev_inv_svc.list_entity_event_invitations(db, actor=outsider, entity_id=band.id)
