import pytest
from sqlalchemy import select

from backstage.core.errors import ConflictError, NotFoundError, PermissionDenied, ValidationError
from backstage.models import EntityKind, PersonaBinding, TeamMembership
from backstage.services import team as team_svc
from backstage.services.entities import create_entity, create_festival, set_entity_published, update_entity
from backstage.services.personas import PersonaScope, create_persona


def test_create_entity_makes_creator_owner(db, make_user):
    alice = make_user()
    venue = create_entity(db, creator=alice, type="venue", name="Blå Jazzklubb")

    assert venue.slug == "bla-jazzklubb"
    assert venue.kind == EntityKind.HOST
    rows = db.execute(select(TeamMembership).where(TeamMembership.entity_id == venue.id)).scalars().all()
    assert [(m.user_id, m.access) for m in rows] == [(alice.id, "owner")]


def test_create_entity_validates(db, make_user):
    alice = make_user()
    with pytest.raises(ValidationError):
        create_entity(db, creator=alice, type="orchestra", name="X")
    with pytest.raises(ValidationError):
        create_entity(db, creator=alice, type="band", name="  ")


def test_entity_kind(db, make_user):
    alice = make_user()
    band = create_entity(db, creator=alice, type="band", name="Kaizers")
    promoter = create_entity(db, creator=alice, type="solo", name="Promo", acts_as_host=True)
    assert band.kind == EntityKind.PROJECT
    assert promoter.kind == EntityKind.HOST


def test_slugs_are_unique(db, make_user):
    alice = make_user()
    a = create_entity(db, creator=alice, type="band", name="Motorpsycho")
    b = create_entity(db, creator=alice, type="band", name="Motorpsycho")
    assert a.slug == "motorpsycho"
    assert b.slug == "motorpsycho-2"


def test_festival_host_must_be_host_kind(db, make_user):
    alice = make_user()
    band = create_entity(db, creator=alice, type="band", name="Band")
    with pytest.raises(ValidationError):
        create_festival(db, creator=alice, name="Fest", host_entity_id=band.id)


def test_update_and_publish_need_rights(db, make_user, make_entity):
    alice = make_user()
    bob = make_user()
    venue = make_entity(alice)
    team_svc.add_team_member(db, actor=alice, entity_id=venue.id, user_id=bob.id, access="editor")

    update_entity(db, actor=bob, entity_id=venue.id, tagline="Live music")
    with pytest.raises(PermissionDenied):
        set_entity_published(db, actor=bob, entity_id=venue.id, is_published=True)

    out = set_entity_published(db, actor=alice, entity_id=venue.id, is_published=True)
    assert out.is_published is True
    assert out.tagline == "Live music"


# ---------- team ----------

def test_add_member_conflicts_on_active_row(db, make_user, make_entity):
    alice = make_user()
    bob = make_user()
    venue = make_entity(alice)
    team_svc.add_team_member(db, actor=alice, entity_id=venue.id, user_id=bob.id)

    with pytest.raises(ConflictError):
        team_svc.add_team_member(db, actor=alice, entity_id=venue.id, user_id=bob.id)


def test_add_member_requires_admin(db, make_user, make_entity):
    alice = make_user()
    bob = make_user()
    carol = make_user()
    venue = make_entity(alice)
    team_svc.add_team_member(db, actor=alice, entity_id=venue.id, user_id=bob.id, access="editor")

    with pytest.raises(PermissionDenied):
        team_svc.add_team_member(db, actor=bob, entity_id=venue.id, user_id=carol.id)


def test_owner_cannot_be_granted_or_changed(db, make_user, make_entity):
    alice = make_user()
    bob = make_user()
    venue = make_entity(alice)
    bob_mem = team_svc.add_team_member(db, actor=alice, entity_id=venue.id, user_id=bob.id)
    owner_mem = team_svc.list_team(db, entity_id=venue.id)[0]

    with pytest.raises(ValidationError):
        team_svc.update_member_access(db, actor=alice, membership_id=bob_mem.id, access="owner")
    with pytest.raises(ValidationError):
        team_svc.update_member_access(db, actor=alice, membership_id=owner_mem.id, access="viewer")
    with pytest.raises(ValidationError):
        team_svc.add_team_member(db, actor=alice, entity_id=venue.id, user_id=make_user().id, access="owner")


def test_update_member_access_is_idempotent(db, make_user, make_entity):
    alice = make_user()
    bob = make_user()
    venue = make_entity(alice)
    mem = team_svc.add_team_member(db, actor=alice, entity_id=venue.id, user_id=bob.id)

    team_svc.update_member_access(db, actor=alice, membership_id=mem.id, access="admin")
    out = team_svc.update_member_access(db, actor=alice, membership_id=mem.id, access="admin")
    assert out.access == "admin"


def test_list_team_orders_by_rank(db, make_user, make_entity):
    alice = make_user()
    venue = make_entity(alice)
    viewer = make_user()
    admin = make_user()
    team_svc.add_team_member(db, actor=alice, entity_id=venue.id, user_id=viewer.id, access="viewer")
    team_svc.add_team_member(db, actor=alice, entity_id=venue.id, user_id=admin.id, access="admin")

    assert [m.access for m in team_svc.list_team(db, entity_id=venue.id)] == ["owner", "admin", "viewer"]


def test_remove_member_rules(db, make_user, make_entity):
    alice = make_user()
    bob = make_user()
    carol = make_user()
    venue = make_entity(alice)
    bob_mem = team_svc.add_team_member(db, actor=alice, entity_id=venue.id, user_id=bob.id, access="editor")
    carol_mem = team_svc.add_team_member(db, actor=alice, entity_id=venue.id, user_id=carol.id)
    owner_mem = team_svc.list_team(db, entity_id=venue.id)[0]

    with pytest.raises(ValidationError):
        team_svc.remove_member(db, actor=alice, membership_id=owner_mem.id)
    with pytest.raises(PermissionDenied):
        team_svc.remove_member(db, actor=bob, membership_id=carol_mem.id)

    # leaving is always allowed
    team_svc.remove_member(db, actor=bob, membership_id=bob_mem.id)
    db.refresh(bob_mem)
    assert bob_mem.left_at is not None
    left_at = bob_mem.left_at

    # already gone: no-op
    team_svc.remove_member(db, actor=alice, membership_id=bob_mem.id)
    db.refresh(bob_mem)
    assert bob_mem.left_at == left_at

    assert {m.user_id for m in team_svc.list_team(db, entity_id=venue.id)} == {alice.id, carol.id}


def test_remove_unknown_member(db, make_user):
    with pytest.raises(NotFoundError):
        team_svc.remove_member(db, actor=make_user(), membership_id=999)


def test_member_profile(db, make_user, make_entity):
    alice = make_user()
    bob = make_user()
    venue = make_entity(alice)
    mem = team_svc.add_team_member(db, actor=alice, entity_id=venue.id, user_id=bob.id)
    bobs = create_persona(db, owner=bob, name="Bob")
    alices = create_persona(db, owner=alice, name="Alice")

    out = team_svc.update_member_profile(
        db, actor=bob, membership_id=mem.id, role_labels=["Lys", "Lys", "Rigg"], persona_id=bobs.id
    )
    assert out.role_labels == ["Lys", "Rigg"]
    assert out.persona_id == bobs.id

    with pytest.raises(ValidationError):
        team_svc.update_member_profile(db, actor=alice, membership_id=mem.id, persona_id=alices.id)


def test_list_my_entities_with_persona_scope(db, make_user, make_entity):
    alice = make_user()
    bob = make_user()
    venue = make_entity(alice, name="Venue")
    band = make_entity(alice, type="band", name="Band")
    other = make_entity(alice, type="band", name="Other")
    dj = create_persona(db, owner=bob, name="DJ")

    team_svc.add_team_member(db, actor=alice, entity_id=venue.id, user_id=bob.id, persona_id=dj.id)
    team_svc.add_team_member(db, actor=alice, entity_id=band.id, user_id=bob.id)
    team_svc.add_team_member(db, actor=alice, entity_id=other.id, user_id=bob.id)
    db.add(PersonaBinding(entity_id=band.id, persona_id=dj.id))
    db.commit()

    all_mine = team_svc.list_my_entities(db, scope=PersonaScope(user_id=bob.id))
    as_dj = team_svc.list_my_entities(db, scope=PersonaScope(user_id=bob.id, persona_id=dj.id))

    assert {e.id for e, _ in all_mine} == {venue.id, band.id, other.id}
    assert {e.id for e, _ in as_dj} == {venue.id, band.id}
