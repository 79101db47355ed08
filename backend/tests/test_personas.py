import pytest

from backstage.core.access import Action, EntityTarget
from backstage.core.errors import NotFoundError, PermissionDenied, ValidationError
from backstage.services import personas as persona_svc
from backstage.services.access import can_perform
from backstage.services.team import add_team_member


def test_create_and_update_persona(db, make_user):
    bob = make_user()
    p = persona_svc.create_persona(db, owner=bob, name="DJ Bjørn", category_tags=["DJ", "dj", " Techno "])

    assert p.slug == "dj-bjorn"
    assert p.is_public is False
    assert p.category_tags == ["dj", "techno"]

    out = persona_svc.update_persona(db, owner=bob, persona_id=p.id, is_public=True, bio="  ")
    assert out.is_public is True
    assert out.bio is None


def test_only_owner_edits_persona(db, make_user):
    bob = make_user()
    carol = make_user()
    p = persona_svc.create_persona(db, owner=bob, name="Bob")

    with pytest.raises(PermissionDenied):
        persona_svc.update_persona(db, owner=carol, persona_id=p.id, name="Hijacked")
    with pytest.raises(ValidationError):
        persona_svc.update_persona(db, owner=bob, persona_id=p.id, name=" ")


def test_public_persona_lookup(db, make_user):
    bob = make_user()
    hidden = persona_svc.create_persona(db, owner=bob, name="Hidden")
    shown = persona_svc.create_persona(db, owner=bob, name="Shown", is_public=True)

    assert persona_svc.get_public_persona(db, slug=shown.slug).id == shown.id
    with pytest.raises(NotFoundError):
        persona_svc.get_public_persona(db, slug=hidden.slug)


def test_persona_scope_must_be_own_persona(db, make_user):
    bob = make_user()
    carol = make_user()
    p = persona_svc.create_persona(db, owner=bob, name="Bob")

    assert persona_svc.resolve_persona_scope(db, user=bob, persona_id=p.id).persona_id == p.id
    assert persona_svc.resolve_persona_scope(db, user=bob, persona_id=None).persona_id is None
    with pytest.raises(PermissionDenied):
        persona_svc.resolve_persona_scope(db, user=carol, persona_id=p.id)


def test_binding_grants_no_access(db, make_user, make_entity):
    alice = make_user()
    bob = make_user()
    band = make_entity(alice, type="band", name="Band")
    p = persona_svc.create_persona(db, owner=bob, name="Bob", is_public=True)

    binding = persona_svc.set_persona_binding(db, actor=alice, entity_id=band.id, persona_id=p.id, role_label="Vokal")

    assert binding.role_label == "Vokal"
    assert can_perform(db, bob, Action.VIEW, EntityTarget(band.id)) is False


def test_binding_upsert(db, make_user, make_entity):
    alice = make_user()
    bob = make_user()
    band = make_entity(alice, type="band", name="Band")
    p = persona_svc.create_persona(db, owner=bob, name="Bob", is_public=True)

    first = persona_svc.set_persona_binding(db, actor=alice, entity_id=band.id, persona_id=p.id)
    second = persona_svc.set_persona_binding(
        db, actor=alice, entity_id=band.id, persona_id=p.id, is_public=False, role_label="Gitar"
    )

    assert first.id == second.id
    assert second.is_public is False
    assert persona_svc.list_entity_bindings(db, entity_id=band.id, public_only=True) == []
    assert len(persona_svc.list_entity_bindings(db, entity_id=band.id, public_only=False)) == 1


def test_binding_needs_admin(db, make_user, make_entity):
    alice = make_user()
    bob = make_user()
    band = make_entity(alice, type="band", name="Band")
    add_team_member(db, actor=alice, entity_id=band.id, user_id=bob.id, access="editor")
    p = persona_svc.create_persona(db, owner=bob, name="Bob")

    with pytest.raises(PermissionDenied):
        persona_svc.set_persona_binding(db, actor=bob, entity_id=band.id, persona_id=p.id)

    binding = persona_svc.set_persona_binding(db, actor=alice, entity_id=band.id, persona_id=p.id)
    with pytest.raises(PermissionDenied):
        persona_svc.remove_persona_binding(db, actor=bob, binding_id=binding.id)
    persona_svc.remove_persona_binding(db, actor=alice, binding_id=binding.id)
    assert persona_svc.list_entity_bindings(db, entity_id=band.id, public_only=False) == []


def test_public_bindings_hide_private_personas(db, make_user, make_entity):
    alice = make_user()
    bob = make_user()
    band = make_entity(alice, type="band", name="Band", is_published=True)
    private = persona_svc.create_persona(db, owner=bob, name="Private")
    public = persona_svc.create_persona(db, owner=bob, name="Public", is_public=True)
    persona_svc.set_persona_binding(db, actor=alice, entity_id=band.id, persona_id=private.id)
    persona_svc.set_persona_binding(db, actor=alice, entity_id=band.id, persona_id=public.id)

    shown = persona_svc.list_entity_bindings(db, entity_id=band.id)
    assert [b.persona_id for b in shown] == [public.id]
    assert [b.entity_id for b in persona_svc.list_persona_bindings(db, persona_id=public.id)] == [band.id]
