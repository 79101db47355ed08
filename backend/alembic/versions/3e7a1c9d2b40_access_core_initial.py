"""access core: users, entities, teams, invitations, zones

Revision ID: 3e7a1c9d2b40
Revises:
Create Date: 2026-10-19 10:12:03.418220

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3e7a1c9d2b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=254), nullable=False),  # lower
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=128), nullable=True),
        sa.Column("system_role", sa.String(length=32), nullable=False, server_default="NONE"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "entities",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("type", sa.String(length=16), nullable=False),  # venue/solo/band
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("slug", sa.String(length=120), nullable=False),
        sa.Column("tagline", sa.String(length=300), nullable=True),
        sa.Column("hero_image_url", sa.String(length=500), nullable=True),
        sa.Column("entity_kind_override", sa.String(length=16), nullable=True),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_entities_slug", "entities", ["slug"], unique=True)
    op.create_index("ix_entities_created_by", "entities", ["created_by"])

    op.create_table(
        "festivals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("slug", sa.String(length=120), nullable=False),
        sa.Column("host_entity_id", sa.Integer(), sa.ForeignKey("entities.id"), nullable=False),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
    )
    op.create_index("ix_festivals_slug", "festivals", ["slug"], unique=True)
    op.create_index("ix_festivals_host_entity_id", "festivals", ["host_entity_id"])

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("slug", sa.String(length=120), nullable=False),
        sa.Column("host_entity_id", sa.Integer(), sa.ForeignKey("entities.id"), nullable=True),
        sa.Column("festival_id", sa.Integer(), sa.ForeignKey("festivals.id"), nullable=True),
    )
    op.create_index("ix_events_slug", "events", ["slug"], unique=True)
    op.create_index("ix_events_host_entity_id", "events", ["host_entity_id"])
    op.create_index("ix_events_festival_id", "events", ["festival_id"])

    op.create_table(
        "personas",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("slug", sa.String(length=120), nullable=False),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("avatar_url", sa.String(length=500), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("category_tags", sa.JSON(), nullable=False),
    )
    op.create_index("ix_personas_user_id", "personas", ["user_id"])
    op.create_index("ix_personas_slug", "personas", ["slug"], unique=True)

    op.create_table(
        "team_memberships",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("entity_id", sa.Integer(), sa.ForeignKey("entities.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("access", sa.String(length=16), nullable=False),  # owner/admin/editor/viewer
        sa.Column("persona_id", sa.Integer(), sa.ForeignKey("personas.id", ondelete="SET NULL"), nullable=True),
        sa.Column("role_labels", sa.JSON(), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("left_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_team_memberships_entity_id", "team_memberships", ["entity_id"])
    op.create_index("ix_team_memberships_user_id", "team_memberships", ["user_id"])
    # одна активная запись на пару (entity, user); ушедшие не мешают
    op.create_index(
        "uq_team_membership_active",
        "team_memberships",
        ["entity_id", "user_id"],
        unique=True,
        postgresql_where=sa.text("left_at IS NULL"),
        sqlite_where=sa.text("left_at IS NULL"),
    )

    op.create_table(
        "entity_persona_bindings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("entity_id", sa.Integer(), sa.ForeignKey("entities.id", ondelete="CASCADE"), nullable=False),
        sa.Column("persona_id", sa.Integer(), sa.ForeignKey("personas.id", ondelete="CASCADE"), nullable=False),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("role_label", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("entity_id", "persona_id", name="uq_entity_persona_binding"),
    )
    op.create_index("ix_entity_persona_bindings_entity_id", "entity_persona_bindings", ["entity_id"])
    op.create_index("ix_entity_persona_bindings_persona_id", "entity_persona_bindings", ["persona_id"])

    op.create_table(
        "access_invitations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("entity_id", sa.Integer(), sa.ForeignKey("entities.id", ondelete="CASCADE"), nullable=False),
        sa.Column("festival_id", sa.Integer(), sa.ForeignKey("festivals.id", ondelete="SET NULL"), nullable=True),
        sa.Column("token", sa.String(length=64), nullable=False),
        sa.Column("email", sa.String(length=254), nullable=True),
        sa.Column("invited_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=True),
        sa.Column("invited_persona_id", sa.Integer(), sa.ForeignKey("personas.id", ondelete="SET NULL"), nullable=True),
        sa.Column("access", sa.String(length=16), nullable=False),  # admin/editor/viewer
        sa.Column("role_labels", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("invited_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("invited_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_access_invitations_entity_id", "access_invitations", ["entity_id"])
    op.create_index("ix_access_invitations_token", "access_invitations", ["token"], unique=True)
    op.create_index("ix_access_invitations_email", "access_invitations", ["email"])
    op.create_index("ix_access_invitations_invited_user_id", "access_invitations", ["invited_user_id"])

    for table, scope_col, scope_fk, uq_name in (
        ("event_participants", "event_id", "events.id", "uq_event_participant_zone"),
        ("festival_participants", "festival_id", "festivals.id", "uq_festival_participant_zone"),
    ):
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(scope_col, sa.Integer(), sa.ForeignKey(scope_fk, ondelete="CASCADE"), nullable=False),
            sa.Column("zone", sa.String(length=16), nullable=False),  # on_stage/backstage/host
            sa.Column("participant_kind", sa.String(length=16), nullable=False),  # persona/entity
            sa.Column("participant_id", sa.Integer(), nullable=False),
            sa.Column("sort_order", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("role_label", sa.String(length=100), nullable=True),
            sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.UniqueConstraint(scope_col, "zone", "participant_kind", "participant_id", name=uq_name),
        )
        op.create_index(f"ix_{table}_{scope_col}", table, [scope_col])


def downgrade():
    for table, scope_col in (("festival_participants", "festival_id"), ("event_participants", "event_id")):
        op.drop_index(f"ix_{table}_{scope_col}", table_name=table)
        op.drop_table(table)

    op.drop_index("ix_access_invitations_invited_user_id", table_name="access_invitations")
    op.drop_index("ix_access_invitations_email", table_name="access_invitations")
    op.drop_index("ix_access_invitations_token", table_name="access_invitations")
    op.drop_index("ix_access_invitations_entity_id", table_name="access_invitations")
    op.drop_table("access_invitations")

    op.drop_index("ix_entity_persona_bindings_persona_id", table_name="entity_persona_bindings")
    op.drop_index("ix_entity_persona_bindings_entity_id", table_name="entity_persona_bindings")
    op.drop_table("entity_persona_bindings")

    op.drop_index("uq_team_membership_active", table_name="team_memberships")
    op.drop_index("ix_team_memberships_user_id", table_name="team_memberships")
    op.drop_index("ix_team_memberships_entity_id", table_name="team_memberships")
    op.drop_table("team_memberships")

    op.drop_index("ix_personas_slug", table_name="personas")
    op.drop_index("ix_personas_user_id", table_name="personas")
    op.drop_table("personas")

    op.drop_index("ix_events_festival_id", table_name="events")
    op.drop_index("ix_events_host_entity_id", table_name="events")
    op.drop_index("ix_events_slug", table_name="events")
    op.drop_table("events")

    op.drop_index("ix_festivals_host_entity_id", table_name="festivals")
    op.drop_index("ix_festivals_slug", table_name="festivals")
    op.drop_table("festivals")

    op.drop_index("ix_entities_created_by", table_name="entities")
    op.drop_index("ix_entities_slug", table_name="entities")
    op.drop_table("entities")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
