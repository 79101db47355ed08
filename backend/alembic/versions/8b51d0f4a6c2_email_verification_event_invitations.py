"""email verification, event invitations, access requests

Revision ID: 8b51d0f4a6c2
Revises: 3e7a1c9d2b40
Create Date: 2026-10-19 15:40:27.902114

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8b51d0f4a6c2'
down_revision: Union[str, Sequence[str], None] = '3e7a1c9d2b40'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    op.add_column("users", sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.false()))
    op.add_column("users", sa.Column("email_verification_token", sa.String(length=64), nullable=True))
    op.add_column("users", sa.Column("verification_sent_at", sa.DateTime(timezone=True), nullable=True))
    op.create_index("ix_users_email_verification_token", "users", ["email_verification_token"], unique=True)

    op.create_table(
        "event_invitations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("entity_id", sa.Integer(), sa.ForeignKey("entities.id", ondelete="CASCADE"), nullable=False),
        sa.Column("invited_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "invited_by_persona_id", sa.Integer(), sa.ForeignKey("personas.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("access_on_accept", sa.String(length=16), nullable=False, server_default="viewer"),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("responded_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    )
    op.create_index("ix_event_invitations_event_id", "event_invitations", ["event_id"])
    op.create_index("ix_event_invitations_entity_id", "event_invitations", ["entity_id"])

    op.create_table(
        "access_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("email", sa.String(length=254), nullable=False),  # lower
        sa.Column("role_type", sa.String(length=32), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="new"),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("verification_token", sa.String(length=64), nullable=True),
        sa.Column("verification_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("reviewed_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_access_requests_email", "access_requests", ["email"])
    op.create_index("ix_access_requests_verification_token", "access_requests", ["verification_token"], unique=True)


def downgrade():
    op.drop_index("ix_access_requests_verification_token", table_name="access_requests")
    op.drop_index("ix_access_requests_email", table_name="access_requests")
    op.drop_table("access_requests")

    op.drop_index("ix_event_invitations_entity_id", table_name="event_invitations")
    op.drop_index("ix_event_invitations_event_id", table_name="event_invitations")
    op.drop_table("event_invitations")

    op.drop_index("ix_users_email_verification_token", table_name="users")
    with op.batch_alter_table("users") as batch:
        batch.drop_column("verification_sent_at")
        batch.drop_column("email_verification_token")
        batch.drop_column("email_verified")
