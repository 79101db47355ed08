from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backstage.core.db import Base


class TeamMembership(Base):
    """Authorization edge between a user and an entity.

    left_at is a soft-delete marker. A removed member who is invited again
    gets a new row; old rows are never revived.
    """

    __tablename__ = "team_memberships"
    __table_args__ = (
        Index(
            "uq_team_membership_active",
            "entity_id",
            "user_id",
            unique=True,
            postgresql_where=text("left_at IS NULL"),
            sqlite_where=text("left_at IS NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    entity_id: Mapped[int] = mapped_column(ForeignKey("entities.id"), index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)

    access: Mapped[str] = mapped_column(String(16), nullable=False)  # owner/admin/editor/viewer
    persona_id: Mapped[int | None] = mapped_column(ForeignKey("personas.id", ondelete="SET NULL"), nullable=True)
    role_labels: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    left_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    entity = relationship("Entity", back_populates="team")
    user = relationship("User")
    persona = relationship("Persona")
