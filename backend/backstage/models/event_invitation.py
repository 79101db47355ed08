from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backstage.core.db import Base


class EventInvitation(Base):
    """An event host asks a project entity to take part in an event.

    Accepting puts the entity on stage and gives the inviter access_on_accept
    on the entity's team.
    """

    __tablename__ = "event_invitations"

    id: Mapped[int] = mapped_column(primary_key=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), index=True)
    entity_id: Mapped[int] = mapped_column(ForeignKey("entities.id", ondelete="CASCADE"), index=True)

    invited_by: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    invited_by_persona_id: Mapped[int | None] = mapped_column(
        ForeignKey("personas.id", ondelete="SET NULL"), nullable=True
    )

    access_on_accept: Mapped[str] = mapped_column(String(16), nullable=False, default="viewer")
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")  # pending/accepted/declined
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    responded_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    event = relationship("Event")
    entity = relationship("Entity")
    inviter = relationship("User", foreign_keys=[invited_by])
    inviter_persona = relationship("Persona")
