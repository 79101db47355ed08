from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backstage.core.db import Base


class EventParticipant(Base):
    """Participant placed in a zone of a single event."""

    __tablename__ = "event_participants"
    __table_args__ = (
        UniqueConstraint(
            "event_id", "zone", "participant_kind", "participant_id", name="uq_event_participant_zone"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), index=True)

    zone: Mapped[str] = mapped_column(String(16), nullable=False)  # on_stage/backstage/host
    participant_kind: Mapped[str] = mapped_column(String(16), nullable=False)  # persona/entity
    participant_id: Mapped[int] = mapped_column(Integer, nullable=False)

    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    role_label: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    event = relationship("Event")


class FestivalParticipant(Base):
    """Participant placed in a zone of a festival.

    host/backstage rows are shown on every event of the festival (read-only there).
    """

    __tablename__ = "festival_participants"
    __table_args__ = (
        UniqueConstraint(
            "festival_id", "zone", "participant_kind", "participant_id", name="uq_festival_participant_zone"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    festival_id: Mapped[int] = mapped_column(ForeignKey("festivals.id", ondelete="CASCADE"), index=True)

    zone: Mapped[str] = mapped_column(String(16), nullable=False)
    participant_kind: Mapped[str] = mapped_column(String(16), nullable=False)
    participant_id: Mapped[int] = mapped_column(Integer, nullable=False)

    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    role_label: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    festival = relationship("Festival")
