from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backstage.core.db import Base
from backstage.models.enums import EntityKind, EntityType


class Entity(Base):
    """Organizational record: a venue, a solo artist or a band."""

    __tablename__ = "entities"

    id: Mapped[int] = mapped_column(primary_key=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False)  # venue/solo/band, immutable
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), unique=True, index=True)

    tagline: Mapped[str | None] = mapped_column(String(300), nullable=True)
    hero_image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # solo/band acting as an organizer
    entity_kind_override: Mapped[str | None] = mapped_column(String(16), nullable=True)

    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_by: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    team = relationship("TeamMembership", back_populates="entity")

    @property
    def kind(self) -> EntityKind:
        if self.type == EntityType.VENUE.value:
            return EntityKind.HOST
        if self.entity_kind_override == EntityKind.HOST.value:
            return EntityKind.HOST
        return EntityKind.PROJECT
