from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backstage.core.db import Base


class PersonaBinding(Base):
    """Public credit of a persona on an entity. Does not imply team access."""

    __tablename__ = "entity_persona_bindings"
    __table_args__ = (
        UniqueConstraint("entity_id", "persona_id", name="uq_entity_persona_binding"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    entity_id: Mapped[int] = mapped_column(ForeignKey("entities.id", ondelete="CASCADE"), index=True)
    persona_id: Mapped[int] = mapped_column(ForeignKey("personas.id", ondelete="CASCADE"), index=True)

    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    role_label: Mapped[str | None] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    entity = relationship("Entity")
    persona = relationship("Persona")
