from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backstage.core.db import Base


class Festival(Base):
    """A festival is administered through the team of its host entity."""

    __tablename__ = "festivals"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), unique=True, index=True)

    host_entity_id: Mapped[int] = mapped_column(ForeignKey("entities.id"), index=True)
    created_by: Mapped[int] = mapped_column(ForeignKey("users.id"))

    host_entity = relationship("Entity")
    events = relationship("Event", back_populates="festival")
