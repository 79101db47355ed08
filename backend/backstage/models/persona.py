from sqlalchemy import JSON, Boolean, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backstage.core.db import Base


class Persona(Base):
    """Public-facing identity card of a user. Carries no rights."""

    __tablename__ = "personas"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), unique=True, index=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    category_tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    user = relationship("User")
