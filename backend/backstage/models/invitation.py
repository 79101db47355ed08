from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from backstage.core.db import Base


class Invitation(Base):
    __tablename__ = "access_invitations"

    id = Column(Integer, primary_key=True)

    entity_id = Column(Integer, ForeignKey("entities.id", ondelete="CASCADE"), nullable=False, index=True)
    # set when the offer was made from a festival room; entity_id is then the festival's host
    festival_id = Column(Integer, ForeignKey("festivals.id", ondelete="SET NULL"), nullable=True)

    token = Column(String(64), nullable=False, unique=True, index=True)

    # exactly one of email / invited_user_id
    email = Column(String(254), nullable=True, index=True)  # lower
    invited_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    invited_persona_id = Column(Integer, ForeignKey("personas.id", ondelete="SET NULL"), nullable=True)

    access = Column(String(16), nullable=False)  # admin/editor/viewer
    role_labels = Column(JSON, nullable=False, default=list)

    status = Column(String(16), nullable=False, default="pending")

    invited_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    invited_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    expires_at = Column(DateTime(timezone=True), nullable=False)

    accepted_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    responded_at = Column(DateTime(timezone=True), nullable=True)

    entity = relationship("Entity")
    festival = relationship("Festival")
    inviter = relationship("User", foreign_keys=[invited_by])
    invited_user = relationship("User", foreign_keys=[invited_user_id])
    accepted_user = relationship("User", foreign_keys=[accepted_user_id])
