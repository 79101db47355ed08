from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, func

from backstage.core.db import Base


class AccessRequest(Base):
    """Someone without an account asks for backstage access."""

    __tablename__ = "access_requests"

    id = Column(Integer, primary_key=True)

    name = Column(String(128), nullable=False)
    email = Column(String(254), nullable=False, index=True)  # lower
    role_type = Column(String(32), nullable=False)
    message = Column(Text, nullable=True)

    status = Column(String(16), nullable=False, default="new")  # new/approved/rejected

    email_verified = Column(Boolean, nullable=False, default=False)
    # cleared once used
    verification_token = Column(String(64), nullable=True, unique=True, index=True)
    verification_sent_at = Column(DateTime(timezone=True), nullable=True)

    admin_notes = Column(Text, nullable=True)
    reviewed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
