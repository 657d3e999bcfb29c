"""Secret model: one sealed time-capsule memory."""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from database import Base


class Secret(Base):
    """
    Sealed memory with a text and/or media payload.

    Rows are written once and never updated. Anonymous readers never query this
    table directly; they go through services.disclosure.
    """

    __tablename__ = "secrets"
    __table_args__ = (
        CheckConstraint(
            "content_encrypted IS NOT NULL OR media_reference IS NOT NULL",
            name="ck_secrets_has_payload",
        ),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    content_encrypted = Column(Text, nullable=True)  # Fernet ciphertext
    media_reference = Column(String(512), nullable=True)  # object-store key, never a URL
    delivery_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    owner = relationship("User", back_populates="secrets")
