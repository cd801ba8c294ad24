"""
Third-party account connections (Google Calendar, LinkedIn).

Access and refresh tokens are stored Fernet-encrypted; see
``core.security.encrypt_secret``.
"""

import enum
import uuid

from sqlalchemy import Column, String, Text, DateTime, Enum as SQLEnum, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.sql import func

from ..core.database import Base


class IntegrationProvider(str, enum.Enum):
    GOOGLE = "google"
    LINKEDIN = "linkedin"


class UserIntegration(Base):
    __tablename__ = "user_integrations"
    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_user_integrations_user_provider"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    provider = Column(
        SQLEnum(IntegrationProvider, name="integration_provider", native_enum=False, length=20,
                values_callable=lambda e: [x.value for x in e]),
        nullable=False,
    )
    provider_user_id = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    display_name = Column(String(255), nullable=True)
    picture_url = Column(String(1000), nullable=True)

    # Encrypted at rest
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    token_expiry = Column(DateTime(timezone=True), nullable=True)
    scopes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.current_timestamp())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.current_timestamp(), onupdate=func.current_timestamp())

    def __repr__(self) -> str:
        return f"<UserIntegration(user_id={self.user_id}, provider={self.provider.value})>"
