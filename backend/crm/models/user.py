"""
User and related models for authentication and telephony settings.

Users are provisioned by the external authentication provider; ``auth_id``
is the provider's identifier and the only link between a session and a row.
"""

import enum
import uuid

from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum, ForeignKey, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base


# =============================================================================
# Enums
# =============================================================================


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    BDR = "bdr"
    SDR = "sdr"


# =============================================================================
# User Model
# =============================================================================


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    auth_id = Column(String(255), unique=True, nullable=False, index=True)
    email = Column(String(255), nullable=True, index=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    avatar_url = Column(String(1000), nullable=True)
    role = Column(
        SQLEnum(UserRole, name="user_role", native_enum=False, length=20,
                values_callable=lambda e: [x.value for x in e]),
        nullable=False,
        default=UserRole.BDR,
    )
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.current_timestamp())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.current_timestamp(), onupdate=func.current_timestamp())

    voip_settings = relationship("UserVoipSettings", uselist=False, back_populates="user", lazy="joined")

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role.value})>"


# =============================================================================
# UserVoipSettings Model
# =============================================================================


class UserVoipSettings(Base):
    """Twilio number assignment and recording preferences for one user."""
    __tablename__ = "user_voip_settings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    assigned_phone_number = Column(String(32), nullable=True)
    caller_id_number = Column(String(32), nullable=True)
    auto_record = Column(Boolean, nullable=False, default=True)
    auto_transcribe = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.current_timestamp())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.current_timestamp(), onupdate=func.current_timestamp())

    user = relationship("User", back_populates="voip_settings")
