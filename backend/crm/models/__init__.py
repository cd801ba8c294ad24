"""
SQLAlchemy ORM models for the CRM backend.

Contains database table definitions and relationships.
OAuth tokens are stored encrypted in the database.
"""

from .user import User, UserRole, UserVoipSettings
from .integration import UserIntegration, IntegrationProvider
from .call import CallRecording, CallQueueEntry, TERMINAL_CALL_STATUSES
from .message import SmsMessage, EmailMessage, MessageStatus, PENDING_MESSAGE_STATUSES

__all__ = [
    # User models and enums
    "User",
    "UserRole",
    "UserVoipSettings",
    # Integrations
    "UserIntegration",
    "IntegrationProvider",
    # Calls
    "CallRecording",
    "CallQueueEntry",
    "TERMINAL_CALL_STATUSES",
    # Messages
    "SmsMessage",
    "EmailMessage",
    "MessageStatus",
    "PENDING_MESSAGE_STATUSES",
]
