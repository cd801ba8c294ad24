"""
Pydantic validation schemas for the CRM backend.

Contains request/response DTOs with validation rules.
These schemas enforce data integrity at API boundaries.
"""

from .common import (
    HealthResponse,
    ErrorResponse,
    SuccessResponse,
)
from .telephony import (
    VoiceWebhookForm,
    BrowserVoiceWebhookForm,
    CallStatusForm,
    RecordingStatusForm,
    DialActionForm,
)

__all__ = [
    # Common schemas
    "HealthResponse",
    "ErrorResponse",
    "SuccessResponse",
    # Twilio webhook forms
    "VoiceWebhookForm",
    "BrowserVoiceWebhookForm",
    "CallStatusForm",
    "RecordingStatusForm",
    "DialActionForm",
]
