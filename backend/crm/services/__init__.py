"""
Business logic and third-party integration services.

Services hold the logic behind the API layer: TwiML generation, Twilio
voice and SMS, SMTP email, OAuth integrations and message retries.
"""

from .phone import InvalidPhoneNumber, normalize_phone_number
from .telephony import TelephonyError, TwilioVoiceService, get_voice_service

__all__ = [
    "InvalidPhoneNumber",
    "normalize_phone_number",
    "TelephonyError",
    "TwilioVoiceService",
    "get_voice_service",
]
