"""
Pydantic schemas for Twilio webhooks and the calling API.

Twilio posts form fields in PascalCase (``To``, ``CallSid``); the webhook
models accept those names through aliases and ignore fields they do not use.
"""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.config import settings
from ..services.phone import InvalidPhoneNumber, normalize_phone_number, try_normalize_phone_number


def _required_number(value: str) -> str:
    try:
        return normalize_phone_number(value)
    except InvalidPhoneNumber as e:
        raise ValueError(str(e)) from e


def _optional_number(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return _required_number(value)


# =============================================================================
# Voice webhooks
# =============================================================================

class TwilioForm(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", str_strip_whitespace=True)


class VoiceWebhookForm(TwilioForm):
    """Parameters Twilio sends when a call reaches the general voice URL."""

    to: str = Field(..., alias="To")
    from_number: Optional[str] = Field(None, alias="From")
    call_sid: Optional[str] = Field(None, alias="CallSid")
    direction: Optional[str] = Field(None, alias="Direction")
    call_status: Optional[str] = Field(None, alias="CallStatus")

    @field_validator("to")
    @classmethod
    def validate_to(cls, v: str) -> str:
        return _required_number(v)

    @field_validator("from_number")
    @classmethod
    def validate_from(cls, v: Optional[str]) -> Optional[str]:
        # Withheld callers arrive as "anonymous" and SDK legs as "client:<identity>"
        return try_normalize_phone_number(v)

    @property
    def caller_id(self) -> Optional[str]:
        return self.from_number or settings.twilio_phone_number or None


class BrowserVoiceWebhookForm(TwilioForm):
    """Parameters from a browser Voice SDK ``connect({To, CallerId})``."""

    to: str = Field(..., alias="To")
    caller_id_param: Optional[str] = Field(None, alias="CallerId")
    call_sid: Optional[str] = Field(None, alias="CallSid")
    direction: Optional[str] = Field(None, alias="Direction")
    call_status: Optional[str] = Field(None, alias="CallStatus")

    @field_validator("to")
    @classmethod
    def validate_to(cls, v: str) -> str:
        return _required_number(v)

    @field_validator("caller_id_param")
    @classmethod
    def validate_caller_id(cls, v: Optional[str]) -> Optional[str]:
        return _optional_number(v)

    @property
    def caller_id(self) -> Optional[str]:
        return self.caller_id_param or settings.twilio_phone_number or None


# =============================================================================
# Status callbacks
# =============================================================================

class CallStatusForm(TwilioForm):
    call_sid: str = Field(..., alias="CallSid")
    call_status: str = Field(..., alias="CallStatus")
    call_duration: Optional[int] = Field(None, alias="CallDuration")
    from_number: Optional[str] = Field(None, alias="From")
    to_number: Optional[str] = Field(None, alias="To")


class RecordingStatusForm(TwilioForm):
    call_sid: str = Field(..., alias="CallSid")
    recording_sid: Optional[str] = Field(None, alias="RecordingSid")
    recording_url: Optional[str] = Field(None, alias="RecordingUrl")
    recording_status: Optional[str] = Field(None, alias="RecordingStatus")
    recording_duration: Optional[int] = Field(None, alias="RecordingDuration")


class DialActionForm(TwilioForm):
    call_sid: Optional[str] = Field(None, alias="CallSid")
    dial_call_status: Optional[str] = Field(None, alias="DialCallStatus")
    dial_call_duration: Optional[int] = Field(None, alias="DialCallDuration")
    recording_url: Optional[str] = Field(None, alias="RecordingUrl")
    recording_sid: Optional[str] = Field(None, alias="RecordingSid")
    recording_duration: Optional[int] = Field(None, alias="RecordingDuration")


# =============================================================================
# Calling API
# =============================================================================

class CallingTokenResponse(BaseModel):
    token: str
    identity: str
    phone_number: Optional[str] = Field(None, serialization_alias="phoneNumber")
    user_id: UUID = Field(..., serialization_alias="userId")


class MakeCallRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to_number: Optional[str] = Field(None, alias="toNumber")
    customer_id: Optional[str] = Field(None, alias="customerId")
    deal_id: Optional[str] = Field(None, alias="dealId")
    lead_id: Optional[str] = Field(None, alias="leadId")


class MakeCallResponse(BaseModel):
    success: bool = True
    call_sid: str = Field(..., serialization_alias="callSid")
    call_record_id: Optional[UUID] = Field(None, serialization_alias="callRecordId")


class EndCallRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    call_sid: Optional[str] = Field(None, alias="callSid")


class DtmfRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    call_sid: str = Field(..., alias="callSid", min_length=1)
    digits: str = Field(..., min_length=1, max_length=32)
