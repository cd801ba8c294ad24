"""
Pydantic schemas for the Google Calendar and LinkedIn integrations.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator


class AuthUrlResponse(BaseModel):
    auth_url: str = Field(..., serialization_alias="authUrl")


class CalendarStatusResponse(BaseModel):
    connected: bool
    email: Optional[str] = None
    calendar_id: Optional[str] = Field(None, serialization_alias="calendarId")
    connected_at: Optional[datetime] = Field(None, serialization_alias="connectedAt")


class CalendarEventRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    summary: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    location: Optional[str] = None
    start_time: datetime = Field(..., alias="startTime")
    end_time: datetime = Field(..., alias="endTime")
    attendees: List[EmailStr] = Field(default_factory=list)
    time_zone: Optional[str] = Field(None, alias="timeZone")
    call_record_id: Optional[UUID] = Field(None, alias="callRecordId")

    @model_validator(mode="after")
    def check_times(self):
        if self.end_time <= self.start_time:
            raise ValueError("endTime must be after startTime")
        return self


class CalendarEventResponse(BaseModel):
    success: bool = True
    event_id: str = Field(..., serialization_alias="eventId")
    html_link: Optional[str] = Field(None, serialization_alias="htmlLink")
    meet_link: Optional[str] = Field(None, serialization_alias="meetLink")
