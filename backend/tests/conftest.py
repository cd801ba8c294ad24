"""
Pytest configuration and fixtures.

Settings are read once at import time, so the environment is fixed here
before anything from ``crm`` is imported.
"""

import base64
import os
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

import pytest

WEBHOOK_SECRET = "whsec_" + base64.b64encode(b"test-webhook-signing-secret").decode("ascii")

os.environ.update({
    "ENVIRONMENT": "test",
    "DATABASE_URL": "sqlite://",
    "APP_URL": "https://crm.example.com",
    "LOG_LEVEL": "WARNING",
    "AUTH_JWT_KEY": "test-session-signing-key",
    "AUTH_WEBHOOK_SECRET": WEBHOOK_SECRET,
    "SECRET_KEY": "test-state-signing-key",
    "ENCRYPTION_KEY": "test-encryption-key-0123456789ab",
    "CELERY_BROKER_URL": "memory://",
    "CELERY_RESULT_BACKEND": "cache+memory://",
    "TWILIO_ACCOUNT_SID": "AC" + "0" * 32,
    "TWILIO_AUTH_TOKEN": "test-twilio-auth-token",
    "TWILIO_API_KEY": "SK" + "0" * 32,
    "TWILIO_API_SECRET": "test-twilio-api-secret",
    "TWILIO_TWIML_APP_SID": "AP" + "0" * 32,
    "TWILIO_PHONE_NUMBER": "+15550001111",
    "TWILIO_VALIDATE_SIGNATURE": "false",
    "GOOGLE_CLIENT_ID": "google-client-id",
    "GOOGLE_CLIENT_SECRET": "google-client-secret",
    "GOOGLE_REDIRECT_URI": "https://crm.example.com/api/calendar/callback",
    "LINKEDIN_CLIENT_ID": "linkedin-client-id",
    "LINKEDIN_CLIENT_SECRET": "linkedin-client-secret",
    "LINKEDIN_REDIRECT_URI": "https://crm.example.com/api/linkedin/callback",
})

from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402

from crm.core.config import settings  # noqa: E402
from crm.core.database import Base, SessionLocal, engine, get_db, init_db  # noqa: E402
from crm.main import app  # noqa: E402
from crm.models import CallRecording, User, UserRole, UserVoipSettings  # noqa: E402
from crm.services.telephony import TelephonyError, get_voice_service  # noqa: E402


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
def db():
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# =============================================================================
# Users and sessions
# =============================================================================

def session_token(auth_id: str, expires_in: timedelta = timedelta(hours=1)) -> str:
    payload = {"sub": auth_id, "exp": datetime.now(timezone.utc) + expires_in}
    return jwt.encode(payload, settings.auth_jwt_key, algorithm=settings.auth_jwt_algorithm)


def auth_headers(auth_id: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {session_token(auth_id)}"}


@pytest.fixture
def make_user(db) -> Callable[..., User]:
    counter = {"n": 0}

    def _make(
        first_name: str = "Jane",
        last_name: str = "Doe",
        role: UserRole = UserRole.BDR,
        phone: Optional[str] = None,
        caller_id: Optional[str] = None,
        active: bool = True,
        email: Optional[str] = None,
    ) -> User:
        counter["n"] += 1
        user = User(
            auth_id=f"user_{counter['n']}",
            email=email or f"{first_name.lower()}.{counter['n']}@seodons.co.uk",
            first_name=first_name,
            last_name=last_name,
            role=role,
            active=active,
        )
        db.add(user)
        db.flush()
        if phone:
            db.add(UserVoipSettings(user_id=user.id, assigned_phone_number=phone, caller_id_number=caller_id))
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_call(db) -> Callable[..., CallRecording]:
    def _make(user: Optional[User], call_sid: str = "CA00000000000000000000000000000001", **fields) -> CallRecording:
        fields.setdefault("to_number", "+15551234567")
        fields.setdefault("from_number", "+15550001111")
        record = CallRecording(call_sid=call_sid, user_id=user.id if user else None, **fields)
        db.add(record)
        db.commit()
        db.refresh(record)
        return record

    return _make


# =============================================================================
# Twilio
# =============================================================================

class FakeVoiceService:
    """Records what the API asked Twilio to do."""

    def __init__(self):
        self.placed = []
        self.ended = []
        self.fail_with: Optional[Exception] = None

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    def create_access_token(self, identity: str) -> str:
        self._maybe_fail()
        return f"token-for-{identity}"

    def make_outbound_call(self, from_number: str, to_number: str, record: bool = True, timeout: int = 60) -> str:
        self._maybe_fail()
        self.placed.append({"from": from_number, "to": to_number, "record": record})
        return f"CA{len(self.placed):032d}"

    def end_call(self, call_sid: str) -> str:
        self._maybe_fail()
        self.ended.append(call_sid)
        return "completed"



@pytest.fixture
def voice() -> FakeVoiceService:
    fake = FakeVoiceService()
    app.dependency_overrides[get_voice_service] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_voice_service, None)


@pytest.fixture
def twilio_down(voice) -> FakeVoiceService:
    voice.fail_with = TelephonyError("Twilio error 20003")
    return voice
