"""Tests for token encryption, OAuth state and webhook signatures."""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt
from svix.webhooks import Webhook, WebhookVerificationError

from conftest import WEBHOOK_SECRET, session_token

from crm.core.config import settings
from crm.core.security import (
    STATE_ALGORITHM,
    create_oauth_state,
    decode_session_token,
    decrypt_secret,
    encrypt_secret,
    verify_oauth_state,
    verify_webhook,
)


class TestEncryption:
    def test_ciphertext_differs_and_decrypts(self):
        stored = encrypt_secret("ya29.secret")

        assert stored != "ya29.secret"
        assert "ya29" not in stored
        assert decrypt_secret(stored) == "ya29.secret"

    def test_empty_values_pass_through(self):
        assert encrypt_secret(None) is None
        assert encrypt_secret("") is None
        assert decrypt_secret(None) is None

    def test_corrupted_ciphertext(self):
        with pytest.raises(ValueError) as exc:
            decrypt_secret("gAAAAAnot-a-token")
        assert "gAAAAA" not in str(exc.value)


class TestOAuthState:
    def test_binds_user_and_provider(self):
        state = create_oauth_state("42", "google")

        assert verify_oauth_state(state, "google") == "42"
        assert verify_oauth_state(state, "linkedin") is None

    def test_two_states_for_same_user_differ(self):
        assert create_oauth_state("42", "google") != create_oauth_state("42", "google")

    def test_expired_state(self):
        payload = {"sub": "42", "provider": "google", "exp": datetime.now(timezone.utc) - timedelta(seconds=1)}
        state = jwt.encode(payload, settings.secret_key, algorithm=STATE_ALGORITHM)

        assert verify_oauth_state(state, "google") is None

    def test_state_signed_with_other_key(self):
        state = jwt.encode({"sub": "42", "provider": "google"}, "someone-else", algorithm=STATE_ALGORITHM)

        assert verify_oauth_state(state, "google") is None
        assert verify_oauth_state("", "google") is None


class TestSessionTokens:
    def test_valid(self):
        assert decode_session_token(session_token("user_1"))["sub"] == "user_1"

    def test_expired(self):
        assert decode_session_token(session_token("user_1", expires_in=timedelta(minutes=-1))) is None

    def test_garbage(self):
        assert decode_session_token("not.a.jwt") is None


class TestWebhookSignature:
    body = b'{"type":"user.created","data":{"id":"user_1"}}'

    def headers(self, timestamp=None, secret=WEBHOOK_SECRET, msg_id="msg_1"):
        timestamp = timestamp or datetime.now(timezone.utc)
        return {
            "svix-id": msg_id,
            "svix-timestamp": str(int(timestamp.timestamp())),
            "svix-signature": Webhook(secret).sign(msg_id, timestamp, self.body.decode("utf-8")),
        }

    def test_valid_returns_event(self):
        event = verify_webhook(self.body, self.headers(), WEBHOOK_SECRET)

        assert event == {"type": "user.created", "data": {"id": "user_1"}}

    def test_missing_headers(self):
        with pytest.raises(WebhookVerificationError):
            verify_webhook(self.body, {}, WEBHOOK_SECRET)

    def test_stale_timestamp(self):
        headers = self.headers(datetime.now(timezone.utc) - timedelta(hours=1))

        with pytest.raises(WebhookVerificationError):
            verify_webhook(self.body, headers, WEBHOOK_SECRET)

    def test_signed_with_other_secret(self):
        headers = self.headers(secret="whsec_" + "d3Jvbmc=")

        with pytest.raises(WebhookVerificationError):
            verify_webhook(self.body, headers, WEBHOOK_SECRET)

    def test_tampered_body(self):
        with pytest.raises(WebhookVerificationError):
            verify_webhook(self.body.replace(b"user_1", b"user_2"), self.headers(), WEBHOOK_SECRET)
