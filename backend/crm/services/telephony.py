"""
Twilio Voice service.

Wraps the Twilio REST client for the operations the dialer needs:
placing outbound calls, hanging up and minting browser access tokens.
"""

import logging
from typing import Optional

from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.jwt.access_token import AccessToken
from twilio.jwt.access_token.grants import VoiceGrant
from twilio.rest import Client

from ..core.config import settings
from . import twiml


logger = logging.getLogger("crm.telephony")


class TelephonyError(Exception):
    """A Twilio operation failed. The message is safe to log, not to return."""


class TwilioVoiceService:
    """Outbound voice operations against the Twilio REST API."""

    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def is_configured(self) -> bool:
        return self._client is not None or settings.twilio_configured

    @property
    def client(self) -> Client:
        if self._client is None:
            if not settings.twilio_configured:
                raise TelephonyError("Twilio credentials not configured")
            self._client = Client(
                settings.twilio_account_sid,
                settings.twilio_auth_token,
                region=settings.twilio_region or None,
                edge=settings.twilio_edge or None,
            )
        return self._client

    # =========================================================================
    # Calls
    # =========================================================================

    def make_outbound_call(
        self,
        from_number: str,
        to_number: str,
        record: bool = True,
        timeout: int = twiml.DIAL_TIMEOUT_SECONDS,
    ) -> str:
        """
        Place a call; Twilio fetches the call's TwiML from the voice webhook.

        Returns:
            The new call's SID
        """
        params = {
            "to": to_number,
            "from_": from_number,
            "url": f"{settings.public_base_url}/api/webhooks/twilio/voice",
            "timeout": timeout,
            "status_callback": twiml.status_callback_url(),
            "status_callback_event": twiml.STATUS_CALLBACK_EVENTS.split(),
        }
        if record:
            params["record"] = True
            params["recording_status_callback"] = twiml.recording_callback_url()

        try:
            call = self.client.calls.create(**params)
        except TwilioRestException as e:
            logger.error(f"Twilio rejected call {from_number} -> {to_number}: {e.msg} (Code: {e.code})")
            raise TelephonyError(f"Twilio error {e.code}") from e
        except TwilioException as e:
            logger.error(f"Twilio call {from_number} -> {to_number} failed: {e}")
            raise TelephonyError(str(e)) from e

        logger.info(f"Outbound call placed {from_number} -> {to_number} (SID: {call.sid})")
        return call.sid

    def end_call(self, call_sid: str) -> str:
        """Complete a live call. Returns Twilio's reported status."""
        try:
            call = self.client.calls(call_sid).update(status="completed")
        except TwilioException as e:
            logger.error(f"Failed to end call {call_sid}: {e}")
            raise TelephonyError(f"Could not end call {call_sid}") from e
        logger.info(f"Call {call_sid} ended")
        return call.status

    # =========================================================================
    # Browser client tokens
    # =========================================================================

    def create_access_token(self, identity: str) -> str:
        """
        Mint a Voice SDK access token for ``identity``.

        Uses the API key pair when configured, else the account credentials.
        """
        if not settings.twilio_account_sid:
            raise TelephonyError("Twilio credentials not configured")

        token = AccessToken(
            settings.twilio_account_sid,
            settings.twilio_api_key or settings.twilio_account_sid,
            settings.twilio_api_secret or settings.twilio_auth_token,
            identity=identity,
            ttl=settings.twilio_token_ttl_seconds,
            region=settings.twilio_region or None,
        )
        token.add_grant(VoiceGrant(
            incoming_allow=True,
            outgoing_application_sid=settings.twilio_twiml_app_sid or None,
        ))
        return token.to_jwt()


_voice_service: Optional[TwilioVoiceService] = None


def get_voice_service() -> TwilioVoiceService:
    """FastAPI dependency returning the process-wide voice service."""
    global _voice_service
    if _voice_service is None:
        _voice_service = TwilioVoiceService()
    return _voice_service
