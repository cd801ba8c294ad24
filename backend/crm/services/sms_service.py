"""
SMS service for sending text messages via Twilio.

Provides:
- SMS sending via Twilio
- A local mode that posts to a Twilio-compatible dev server
"""

import logging
from typing import Optional, Dict, Any
import requests

from twilio.rest import Client
from twilio.base.exceptions import TwilioException, TwilioRestException

from ..core.config import settings
from .phone import InvalidPhoneNumber, normalize_phone_number


logger = logging.getLogger(__name__)


class SMSService:
    """Service for sending SMS messages."""

    def __init__(self, client: Optional[Client] = None):
        """Initialize SMS service with Twilio configuration."""
        self.account_sid = settings.twilio_account_sid
        self.auth_token = settings.twilio_auth_token
        self.from_number = settings.twilio_phone_number
        self.sms_mode = settings.sms_mode.lower()
        self.local_url = settings.sms_local_url

        if client is not None:
            self.client = client
        elif self.sms_mode == "twilio" and self.account_sid and self.auth_token:
            self.client = Client(self.account_sid, self.auth_token)
        else:
            self.client = None
            if self.sms_mode == "twilio":
                logger.warning("Twilio credentials not configured - SMS service disabled")
            else:
                logger.info(f"SMS service initialized in LOCAL mode - routing to dev server at {self.local_url}")

    def send_sms(
        self,
        to_number: str,
        message: str,
        from_number: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send an SMS message via Twilio or the local dev server.

        Args:
            to_number: Recipient phone number
            message: SMS message content
            from_number: Sender override; defaults to the configured number

        Returns:
            Dict with success status, message SID, and error details
        """
        sender = from_number or self.from_number
        try:
            to_number = normalize_phone_number(to_number)
        except InvalidPhoneNumber as e:
            logger.warning(f"SMS not sent, invalid recipient {to_number!r}: {e}")
            return {"success": False, "error": "Invalid recipient number", "to": to_number}

        logger.info(f"Sending SMS via {self.sms_mode.upper()} mode to {to_number}")

        if self.sms_mode == "local":
            return self._send_to_local_server(to_number, message, sender)

        if not self.client:
            logger.warning(f"Twilio not configured - SMS not sent: {to_number}")
            return {"success": False, "error": "Twilio not configured", "to": to_number}

        try:
            message_obj = self.client.messages.create(
                body=message,
                from_=sender,
                to=to_number,
            )
        except TwilioRestException as e:
            logger.error(f"Twilio error sending SMS to {to_number}: {e.msg} (Code: {e.code})")
            return {
                "success": False,
                "error": e.msg,
                "error_code": e.code,
                "to": to_number,
            }
        except (TwilioException, requests.exceptions.RequestException) as e:
            logger.error(f"Could not reach Twilio to send SMS to {to_number}: {e}")
            return {"success": False, "error": "Twilio request failed", "to": to_number}

        logger.info(f"SMS sent via Twilio to {to_number} (SID: {message_obj.sid})")
        return {
            "success": True,
            "message_sid": message_obj.sid,
            "status": message_obj.status,
            "to": to_number,
        }

    def _send_to_local_server(self, to_number: str, message: str, sender: Optional[str]) -> Dict[str, Any]:
        """Post the message to a Twilio-compatible local dev server."""
        url = f"{self.local_url}/2010-04-01/Accounts/{self.account_sid or 'local'}/Messages.json"
        try:
            response = requests.post(
                url,
                data={"To": to_number, "From": sender or "+15555555555", "Body": message},
                timeout=5,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Cannot reach local SMS server at {self.local_url}: {e}")
            return {"success": False, "error": "Local SMS server not reachable", "to": to_number}

        if response.status_code not in (200, 201):
            logger.error(f"Local SMS server error: {response.status_code}")
            return {
                "success": False,
                "error": f"Local server returned {response.status_code}",
                "to": to_number,
            }

        result = response.json()
        logger.info(f"SMS captured by local server: {to_number} (SID: {result.get('sid')})")
        return {
            "success": True,
            "message_sid": result.get("sid", "LOCAL_NO_SID"),
            "status": "queued",
            "to": to_number,
        }
