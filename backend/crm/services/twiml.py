"""
TwiML documents returned to Twilio's voice webhooks.

Both dial variants share one shape: a ``<Dial>`` that records from answer,
reports the finished recording to the recording callback, and dials the
destination as a ``<Number>`` whose progress events go to the status
callback. They differ only in where the caller id comes from, the spoken
prompts, the ring timeout, and the browser variant's ``action`` URL.
"""

from typing import Optional

from twilio.twiml.voice_response import VoiceResponse

from ..core.config import settings


STATUS_CALLBACK_EVENTS = "initiated ringing answered completed"
ERROR_MESSAGE = "Sorry, an error occurred. Please try again."
DIAL_TIMEOUT_SECONDS = 60


# =============================================================================
# Callback URLs
# =============================================================================

def status_callback_url() -> str:
    return f"{settings.public_base_url}/api/webhooks/twilio/status"


def recording_callback_url() -> str:
    return f"{settings.public_base_url}/api/webhooks/twilio/recording"


def dial_action_url() -> str:
    return f"{settings.public_base_url}/api/calling/webhook"


# =============================================================================
# Documents
# =============================================================================

def _dial(
    response: VoiceResponse,
    to_number: str,
    caller_id: Optional[str],
    timeout: Optional[int] = None,
    action: Optional[str] = None,
) -> None:
    dial = response.dial(
        caller_id=caller_id,
        record="record-from-answer",
        recording_status_callback=recording_callback_url(),
        recording_status_callback_event="completed",
        timeout=timeout,
        action=action,
        method="POST" if action else None,
    )
    dial.number(
        to_number,
        status_callback=status_callback_url(),
        status_callback_event=STATUS_CALLBACK_EVENTS,
        status_callback_method="POST",
    )


def inbound_dial_response(to_number: str, caller_id: Optional[str]) -> str:
    """Dial for a general call: announce, ring up to 60s, then say goodbye."""
    response = VoiceResponse()
    response.say("Connecting your call.")
    _dial(response, to_number, caller_id, timeout=DIAL_TIMEOUT_SECONDS)
    response.say("Call ended.")
    return str(response)


def browser_dial_response(to_number: str, caller_id: Optional[str]) -> str:
    """Dial for a browser-originated call; Twilio posts the outcome to the action URL."""
    response = VoiceResponse()
    _dial(response, to_number, caller_id, action=dial_action_url())
    return str(response)


def error_response() -> str:
    """Apologise and hang up."""
    response = VoiceResponse()
    response.say(ERROR_MESSAGE, voice="alice")
    response.hangup()
    return str(response)


def empty_response() -> str:
    return str(VoiceResponse())
