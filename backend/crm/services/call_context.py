"""
State of one active dialer call.

The browser dialer and the DTMF endpoint share these rules: a call moves
idle -> connecting -> ringing -> connected -> ended, mute is a toggle that
only applies to a live call, and keypad tones are only sent while
connected.
"""

import enum
import logging
import time
from typing import Callable, Optional

from ..models.call import CallRecording, TERMINAL_CALL_STATUSES


logger = logging.getLogger(__name__)


class CallStatus(str, enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    RINGING = "ringing"
    CONNECTED = "connected"
    ENDED = "ended"


# 4x3 phone keypad, top row first
KEYPAD = (
    ("1", "2", "3"),
    ("4", "5", "6"),
    ("7", "8", "9"),
    ("*", "0", "#"),
)

KEYPAD_LETTERS = {
    "1": "",
    "2": "ABC",
    "3": "DEF",
    "4": "GHI",
    "5": "JKL",
    "6": "MNO",
    "7": "PQRS",
    "8": "TUV",
    "9": "WXYZ",
    "*": "",
    "0": "+",
    "#": "",
}

DTMF_SYMBOLS = frozenset(symbol for row in KEYPAD for symbol in row)

# Twilio call status -> dialer state
_TWILIO_STATUS_MAP = {
    "queued": CallStatus.CONNECTING,
    "initiated": CallStatus.CONNECTING,
    "ringing": CallStatus.RINGING,
    "answered": CallStatus.CONNECTED,
    "in-progress": CallStatus.CONNECTED,
}


def status_from_twilio(twilio_status: Optional[str]) -> CallStatus:
    value = (twilio_status or "").lower()
    if value in TERMINAL_CALL_STATUSES:
        return CallStatus.ENDED
    return _TWILIO_STATUS_MAP.get(value, CallStatus.IDLE)


DigitSender = Callable[[str, str], None]


class CallContext:
    """
    Mutable state for a single call.

    ``sender(call_sid, digit)`` receives each accepted tone. The browser plays
    tones on its Voice SDK connection, so the calling API only collects them.
    """

    def __init__(self, sender: Optional[DigitSender] = None, clock: Callable[[], float] = time.monotonic):
        self._sender = sender
        self._clock = clock
        self.status = CallStatus.IDLE
        self.call_sid: Optional[str] = None
        self.phone_number: Optional[str] = None
        self.muted = False
        self._connected_at: Optional[float] = None
        self._duration = 0

    @classmethod
    def from_call_record(cls, record: CallRecording, sender: Optional[DigitSender] = None) -> "CallContext":
        """Rebuild the context for a persisted call row."""
        context = cls(sender=sender)
        context.call_sid = record.call_sid
        context.phone_number = record.to_number
        context.status = status_from_twilio(record.status)
        context._duration = record.duration_seconds or 0
        if context.status == CallStatus.CONNECTED:
            context._connected_at = context._clock() - context._duration
        return context

    @property
    def duration(self) -> int:
        """Whole seconds spent connected."""
        if self.status == CallStatus.CONNECTED and self._connected_at is not None:
            return int(self._clock() - self._connected_at)
        return self._duration

    @property
    def is_active(self) -> bool:
        return self.status in (CallStatus.CONNECTING, CallStatus.RINGING, CallStatus.CONNECTED)

    # =========================================================================
    # Transitions
    # =========================================================================

    def connect(self, phone_number: str, call_sid: Optional[str] = None) -> None:
        """Start a new call. Not allowed while another call is active."""
        if self.is_active:
            raise RuntimeError("A call is already in progress")
        self.status = CallStatus.CONNECTING
        self.phone_number = phone_number
        self.call_sid = call_sid
        self.muted = False
        self._connected_at = None
        self._duration = 0

    def mark_ringing(self, call_sid: Optional[str] = None) -> None:
        if self.status == CallStatus.CONNECTING:
            self.status = CallStatus.RINGING
        if call_sid:
            self.call_sid = call_sid

    def mark_connected(self, call_sid: Optional[str] = None) -> None:
        if self.status in (CallStatus.CONNECTING, CallStatus.RINGING):
            self.status = CallStatus.CONNECTED
            self._connected_at = self._clock()
        if call_sid:
            self.call_sid = call_sid

    def end(self) -> None:
        if self.status == CallStatus.CONNECTED:
            self._duration = self.duration
        self.status = CallStatus.ENDED
        self._connected_at = None

    def toggle_mute(self) -> bool:
        """Flip mute on a live call and return the new value."""
        if self.is_active:
            self.muted = not self.muted
        return self.muted

    def send_dtmf(self, digit: str) -> bool:
        """
        Send one keypad tone.

        Returns False and sends nothing unless the call is connected and the
        digit is a keypad symbol.
        """
        if self.status != CallStatus.CONNECTED:
            logger.debug(f"Ignoring DTMF {digit!r}: call is {self.status.value}")
            return False
        if digit not in DTMF_SYMBOLS:
            return False
        if self._sender is not None:
            self._sender(self.call_sid, digit)
        return True
