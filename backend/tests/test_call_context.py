"""Tests for the dialer call state holder."""

import pytest

from crm.models import CallRecording
from crm.services.call_context import (
    DTMF_SYMBOLS,
    KEYPAD,
    KEYPAD_LETTERS,
    CallContext,
    CallStatus,
    status_from_twilio,
)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def sent():
    return []


@pytest.fixture
def context(sent):
    return CallContext(sender=lambda sid, digit: sent.append((sid, digit)), clock=FakeClock())


def test_keypad_layout():
    assert KEYPAD[0] == ("1", "2", "3")
    assert KEYPAD[3] == ("*", "0", "#")
    assert DTMF_SYMBOLS == set("0123456789*#")
    assert KEYPAD_LETTERS["7"] == "PQRS"
    assert set(KEYPAD_LETTERS) == DTMF_SYMBOLS


def test_call_lifecycle(context):
    assert context.status == CallStatus.IDLE

    context.connect("+15551234567")
    assert context.status == CallStatus.CONNECTING
    assert context.is_active

    context.mark_ringing("CA1")
    assert context.status == CallStatus.RINGING
    assert context.call_sid == "CA1"

    context.mark_connected()
    context._clock.now += 65
    assert context.status == CallStatus.CONNECTED
    assert context.duration == 65

    context.end()
    context._clock.now += 30
    assert context.status == CallStatus.ENDED
    assert context.duration == 65
    assert not context.is_active


def test_cannot_start_second_call_while_active(context):
    context.connect("+15551234567")

    with pytest.raises(RuntimeError):
        context.connect("+15559999999")


def test_new_call_after_end_resets_state(context):
    context.connect("+15551234567")
    context.mark_connected("CA1")
    context.toggle_mute()
    context.end()

    context.connect("+15559999999")

    assert context.muted is False
    assert context.call_sid is None
    assert context.duration == 0


def test_mute_only_applies_to_live_call(context):
    assert context.toggle_mute() is False

    context.connect("+15551234567")
    assert context.toggle_mute() is True
    assert context.toggle_mute() is False


def test_dtmf_only_while_connected(context, sent):
    context.connect("+15551234567")
    context.mark_ringing("CA1")

    assert context.send_dtmf("5") is False
    assert sent == []

    context.mark_connected()
    assert context.send_dtmf("5") is True
    assert context.send_dtmf("#") is True
    assert sent == [("CA1", "5"), ("CA1", "#")]


def test_dtmf_rejects_non_keypad_symbols(context, sent):
    context.connect("+15551234567")
    context.mark_connected("CA1")

    assert context.send_dtmf("A") is False
    assert context.send_dtmf("12") is False
    assert sent == []


@pytest.mark.parametrize("twilio_status, expected", [
    ("queued", CallStatus.CONNECTING),
    ("initiated", CallStatus.CONNECTING),
    ("ringing", CallStatus.RINGING),
    ("in-progress", CallStatus.CONNECTED),
    ("completed", CallStatus.ENDED),
    ("no-answer", CallStatus.ENDED),
    (None, CallStatus.IDLE),
])
def test_status_from_twilio(twilio_status, expected):
    assert status_from_twilio(twilio_status) == expected


def test_from_call_record(sent):
    record = CallRecording(call_sid="CA9", to_number="+15551234567", status="in-progress", duration_seconds=12)

    context = CallContext.from_call_record(record, sender=lambda sid, digit: sent.append((sid, digit)))

    assert context.status == CallStatus.CONNECTED
    assert context.phone_number == "+15551234567"
    assert context.duration >= 12
    assert context.send_dtmf("0") is True
    assert sent == [("CA9", "0")]
