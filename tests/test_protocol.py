from __future__ import annotations

import asyncio
import json

import pytest
from websockets.protocol import State

import integrations.openai_realtime as realtime
from integrations.openai_realtime import (
    AudioDelta,
    FunctionCallArgumentsDone,
    OtherRealtimeEvent,
    function_call_output,
    input_audio_append,
    parse_realtime_message,
)
from integrations.twilio_streaming import (
    MediaReceived,
    OtherTelephonyEvent,
    StreamStarted,
    build_media_message,
    parse_twilio_ws_message,
)
from relay.errors import ParseError, RelayConnectionError


def test_parse_twilio_start_event():
    event = parse_twilio_ws_message(
        json.dumps({"event": "start", "sequenceNumber": "1", "start": {"streamSid": "MZ1", "callSid": "CA1"}})
    )
    assert event == StreamStarted(stream_sid="MZ1", call_sid="CA1")


def test_parse_twilio_media_event():
    event = parse_twilio_ws_message(json.dumps({"event": "media", "media": {"payload": "/w=="}}))
    assert event == MediaReceived(payload="/w==")


@pytest.mark.parametrize("name", ["connected", "stop", "mark", ""])
def test_parse_twilio_other_events(name):
    assert parse_twilio_ws_message(json.dumps({"event": name})) == OtherTelephonyEvent(event=name)


@pytest.mark.parametrize(
    "text",
    ["", "{", "[1, 2]", '"media"', '{"event": "media"}', '{"event": "start"}'],
)
def test_parse_twilio_rejects_malformed(text):
    with pytest.raises(ParseError):
        parse_twilio_ws_message(text)


def test_build_media_message_keeps_payload():
    assert build_media_message("MZ1", "AAEC") == {
        "event": "media",
        "streamSid": "MZ1",
        "media": {"payload": "AAEC"},
    }


def test_parse_realtime_function_call():
    event = parse_realtime_message(
        json.dumps(
            {
                "type": "response.function_call_arguments.done",
                "name": "scheduleAppointment",
                "call_id": "call_9",
                "arguments": '{"date": "2024-05-01", "email": "a@b.com", "name": "Sam"}',
            }
        )
    )
    assert isinstance(event, FunctionCallArgumentsDone)
    assert event.call_id == "call_9"
    assert event.arguments == {"date": "2024-05-01", "email": "a@b.com", "name": "Sam"}


def test_parse_realtime_function_call_with_bad_arguments():
    event = parse_realtime_message(
        json.dumps({"type": "response.function_call_arguments.done", "name": "endConversation", "arguments": "[1]"})
    )
    assert event == FunctionCallArgumentsDone(name="endConversation", arguments={}, call_id=None)


@pytest.mark.parametrize("event_type", ["response.audio.delta", "response.output_audio.delta"])
def test_parse_realtime_audio_delta(event_type):
    assert parse_realtime_message(json.dumps({"type": event_type, "delta": "AAEC"})) == AudioDelta(delta="AAEC")


def test_parse_realtime_other_events():
    assert parse_realtime_message('{"type": "session.created"}') == OtherRealtimeEvent(type="session.created")
    assert parse_realtime_message('{"type": "response.audio.delta"}') == OtherRealtimeEvent(
        type="response.audio.delta"
    )


def test_parse_realtime_rejects_malformed():
    with pytest.raises(ParseError):
        parse_realtime_message("not json")
    with pytest.raises(ParseError):
        parse_realtime_message("[]")


def test_client_envelopes():
    assert input_audio_append("AAEC") == {"type": "input_audio_buffer.append", "audio": "AAEC"}
    assert function_call_output("done") == {
        "type": "conversation.item.create",
        "item": {"type": "function_call_output", "output": "done"},
    }


def test_connect_realtime_sends_bearer_and_beta_headers(settings, monkeypatch):
    captured = {}

    class FakeClient:
        state = State.OPEN

    async def fake_connect(url, **kwargs):
        captured["url"] = url
        captured.update(kwargs)
        return FakeClient()

    monkeypatch.setattr(realtime, "connect", fake_connect)
    connection = asyncio.run(realtime.connect_realtime(settings))

    assert connection.is_open
    assert captured["url"].endswith("/v1/realtime?model=gpt-4o-realtime-preview-2024-10-01")
    assert captured["additional_headers"] == {
        "Authorization": "Bearer sk-test",
        "OpenAI-Beta": "realtime=v1",
    }


def test_connect_realtime_wraps_transport_errors(settings, monkeypatch):
    async def refusing_connect(url, **kwargs):
        raise ConnectionRefusedError("nope")

    monkeypatch.setattr(realtime, "connect", refusing_connect)
    with pytest.raises(RelayConnectionError):
        asyncio.run(realtime.connect_realtime(settings))
