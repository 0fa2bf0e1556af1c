"""Twilio Media Streams framing.

Twilio sends JSON text frames over the media-stream socket. Only `start` and
`media` carry anything the relay needs; the rest (`connected`, `mark`,
`stop`, ...) are classified as `OtherTelephonyEvent`. Audio payloads are
base64 mu-law and are never decoded here.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Union

from fastapi.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from relay.errors import ParseError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StreamStarted:
    stream_sid: str | None
    call_sid: str | None = None


@dataclass(frozen=True, slots=True)
class MediaReceived:
    payload: str


@dataclass(frozen=True, slots=True)
class OtherTelephonyEvent:
    event: str


TelephonyEvent = Union[StreamStarted, MediaReceived, OtherTelephonyEvent]


def _decode_object(text: str | bytes) -> dict[str, Any]:
    try:
        message = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise ParseError(f"Invalid JSON from Twilio: {exc}") from exc
    if not isinstance(message, dict):
        raise ParseError("Twilio message is not a JSON object")
    return message


def parse_twilio_ws_message(text: str | bytes) -> TelephonyEvent:
    message = _decode_object(text)
    event = str(message.get("event") or "")

    if event == "start":
        start = message.get("start")
        if not isinstance(start, dict):
            raise ParseError("Twilio start event without start block")
        return StreamStarted(stream_sid=start.get("streamSid"), call_sid=start.get("callSid"))

    if event == "media":
        media = message.get("media")
        payload = media.get("payload") if isinstance(media, dict) else None
        if not isinstance(payload, str):
            raise ParseError("Twilio media event without payload")
        return MediaReceived(payload=payload)

    return OtherTelephonyEvent(event=event)


def build_media_message(stream_sid: str | None, payload: str) -> dict[str, Any]:
    """Outbound audio frame for Twilio; `stream_sid` is None until `start` arrives."""

    return {
        "event": "media",
        "streamSid": stream_sid,
        "media": {"payload": payload},
    }


class TwilioConnection:
    """Duplex adapter over the FastAPI websocket accepted from Twilio."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket

    @property
    def is_open(self) -> bool:
        return (
            self._websocket.client_state == WebSocketState.CONNECTED
            and self._websocket.application_state == WebSocketState.CONNECTED
        )

    async def send_json(self, message: dict[str, Any]) -> None:
        await self._websocket.send_text(json.dumps(message))

    async def receive_text(self) -> str | None:
        """Next text frame, or None once Twilio hung up or we closed the socket."""

        if not self.is_open:
            return None
        try:
            return await self._websocket.receive_text()
        except WebSocketDisconnect as exc:
            LOGGER.debug("Twilio socket disconnected (code=%s)", exc.code)
            return None

    async def close(self) -> None:
        await self._websocket.close()
