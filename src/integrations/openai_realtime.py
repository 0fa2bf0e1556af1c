"""OpenAI Realtime API socket and event framing."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Union

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, InvalidHandshake
from websockets.protocol import State

from config.settings import Settings, require_openai_api_key
from relay.errors import ParseError, RelayConnectionError

LOGGER = logging.getLogger(__name__)

MODALITIES: tuple[str, ...] = ("text", "audio")
AUDIO_FORMAT = "g711_ulaw"

FUNCTION_CALL_DONE = "response.function_call_arguments.done"
# GA models renamed the audio delta event; both carry the same envelope.
AUDIO_DELTA_TYPES = frozenset({"response.audio.delta", "response.output_audio.delta"})


@dataclass(frozen=True, slots=True)
class FunctionCallArgumentsDone:
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    call_id: str | None = None


@dataclass(frozen=True, slots=True)
class AudioDelta:
    delta: str


@dataclass(frozen=True, slots=True)
class OtherRealtimeEvent:
    type: str


RealtimeEvent = Union[FunctionCallArgumentsDone, AudioDelta, OtherRealtimeEvent]


def _parse_arguments(raw: Any, *, name: str) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    try:
        arguments = json.loads(raw or "{}")
    except (TypeError, ValueError) as exc:
        LOGGER.warning("Invalid arguments for function call %s: %s", name, exc)
        return {}
    if not isinstance(arguments, dict):
        LOGGER.warning("Arguments for function call %s are not an object: %r", name, arguments)
        return {}
    return arguments


def parse_realtime_message(text: str | bytes) -> RealtimeEvent:
    try:
        message = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise ParseError(f"Invalid JSON from OpenAI: {exc}") from exc
    if not isinstance(message, dict):
        raise ParseError("OpenAI message is not a JSON object")

    event_type = str(message.get("type") or "")

    if event_type == FUNCTION_CALL_DONE:
        name = str(message.get("name") or "")
        return FunctionCallArgumentsDone(
            name=name,
            arguments=_parse_arguments(message.get("arguments"), name=name),
            call_id=message.get("call_id"),
        )

    if event_type in AUDIO_DELTA_TYPES:
        delta = message.get("delta")
        if isinstance(delta, str) and delta:
            return AudioDelta(delta=delta)

    return OtherRealtimeEvent(type=event_type)


def response_create(instructions: str) -> dict[str, Any]:
    return {
        "type": "response.create",
        "response": {
            "modalities": list(MODALITIES),
            "instructions": instructions,
        },
    }


def session_update(settings: Settings, tools: Iterable[dict[str, Any]]) -> dict[str, Any]:
    return {
        "type": "session.update",
        "session": {
            "turn_detection": {"type": "server_vad"},
            "input_audio_format": AUDIO_FORMAT,
            "output_audio_format": AUDIO_FORMAT,
            "voice": settings.voice,
            "instructions": settings.instructions,
            "modalities": list(MODALITIES),
            "temperature": settings.temperature,
            "tools": list(tools),
        },
    }


def function_call_output(output: str, *, call_id: str | None = None) -> dict[str, Any]:
    item: dict[str, Any] = {"type": "function_call_output", "output": output}
    if call_id:
        item["call_id"] = call_id
    return {"type": "conversation.item.create", "item": item}


def input_audio_append(payload: str) -> dict[str, Any]:
    return {"type": "input_audio_buffer.append", "audio": payload}


class RealtimeConnection:
    """Duplex adapter over a `websockets` client connection to OpenAI."""

    def __init__(self, ws: ClientConnection) -> None:
        self._ws = ws

    @property
    def is_open(self) -> bool:
        return self._ws.state is State.OPEN

    async def send_json(self, message: dict[str, Any]) -> None:
        await self._ws.send(json.dumps(message))

    async def receive_text(self) -> str | bytes | None:
        """Next frame; None on a clean close, RelayConnectionError otherwise."""

        try:
            return await self._ws.recv()
        except ConnectionClosedOK:
            return None
        except ConnectionClosed as exc:
            raise RelayConnectionError(f"OpenAI socket closed abnormally: {exc}") from exc

    async def close(self) -> None:
        await self._ws.close()


async def connect_realtime(settings: Settings) -> RealtimeConnection:
    """Open the AI-side socket; no retry, failures surface as RelayConnectionError."""

    headers = {
        "Authorization": f"Bearer {require_openai_api_key(settings)}",
        "OpenAI-Beta": settings.openai_beta_header,
    }
    try:
        ws = await connect(
            settings.realtime_ws_url,
            additional_headers=headers,
            open_timeout=settings.openai_open_timeout_seconds,
            ping_interval=20,
            ping_timeout=20,
        )
    except (InvalidHandshake, OSError, asyncio.TimeoutError) as exc:
        raise RelayConnectionError(f"Could not connect to the OpenAI Realtime API: {exc}") from exc

    LOGGER.info("Connected to the OpenAI Realtime API")
    return RealtimeConnection(ws)
