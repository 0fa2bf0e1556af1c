"""Per-call relay between a Twilio media stream and an OpenAI Realtime socket."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Protocol

from integrations.openai_realtime import (
    AudioDelta,
    FunctionCallArgumentsDone,
    input_audio_append,
    parse_realtime_message,
    response_create,
    session_update,
)
from integrations.twilio_streaming import (
    MediaReceived,
    StreamStarted,
    build_media_message,
    parse_twilio_ws_message,
)
from relay.errors import ParseError, RelayConnectionError
from relay.tools import TOOLS, ToolCallDispatcher

if TYPE_CHECKING:  # pragma: no cover
    from config.settings import Settings

LOGGER = logging.getLogger(__name__)

GREETING_INSTRUCTIONS = "Greet the user by saying welcome to Go Car and ask them how can you help"


class DuplexConnection(Protocol):
    @property
    def is_open(self) -> bool: ...

    async def send_json(self, message: dict[str, Any]) -> None: ...

    async def receive_text(self) -> str | bytes | None: ...

    async def close(self) -> None: ...


class RelaySession:
    """Owns one Twilio socket and the OpenAI socket opened for it.

    Audio flows through untouched; only the envelopes are rewritten. When
    Twilio goes away the OpenAI socket is closed too. The reverse does not
    hold: a closed or failed OpenAI socket is only logged and Twilio stays up
    until the caller hangs up or `endConversation` closes both.
    """

    def __init__(self, settings: Settings, telephony: DuplexConnection, ai: DuplexConnection) -> None:
        self.settings = settings
        self.telephony = telephony
        self.ai = ai
        self.stream_sid: str | None = None
        self.call_sid: str | None = None
        self._dispatcher = ToolCallDispatcher(self)

    async def run(self) -> None:
        """Serve the call until both sockets are done; cancelling this cancels both readers."""

        await asyncio.gather(
            self.initialize_ai_session(),
            self._pump_telephony(),
            self._pump_ai(),
        )

    # AI session setup

    async def initialize_ai_session(self) -> None:
        await asyncio.sleep(self.settings.session_update_delay_seconds)
        if not self.ai.is_open:
            LOGGER.warning("OpenAI socket closed before the session could be configured")
            return
        try:
            # The greeting goes out before session.update; the endpoint expects this order.
            await self.ai.send_json(response_create(GREETING_INSTRUCTIONS))
            await self.ai.send_json(session_update(self.settings, TOOLS))
        except Exception:
            LOGGER.exception("Failed to configure the OpenAI session")

    # Telephony side

    async def _pump_telephony(self) -> None:
        try:
            while True:
                message = await self.telephony.receive_text()
                if message is None:
                    break
                await self.handle_telephony_message(message)
        except Exception:
            LOGGER.exception("Error in the Twilio WebSocket (streamSid=%s)", self.stream_sid)
        finally:
            await self._on_telephony_closed()

    async def handle_telephony_message(self, message: str | bytes) -> None:
        try:
            event = parse_twilio_ws_message(message)
        except ParseError as exc:
            LOGGER.warning("Error parsing Twilio message: %s (message=%r)", exc.detail, message)
            return

        if isinstance(event, StreamStarted):
            self._on_stream_started(event)
        elif isinstance(event, MediaReceived):
            await self.relay_inbound_audio(event.payload)
        else:
            LOGGER.debug("Received non-media event: %s", event.event)

    def _on_stream_started(self, event: StreamStarted) -> None:
        if self.stream_sid is not None and self.stream_sid != event.stream_sid:
            LOGGER.warning("streamSid changed from %s to %s", self.stream_sid, event.stream_sid)
        self.stream_sid = event.stream_sid
        self.call_sid = event.call_sid
        LOGGER.info("Incoming stream has started (streamSid=%s, callSid=%s)", self.stream_sid, self.call_sid)

    async def relay_inbound_audio(self, payload: str) -> None:
        # No buffering: audio that arrives while OpenAI is not open is dropped.
        if not self.ai.is_open:
            return
        try:
            await self.ai.send_json(input_audio_append(payload))
        except Exception:
            LOGGER.exception("Failed to forward caller audio to OpenAI")

    async def _on_telephony_closed(self) -> None:
        if self.ai.is_open:
            await self.ai.close()
        LOGGER.info("Client disconnected (streamSid=%s)", self.stream_sid)

    # AI side

    async def _pump_ai(self) -> None:
        try:
            while True:
                message = await self.ai.receive_text()
                if message is None:
                    break
                await self.handle_ai_message(message)
        except RelayConnectionError as exc:
            LOGGER.error("Error in the OpenAI WebSocket: %s", exc.detail)
        LOGGER.info("Disconnected from the OpenAI Realtime API (streamSid=%s)", self.stream_sid)

    async def handle_ai_message(self, message: str | bytes) -> None:
        try:
            event = parse_realtime_message(message)
        except ParseError as exc:
            LOGGER.warning("Error processing OpenAI message: %s", exc.detail)
            return

        if isinstance(event, FunctionCallArgumentsDone):
            await self._dispatcher.dispatch(event)
        elif isinstance(event, AudioDelta):
            await self.relay_outbound_audio(event.delta)

    async def relay_outbound_audio(self, delta: str) -> None:
        try:
            await self.telephony.send_json(build_media_message(self.stream_sid, delta))
        except Exception:
            LOGGER.exception("Failed to forward audio to Twilio")

    # Used by the tool dispatcher

    async def send_to_ai(self, message: dict[str, Any]) -> None:
        await self.ai.send_json(message)

    async def close_if_both_open(self) -> bool:
        if not (self.ai.is_open and self.telephony.is_open):
            LOGGER.info("Skipping manual close; a socket is already closed")
            return False
        await self.ai.close()
        await self.telephony.close()
        LOGGER.info("Manually closed the OpenAI and Twilio sockets (streamSid=%s)", self.stream_sid)
        return True
