"""Twilio Voice integration.

This module provides:
- Voice webhook (TwiML) telling Twilio to open a Media Stream to this service.
- The Media Stream websocket, relayed to the OpenAI Realtime API.
"""

from __future__ import annotations

import logging
from xml.sax.saxutils import escape

from fastapi import APIRouter, Depends, Request, Response, WebSocket

from api.dependencies import RealtimeConnector, get_app_settings, get_realtime_connector
from config.settings import Settings
from integrations.twilio_streaming import TwilioConnection
from relay.errors import ConfigurationError, RelayConnectionError
from relay.session import RelaySession

LOGGER = logging.getLogger(__name__)

router = APIRouter(tags=["twilio"])

MEDIA_STREAM_PATH = "/media-stream"


def _twiml_response(xml: str) -> Response:
    return Response(content=xml, media_type="text/xml")


def _to_ws_url(http_url: str) -> str:
    if http_url.startswith("https://"):
        return "wss://" + http_url.removeprefix("https://")
    if http_url.startswith("http://"):
        return "ws://" + http_url.removeprefix("http://")
    return http_url


def _stream_url(request: Request, settings: Settings) -> str:
    if settings.public_base_url:
        return _to_ws_url(settings.public_base_url.rstrip("/")) + MEDIA_STREAM_PATH
    # Twilio only connects to wss:// streams.
    host = request.headers.get("host") or request.url.netloc
    return f"wss://{host}{MEDIA_STREAM_PATH}"


def _twiml_connect_stream(*, stream_url: str) -> str:
    stream = escape(stream_url, {'"': "&quot;"})
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
        "<Response>"
        "<Connect>"
        f"<Stream url=\"{stream}\" />"
        "</Connect>"
        "</Response>"
    )


@router.api_route("/incoming-call", methods=["GET", "POST"])
async def incoming_call(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> Response:
    stream_url = _stream_url(request, settings)
    LOGGER.info("Incoming call; streaming to %s", stream_url)
    return _twiml_response(_twiml_connect_stream(stream_url=stream_url))


@router.websocket(MEDIA_STREAM_PATH)
async def media_stream(
    websocket: WebSocket,
    settings: Settings = Depends(get_app_settings),
    connect_realtime: RealtimeConnector = Depends(get_realtime_connector),
) -> None:
    await websocket.accept()
    LOGGER.info("Client connected")
    telephony = TwilioConnection(websocket)

    try:
        ai = await connect_realtime(settings)
    except (RelayConnectionError, ConfigurationError) as exc:
        LOGGER.error("Dropping call, OpenAI Realtime API unavailable: %s", exc.detail)
        await telephony.close()
        return

    await RelaySession(settings, telephony, ai).run()
