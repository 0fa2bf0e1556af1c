"""Shared FastAPI dependencies.

Separated to avoid circular imports between route modules.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from config.settings import Settings, get_settings

# Opens the AI-side socket for one call; overridden in tests.
RealtimeConnector = Callable[[Settings], Awaitable[Any]]


def get_app_settings() -> Settings:
    return get_settings()


def get_realtime_connector() -> RealtimeConnector:
    # Lazy import keeps the websockets client out of route-module import time.
    from integrations.openai_realtime import connect_realtime

    return connect_realtime
