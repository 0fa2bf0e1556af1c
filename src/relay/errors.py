"""Exceptions raised by the relay.

These exceptions are safe to import from API layers without pulling in any
network client.
"""

from __future__ import annotations


class RelayError(Exception):
    default_detail: str = "Relay error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class ParseError(RelayError):
    default_detail = "Malformed message."


class ToolDispatchError(RelayError):
    default_detail = "Tool call could not be dispatched."


class RelayConnectionError(RelayError):
    default_detail = "Realtime connection failed."


class ConfigurationError(RelayError):
    default_detail = "Missing required configuration."
