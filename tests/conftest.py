from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path
from typing import Any

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


class FakeConnection:
    """In-memory stand-in for either socket of a relay session.

    Queued messages are returned by `receive_text` in order. Once they run
    out the peer either hangs up (returns None and the connection reports
    closed) or, with `hold_open`, waits until the relay closes it.
    """

    def __init__(
        self,
        incoming: list[Any] | None = None,
        *,
        connected: bool = True,
        hold_open: bool = False,
        fail_sends: bool = False,
    ) -> None:
        self.sent: list[dict[str, Any]] = []
        self.close_calls = 0
        self._incoming = list(incoming or [])
        self._open = connected
        self._hold_open = hold_open
        self._fail_sends = fail_sends
        self._closed = asyncio.Event()

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def sent_types(self) -> list[str]:
        return [message.get("type") or message.get("event") for message in self.sent]

    async def send_json(self, message: dict[str, Any]) -> None:
        if self._fail_sends or not self._open:
            raise RuntimeError("send on closed connection")
        self.sent.append(message)

    async def receive_text(self):
        await asyncio.sleep(0)
        if self._incoming:
            item = self._incoming.pop(0)
            if isinstance(item, BaseException):
                raise item
            return item
        if self._hold_open and self._open:
            await self._closed.wait()
        self._open = False
        return None

    async def close(self) -> None:
        self.close_calls += 1
        self._open = False
        self._closed.set()


@pytest.fixture()
def make_connection():
    return FakeConnection


@pytest.fixture()
def settings():
    from config.settings import Settings

    return Settings(
        _env_file=None,
        openai_api_key="sk-test",
        session_update_delay_seconds=0,
    )


@pytest.fixture(scope="session")
def app():
    # Must be set before importing modules that build the cached Settings.
    os.environ["OPENAI_API_KEY"] = "sk-test"
    os.environ["SESSION_UPDATE_DELAY_SECONDS"] = "0"

    import importlib

    # Ensure clean import with the test settings.
    for module_name in [
        "config.settings",
        "api.dependencies",
        "api.routes",
        "api.twilio_routes",
        "main",
    ]:
        sys.modules.pop(module_name, None)

    main = importlib.import_module("main")
    return main.app
