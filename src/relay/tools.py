"""Function tools exposed to the realtime model and their side effects."""

from __future__ import annotations

import enum
import logging
from typing import Any, Awaitable, Callable, Protocol

from integrations.openai_realtime import FunctionCallArgumentsDone, function_call_output, response_create
from relay.errors import ToolDispatchError

LOGGER = logging.getLogger(__name__)


class ToolName(str, enum.Enum):
    SCHEDULE_APPOINTMENT = "scheduleAppointment"
    END_CONVERSATION = "endConversation"


SCHEDULE_ARGUMENTS = ("date", "email", "name")

TOOLS: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": ToolName.SCHEDULE_APPOINTMENT.value,
        "description": (
            "Helps user book/schedule an appointment with the garage for car repair/service. "
            "Example prompt: i want to book an appointment for car service"
        ),
        "parameters": {
            "type": "object",
            "properties": {key: {"type": "string"} for key in SCHEDULE_ARGUMENTS},
            "required": list(SCHEDULE_ARGUMENTS),
        },
    },
    {
        "type": "function",
        "name": ToolName.END_CONVERSATION.value,
        "description": "Ends the conversation once the user query/task is done",
        "parameters": {},
    },
]

SCHEDULED_OUTPUT = "the appointment is scheduled"
RESOLVED_OUTPUT = "the query is resolved"
FAREWELL_INSTRUCTIONS = "thank the user and wish them a nice day ahead"


def confirmation_instructions(arguments: dict[str, Any]) -> str:
    # Caller-supplied values go into the prompt as-is.
    return (
        f"tell the user your: Hi {arguments['name']} your appointment for {arguments['date']} "
        f"is scheduled, you will receive a confirmation mail on {arguments['email']}"
    )


class ToolSession(Protocol):
    async def send_to_ai(self, message: dict[str, Any]) -> None: ...

    async def close_if_both_open(self) -> bool: ...


class ToolCallDispatcher:
    """Runs the side effect for a finished function call and answers the model.

    Every reply is a `function_call_output` item followed by a
    `response.create` so the model speaks the result right away. Unknown
    tool names are ignored without replying.
    """

    def __init__(self, session: ToolSession) -> None:
        self._session = session
        self._handlers: dict[str, Callable[[FunctionCallArgumentsDone], Awaitable[None]]] = {
            ToolName.SCHEDULE_APPOINTMENT.value: self._schedule_appointment,
            ToolName.END_CONVERSATION.value: self._end_conversation,
        }

    async def dispatch(self, call: FunctionCallArgumentsDone) -> None:
        handler = self._handlers.get(call.name)
        if handler is None:
            LOGGER.debug("Ignoring unknown function call %r", call.name)
            return

        LOGGER.info("Function call %s(%s)", call.name, call.arguments)
        try:
            await handler(call)
        except ToolDispatchError as exc:
            LOGGER.error("Function call %s failed: %s", call.name, exc.detail)
        except Exception:
            LOGGER.exception("Error processing function call %s", call.name)

    async def _reply(self, call: FunctionCallArgumentsDone, output: str, instructions: str) -> None:
        await self._session.send_to_ai(function_call_output(output, call_id=call.call_id))
        await self._session.send_to_ai(response_create(instructions))

    async def _schedule_appointment(self, call: FunctionCallArgumentsDone) -> None:
        missing = [key for key in SCHEDULE_ARGUMENTS if key not in call.arguments]
        if missing:
            raise ToolDispatchError(f"Missing arguments: {', '.join(missing)}")

        await self._reply(call, SCHEDULED_OUTPUT, confirmation_instructions(call.arguments))

    async def _end_conversation(self, call: FunctionCallArgumentsDone) -> None:
        try:
            await self._reply(call, RESOLVED_OUTPUT, FAREWELL_INSTRUCTIONS)
        finally:
            await self._session.close_if_both_open()
