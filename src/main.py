"""Entry point for the goCar Twilio <-> OpenAI Realtime voice relay."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.routes import router as api_router
from api.twilio_routes import router as twilio_router
from config.settings import get_settings, require_openai_api_key
from relay.errors import ConfigurationError

LOGGER = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Refuse to accept calls without a credential for the AI side.
    require_openai_api_key(get_settings())
    yield


settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(
    title="goCar Voice Relay",
    description="Bridges Twilio Media Streams to the OpenAI Realtime API.",
    lifespan=lifespan,
)
app.include_router(api_router)
app.include_router(twilio_router)


def main() -> None:
    import uvicorn

    try:
        require_openai_api_key(settings)
    except ConfigurationError as exc:
        LOGGER.error("%s", exc.detail)
        raise SystemExit(1) from exc

    LOGGER.info("Server is listening on port %s", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
