"""Liveness routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.dependencies import get_app_settings
from api.schemas import HealthResponse, StatusMessageResponse
from config.settings import Settings

router = APIRouter()


@router.get("/", response_model=StatusMessageResponse)
async def root() -> StatusMessageResponse:
    return StatusMessageResponse(message="Twilio Media Stream Server is running!")


@router.get("/health", response_model=HealthResponse)
async def health(settings: Settings = Depends(get_app_settings)) -> HealthResponse:
    return HealthResponse(environment=settings.environment)
