"""API-facing Pydantic models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class StatusMessageResponse(BaseModel):
    message: str = Field(description="Human-readable liveness message.")


class HealthResponse(BaseModel):
    status: str = "ok"
    environment: str
