"""Shared Pydantic schemas for license-relay."""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    service: str = "license-relay"


class ErrorResponse(BaseModel):
    error: str
    code: str = ""
