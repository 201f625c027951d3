"""
Pydantic response models for the userfiles-auth API.
"""
from datetime import datetime

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: datetime


class ConnectionProfileResponse(BaseModel):
    protocol: str
    parameters: dict[str, str] = Field(default_factory=dict)


class ConnectionsResponse(BaseModel):
    """Profiles authorized for the requesting identity."""

    identifier: str
    provider: str
    configurations: dict[str, ConnectionProfileResponse] = Field(default_factory=dict)
