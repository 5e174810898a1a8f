"""
Pydantic schemas for the blockboard API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

UNTITLED = "(Untitled)"


class DashboardCreate(BaseModel):
    name: Optional[str] = None


class DashboardUpdate(BaseModel):
    name: Optional[str] = None


class RepositoryRef(BaseModel):
    """Only ``full_name`` is kept from whatever the client sends."""

    model_config = ConfigDict(extra="ignore")

    full_name: str = Field(..., min_length=1)


class BlockSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    repository: RepositoryRef


class BlockCreate(BaseModel):
    type: str = Field(..., min_length=1)
    settings: BlockSettings


class DashboardResponse(BaseModel):
    id: int
    name: str
    owner_id: str
    created_at: datetime


class BlockResponse(BaseModel):
    id: int
    type: str
    settings: dict
    dashboard_id: int


class DashboardWithBlocksResponse(DashboardResponse):
    blocks: list[BlockResponse]


class AccessResponse(BaseModel):
    id: int
    user_id: str
    type: str
    token: str


class HealthResponse(BaseModel):
    status: str
