"""Pydantic schemas for assets and categories."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class AssetCategoryResponse(BaseModel):
    id: str
    slug: str
    name: str

    model_config = {"from_attributes": True}


class AssetResponse(BaseModel):
    """Response schema for a single asset."""

    id: str
    name: str
    value: float
    description: Optional[str] = None
    location: Optional[str] = None
    acquisition_date: Optional[datetime] = None
    acquisition_value: Optional[float] = None
    category_id: Optional[str] = None
    category_slug: Optional[str] = None
    is_liability: bool
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
