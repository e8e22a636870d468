"""
Pydantic models for data validation in the Clip Combiner backend.
"""

from pydantic import BaseModel, ConfigDict
from typing import Literal, Optional


PoolType = Literal["hook", "story", "cta"]
CombinationStatus = Literal["processing", "ready", "error"]


class SegmentOut(BaseModel):
    """An uploaded clip as returned to callers."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    type: PoolType
    file: str
    preview_url: str
    thumbnail_url: Optional[str] = None


class CombinationOut(BaseModel):
    """A combination record; download_url is only set once the render is ready."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    hook: str
    story: str
    cta: str
    status: CombinationStatus
    download_url: Optional[str] = None
    error: Optional[str] = None


class StatusResponse(BaseModel):
    """Response for the health endpoint."""
    status: str
