from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class CommandRequest(BaseModel):
    command: str = Field(..., min_length=1, description="GeoGebra command string", examples=["A = (1, 2)"])


class ExportRequest(BaseModel):
    """Options accepted by every export route; each format reads the ones it understands."""
    filename: Optional[str] = Field(default=None, description="Output file name, generated when omitted")
    scale: float = Field(default=1.0, ge=0.1, le=10)
    width: Optional[int] = Field(default=None, ge=100, le=5000)
    height: Optional[int] = Field(default=None, ge=100, le=5000)
    transparent: bool = False
    dpi: int = Field(default=72, ge=72, le=300)
    duration: int = Field(default=5000, ge=1000, le=60000, description="Animation length in milliseconds")
    frame_rate: Optional[int] = Field(default=None, ge=1, le=60)
    quality: Optional[int] = Field(default=None, ge=0, le=100)


class WarmupRequest(BaseModel):
    count: int = Field(default=1, ge=1, le=10)


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    code: Optional[int] = None


class ToolListResponse(BaseModel):
    success: bool = True
    count: int
    tools: List[Dict[str, Any]]
