"""
API Response Schemas

Pydantic models for the payloads the built-in handlers answer with.
Handlers are registered dynamically from the routes document, so these
models are dumped explicitly instead of being declared as response_model.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class RequestInfo(BaseModel):
    """Echo of the incoming request included in acknowledgements."""
    method: str
    path: str
    userAgent: Optional[str] = None
    contentType: Optional[str] = None
    bodySize: int = 0
    body: Any = None


class AckResponse(BaseModel):
    """Response of the listen and doc-hook handlers."""
    code: int = 0
    status: str = "ok"
    message: str = "Webhook received successfully"
    timestamp: str
    requestInfo: RequestInfo
    missing: Optional[List[str]] = None


class EchoResponse(BaseModel):
    """Response of routes whose handler id is unknown."""
    status: str = "success"
    message: str
    handler: str
    timestamp: str
    method: str
    headers: Dict[str, str]
    query: Dict[str, Any]
    params: Dict[str, Any]
    body: Any = None


class Uptime(BaseModel):
    seconds: int
    readable: str


class Memory(BaseModel):
    rss: str
    vms: str


class HealthResponse(BaseModel):
    code: int = 0
    status: str = "healthy"
    timestamp: str
    uptime: Uptime
    memory: Memory
    python: str
    platform: str
    arch: str


class ErrorResponse(BaseModel):
    status: str = "error"
    message: str
    error: Optional[str] = None
    path: Optional[str] = None
    method: Optional[str] = None


class StatsResponse(BaseModel):
    """JSON form of the document statistics."""
    days: List[str]
    pvSeries: List[int]
    uvSeries: List[int]
    totalPv: int = Field(..., ge=0)
    totalUv: int = Field(..., ge=0)
    yesterdayDau: Optional[int] = None
    wau: Optional[int] = None
