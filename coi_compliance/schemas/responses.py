"""Common response envelope shared by every endpoint."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ResponseMeta(BaseModel):
    timestamp: datetime
    request_id: str
    api_version: str = "v1"


class ApiResponse(BaseModel):
    status: bool = True
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)
    meta: ResponseMeta


class ErrorDetail(BaseModel):
    """Problem details (RFC 7807) plus a machine-readable code."""

    title: str
    status: int
    detail: str
    code: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    instance: Optional[str] = None
    request_id: str
    timestamp: datetime
