"""Pydantic model for audit trail entries."""

from datetime import datetime
from typing import Any, Optional

from .base import CamelModel


class AuditEntry(CamelModel):
    id: int
    user_id: Optional[int] = None
    action: str
    object_type: Optional[str] = None
    object_id: Optional[int] = None
    timestamp: datetime
    details: Optional[Any] = None
