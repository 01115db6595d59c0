"""Notice schemas for transient user-facing messages."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field


class Notice(BaseModel):
    """A short, non-blocking message shown to the user (e.g. a toast)."""

    level: Literal["info", "error"] = "error"
    content: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
