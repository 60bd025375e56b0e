"""Pydantic models for the activity log."""

from datetime import datetime

from pydantic import BaseModel


class Actor(BaseModel):
    """The user on whose behalf activity is recorded."""

    id: int | None = None
    name: str = "system"


class ActivityLogCreate(BaseModel):
    """Request to record an activity log entry."""

    user_id: int | None = None
    username: str = "system"
    action: str
    entity_type: str
    entity_id: int | None = None
    description: str = ""


class ActivityLog(ActivityLogCreate):
    """A recorded activity log entry."""

    id: int
    created_at: datetime
