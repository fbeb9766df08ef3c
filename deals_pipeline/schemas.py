"""Booking schemas - Pydantic models for validation and responses"""

from datetime import datetime, timezone
from typing import Annotated, Any, Optional

from pydantic import AfterValidator, AliasChoices, BaseModel, Field


def _as_utc(v: datetime) -> datetime:
    # Stored instants are naive UTC
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class BookingCreate(BaseModel):
    """Schema for creating a booking"""

    lead_id: str
    assigned_user_id: str
    booking_type: Optional[str] = None
    booking_source: Optional[str] = None
    # Parsed by the scheduler so a bad value is a 400, not a 422
    scheduled_at: Optional[str] = None
    created_by: Optional[str] = None
    timezone: str = "UTC"
    notes: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class BookingFailRequest(BaseModel):
    status: str


class BookingResponse(BaseModel):
    """Schema for booking response"""

    id: str
    tenant_id: str
    lead_id: Optional[str]
    assigned_user_id: str
    booking_type: Optional[str]
    booking_source: Optional[str]
    scheduled_at: UtcDatetime
    buffer_until: UtcDatetime
    timezone: str
    status: str
    notes: Optional[str]
    metadata: Optional[dict[str, Any]] = Field(
        default=None, validation_alias=AliasChoices("metadata_", "metadata")
    )
    created_by: Optional[str]
    created_at: Optional[UtcDatetime]
    updated_at: Optional[UtcDatetime]

    class Config:
        from_attributes = True


class TimeSlot(BaseModel):
    """A free candidate interval [start, end)."""

    start: UtcDatetime
    end: UtcDatetime


class BlockedSlot(BaseModel):
    """A stored booking's [scheduled_at, buffer_until) range."""

    scheduled_at: UtcDatetime
    buffer_until: UtcDatetime

    class Config:
        from_attributes = True
