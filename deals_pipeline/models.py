import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, CheckConstraint, Column, DateTime, Index, String, Text

from deals_pipeline.db import Base

STATUS_SCHEDULED = "scheduled"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
STATUS_MISSED = "missed"
STATUS_FAILED = "failed"
STATUS_CANCELLED = "cancelled"

OCCUPYING_STATUSES = (STATUS_SCHEDULED, STATUS_IN_PROGRESS)
FAILURE_STATUSES = (STATUS_MISSED, STATUS_FAILED, STATUS_CANCELLED)
# A completed booking keeps its buffer until it lapses on its own.
BLOCKING_STATUSES = OCCUPYING_STATUSES + (STATUS_COMPLETED,)


def utcnow() -> datetime:
    """Current instant as a naive UTC datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Booking(Base):
    __tablename__ = "lead_bookings"
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, nullable=False)
    lead_id = Column(String)
    assigned_user_id = Column(String, nullable=False)
    booking_type = Column(String)
    booking_source = Column(String)
    scheduled_at = Column(DateTime, nullable=False)
    buffer_until = Column(DateTime, nullable=False)
    timezone = Column(String, nullable=False, default="UTC")
    status = Column(String, nullable=False, default=STATUS_SCHEDULED)
    notes = Column(Text)
    # "metadata" is reserved on declarative classes
    metadata_ = Column("metadata", JSON(none_as_null=True))
    created_by = Column(String)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow)
    is_deleted = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint(
            "status in ('scheduled','in_progress','completed','missed','failed','cancelled')",
            name="lead_booking_status_valid",
        ),
        Index("ix_lead_bookings_calendar", "tenant_id", "assigned_user_id", "status", "scheduled_at"),
    )
