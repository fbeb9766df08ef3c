"""
Counsellor booking scheduler.

A booking occupies its counsellor's calendar over the half-open interval
[scheduled_at, buffer_until), where buffer_until starts out as scheduled_at
plus the safety window. Two blocking bookings of the same tenant and
counsellor never overlap. A failure transition (missed/failed/cancelled)
collapses the buffer to "now"; completion leaves it to lapse.

All instants handled here are naive UTC datetimes.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, NamedTuple, Optional

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from deals_pipeline.config import Settings, settings
from deals_pipeline.errors import (
    InvalidSlotLength,
    InvalidStatus,
    InvalidTimestamp,
    MissingTenantContext,
    SlotUnavailable,
)
from deals_pipeline.models import FAILURE_STATUSES, STATUS_COMPLETED, Booking, utcnow
from deals_pipeline.repository import BookingRepository

logger = logging.getLogger(__name__)

_instant = TypeAdapter(datetime)


class Slot(NamedTuple):
    start: datetime
    end: datetime


class BlockedRange(NamedTuple):
    scheduled_at: datetime
    buffer_until: datetime


@dataclass(frozen=True)
class SchedulerConfig:
    call_minutes: int = 5
    buffer_minutes: int = 5
    # The window actually enforced on every booking
    safety_minutes: int = 15
    default_slot_minutes: int = 5

    @classmethod
    def from_settings(cls, s: Settings = settings) -> "SchedulerConfig":
        return cls(
            call_minutes=s.booking_call_minutes,
            buffer_minutes=s.booking_buffer_minutes,
            safety_minutes=s.booking_safety_minutes,
            default_slot_minutes=s.default_slot_minutes,
        )

    @property
    def safety_window(self) -> timedelta:
        return timedelta(minutes=self.safety_minutes)


def parse_instant(value: Any, field: str = "scheduled_at") -> datetime:
    """
    Parse an ISO-8601 string (or take a datetime) as a naive UTC instant.
    Values without an offset are read as UTC.
    """
    if value is None or value == "":
        raise InvalidTimestamp(f"{field} is required")
    if not isinstance(value, datetime):
        try:
            value = _instant.validate_python(value)
        except ValidationError as exc:
            raise InvalidTimestamp(f"Invalid {field} timestamp") from exc
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def overlaps(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    """Half-open test: [start, end) and [other_start, other_end) share an instant."""
    return start < other_end and other_start < end


def _require_tenant(tenant_id: Optional[str], operation: str) -> None:
    if not tenant_id:
        raise MissingTenantContext(f"tenant_id is required for {operation}")


class BookingScheduler:
    """Creation, lifecycle and availability of counsellor bookings"""

    def __init__(
        self,
        db: Session,
        config: Optional[SchedulerConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.config = config or SchedulerConfig.from_settings()
        self.clock = clock
        self.repo = BookingRepository()

    def create_booking(
        self,
        tenant_id: str,
        lead_id: Optional[str],
        assigned_user_id: str,
        booking_type: Optional[str],
        booking_source: Optional[str],
        scheduled_at: Any,
        created_by: Optional[str],
        timezone: str = "UTC",
        notes: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> Booking:
        """Book the counsellor at scheduled_at, blocking the full safety window."""
        _require_tenant(tenant_id, "create_booking")
        start = parse_instant(scheduled_at)
        buffer_until = start + self.config.safety_window

        booking = self.repo.insert_if_free(
            self.db,
            tenant_id=tenant_id,
            lead_id=lead_id,
            assigned_user_id=assigned_user_id,
            booking_type=booking_type,
            booking_source=booking_source,
            scheduled_at=start,
            buffer_until=buffer_until,
            timezone=timezone or "UTC",
            notes=notes or None,
            metadata=metadata or None,
            created_by=created_by,
            now=self.clock(),
        )
        if booking is None:
            logger.info(
                "Slot %s-%s unavailable for counsellor %s (tenant %s)",
                start.isoformat(), buffer_until.isoformat(), assigned_user_id, tenant_id,
            )
            raise SlotUnavailable()

        logger.info("Booking %s created for counsellor %s at %s", booking.id, assigned_user_id, start.isoformat())
        return booking

    def mark_completed(self, booking_id: str, tenant_id: str) -> Optional[Booking]:
        """Mark booking completed (buffer expires naturally)"""
        _require_tenant(tenant_id, "mark_completed")
        booking = self.repo.update_booking(
            self.db, booking_id, tenant_id, status=STATUS_COMPLETED, updated_at=self.clock()
        )
        if booking is not None:
            logger.info("Booking %s completed", booking_id)
        return booking

    def mark_failed(self, booking_id: str, status: str, tenant_id: str) -> Optional[Booking]:
        """Fail / miss / cancel a booking and release its buffer immediately"""
        _require_tenant(tenant_id, "mark_failed")
        if status not in FAILURE_STATUSES:
            raise InvalidStatus(f"Invalid failure status: {status!r}")

        now = self.clock()
        booking = self.repo.update_booking(
            self.db, booking_id, tenant_id, status=status, buffer_until=now, updated_at=now
        )
        if booking is not None:
            logger.info("Booking %s marked %s, calendar released", booking_id, status)
        return booking

    def get_blocked_slots(
        self, assigned_user_id: str, tenant_id: str, day_start: Any, day_end: Any
    ) -> list[BlockedRange]:
        _require_tenant(tenant_id, "get_blocked_slots")
        day_start = parse_instant(day_start, "dayStart")
        day_end = parse_instant(day_end, "dayEnd")
        rows = self.repo.get_blocked_ranges(self.db, assigned_user_id, tenant_id, day_start, day_end)
        return [BlockedRange(*row) for row in rows]

    def calculate_availability(
        self,
        user_id: str,
        tenant_id: str,
        day_start: Any,
        day_end: Any,
        slot_minutes: Optional[int] = None,
    ) -> list[Slot]:
        """
        Free slots of slot_minutes length in [day_start, day_end).

        Candidates are laid out from day_start; a trailing period shorter than a
        slot is never offered. A candidate is free when it overlaps no blocked
        range. Adjacent ranges do not overlap.
        """
        if slot_minutes is None:
            slot_minutes = self.config.default_slot_minutes
        if isinstance(slot_minutes, bool) or not isinstance(slot_minutes, int) or slot_minutes <= 0:
            raise InvalidSlotLength()

        blocked = self.get_blocked_slots(user_id, tenant_id, day_start, day_end)
        day_start = parse_instant(day_start, "dayStart")
        day_end = parse_instant(day_end, "dayEnd")
        step = timedelta(minutes=slot_minutes)

        slots = []
        cursor = day_start
        while cursor + step <= day_end:
            slot_end = cursor + step
            if not any(overlaps(cursor, slot_end, b.scheduled_at, b.buffer_until) for b in blocked):
                slots.append(Slot(cursor, slot_end))
            cursor = slot_end
        return slots

    def list_by_counsellor(self, counsellor_id: str, tenant_id: str) -> list[Booking]:
        _require_tenant(tenant_id, "list_by_counsellor")
        return self.repo.get_by_counsellor(self.db, counsellor_id, tenant_id)

    def list_by_lead(self, lead_id: str, tenant_id: str) -> list[Booking]:
        _require_tenant(tenant_id, "list_by_lead")
        return self.repo.get_by_lead(self.db, lead_id, tenant_id)

    def list_in_range(self, day_start: Any, day_end: Any, tenant_id: str) -> list[Booking]:
        _require_tenant(tenant_id, "list_in_range")
        return self.repo.get_in_range(
            self.db, parse_instant(day_start, "dayStart"), parse_instant(day_end, "dayEnd"), tenant_id
        )
