"""Booking repository - Database operations for lead bookings"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, bindparam, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from deals_pipeline.models import BLOCKING_STATUSES, STATUS_SCHEDULED, Booking


# Conflict check and insert in one statement: the row is written only if no
# blocking booking of the same counsellor overlaps [scheduled_at, buffer_until).
INSERT_IF_FREE = text("""
    INSERT INTO lead_bookings (
        id, tenant_id, lead_id, assigned_user_id, booking_type, booking_source,
        scheduled_at, buffer_until, timezone, status, notes, metadata,
        created_by, created_at, updated_at, is_deleted
    )
    SELECT
        :id, :tenant_id, :lead_id, :assigned_user_id, :booking_type, :booking_source,
        :scheduled_at, :buffer_until, :timezone, :status, :notes, :metadata,
        :created_by, :now, :now, :not_deleted
    WHERE NOT EXISTS (
        SELECT 1 FROM lead_bookings b
        WHERE b.tenant_id = :tenant_id
          AND b.assigned_user_id = :assigned_user_id
          AND b.is_deleted = :not_deleted
          AND b.status IN :blocking
          AND b.scheduled_at < :buffer_until
          AND b.buffer_until > :scheduled_at
    )
""").bindparams(
    bindparam("scheduled_at", type_=DateTime()),
    bindparam("buffer_until", type_=DateTime()),
    bindparam("now", type_=DateTime()),
    bindparam("metadata", type_=JSON(none_as_null=True)),
    bindparam("not_deleted", type_=Boolean()),
    bindparam("blocking", expanding=True),
)

# Serializes writers on one counsellor calendar for the rest of the transaction.
CALENDAR_LOCK = text("SELECT pg_advisory_xact_lock(hashtext(:calendar_key))")


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def insert_if_free(
        db: Session,
        *,
        tenant_id: str,
        assigned_user_id: str,
        scheduled_at: datetime,
        buffer_until: datetime,
        now: datetime,
        lead_id: Optional[str] = None,
        booking_type: Optional[str] = None,
        booking_source: Optional[str] = None,
        timezone: str = "UTC",
        notes: Optional[str] = None,
        metadata: Optional[dict] = None,
        created_by: Optional[str] = None,
    ) -> Optional[Booking]:
        """
        Insert a scheduled booking unless the slot overlaps a blocking one.
        Returns the stored booking, or None when the slot is taken.
        """
        booking_id = str(uuid.uuid4())
        params = {
            "id": booking_id,
            "tenant_id": tenant_id,
            "lead_id": lead_id,
            "assigned_user_id": assigned_user_id,
            "booking_type": booking_type,
            "booking_source": booking_source,
            "scheduled_at": scheduled_at,
            "buffer_until": buffer_until,
            "timezone": timezone,
            "status": STATUS_SCHEDULED,
            "notes": notes,
            "metadata": metadata,
            "created_by": created_by,
            "now": now,
            "not_deleted": False,
            "blocking": list(BLOCKING_STATUSES),
        }
        try:
            if db.get_bind().dialect.name == "postgresql":
                db.execute(CALENDAR_LOCK, {"calendar_key": f"{tenant_id}:{assigned_user_id}"})
            res = db.execute(INSERT_IF_FREE, params)
            if res.rowcount != 1:
                db.rollback()
                return None
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        return db.get(Booking, booking_id)

    @staticmethod
    def update_booking(db: Session, booking_id: str, tenant_id: str, **values) -> Optional[Booking]:
        """Update a non-deleted booking of the tenant; None if there is no such row"""
        try:
            count = (
                db.query(Booking)
                .filter(
                    Booking.id == booking_id,
                    Booking.tenant_id == tenant_id,
                    Booking.is_deleted.is_(False),
                )
                .update(values, synchronize_session=False)
            )
            if count != 1:
                db.rollback()
                return None
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        return db.get(Booking, booking_id)

    @staticmethod
    def get_blocked_ranges(
        db: Session, assigned_user_id: str, tenant_id: str, day_start: datetime, day_end: datetime
    ) -> list[tuple[datetime, datetime]]:
        """(scheduled_at, buffer_until) of blocking bookings overlapping [day_start, day_end)"""
        rows = (
            db.query(Booking.scheduled_at, Booking.buffer_until)
            .filter(
                Booking.tenant_id == tenant_id,
                Booking.assigned_user_id == assigned_user_id,
                Booking.is_deleted.is_(False),
                Booking.status.in_(BLOCKING_STATUSES),
                Booking.scheduled_at < day_end,
                Booking.buffer_until > day_start,
            )
            .order_by(Booking.scheduled_at)
            .all()
        )
        return [(r.scheduled_at, r.buffer_until) for r in rows]

    @staticmethod
    def get_by_counsellor(db: Session, counsellor_id: str, tenant_id: str) -> list[Booking]:
        return (
            db.query(Booking)
            .filter(
                Booking.tenant_id == tenant_id,
                Booking.assigned_user_id == counsellor_id,
                Booking.is_deleted.is_(False),
            )
            .order_by(Booking.scheduled_at)
            .all()
        )

    @staticmethod
    def get_by_lead(db: Session, lead_id: str, tenant_id: str) -> list[Booking]:
        return (
            db.query(Booking)
            .filter(
                Booking.tenant_id == tenant_id,
                Booking.lead_id == lead_id,
                Booking.is_deleted.is_(False),
            )
            .order_by(Booking.scheduled_at)
            .all()
        )

    @staticmethod
    def get_in_range(db: Session, day_start: datetime, day_end: datetime, tenant_id: str) -> list[Booking]:
        """Bookings starting within [day_start, day_end)"""
        return (
            db.query(Booking)
            .filter(
                Booking.tenant_id == tenant_id,
                Booking.is_deleted.is_(False),
                Booking.scheduled_at >= day_start,
                Booking.scheduled_at < day_end,
            )
            .order_by(Booking.scheduled_at)
            .all()
        )
