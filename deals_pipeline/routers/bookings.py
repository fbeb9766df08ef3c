from fastapi import APIRouter, Depends, HTTPException, Query

from deals_pipeline.errors import NotFound
from deals_pipeline.scheduler import BookingScheduler
from deals_pipeline.schemas import (
    BlockedSlot,
    BookingCreate,
    BookingFailRequest,
    BookingResponse,
    TimeSlot,
)
from deals_pipeline.tenancy import get_scheduler, get_tenant_id

router = APIRouter()


def _require(**params):
    missing = [name for name, value in params.items() if not value]
    if missing:
        raise HTTPException(status_code=400, detail=f"{', '.join(missing)} required")


@router.post("", status_code=201, response_model=BookingResponse)
def create_booking(
    body: BookingCreate,
    tenant_id: str = Depends(get_tenant_id),
    scheduler: BookingScheduler = Depends(get_scheduler),
):
    """
    Book a counsellor for a lead. The counsellor's calendar is blocked from
    scheduled_at for the safety window; an overlap with another booking or its
    buffer is rejected with 400 and nothing is stored.
    """
    booking = scheduler.create_booking(
        tenant_id=tenant_id,
        lead_id=body.lead_id,
        assigned_user_id=body.assigned_user_id,
        booking_type=body.booking_type,
        booking_source=body.booking_source,
        scheduled_at=body.scheduled_at,
        created_by=body.created_by,
        timezone=body.timezone,
        notes=body.notes,
        metadata=body.metadata,
    )
    return BookingResponse.model_validate(booking)

@router.get("/counsellor/{counsellor_id}", response_model=list[BookingResponse])
def list_by_counsellor(
    counsellor_id: str,
    tenant_id: str = Depends(get_tenant_id),
    scheduler: BookingScheduler = Depends(get_scheduler),
):
    return [BookingResponse.model_validate(b) for b in scheduler.list_by_counsellor(counsellor_id, tenant_id)]

@router.get("/lead/{lead_id}", response_model=list[BookingResponse])
@router.get("/student/{lead_id}", response_model=list[BookingResponse])
def list_by_lead(
    lead_id: str,
    tenant_id: str = Depends(get_tenant_id),
    scheduler: BookingScheduler = Depends(get_scheduler),
):
    return [BookingResponse.model_validate(b) for b in scheduler.list_by_lead(lead_id, tenant_id)]

@router.get("/range", response_model=list[BookingResponse])
def list_in_range(
    day_start: str | None = Query(default=None, alias="dayStart"),
    day_end: str | None = Query(default=None, alias="dayEnd"),
    tenant_id: str = Depends(get_tenant_id),
    scheduler: BookingScheduler = Depends(get_scheduler),
):
    _require(dayStart=day_start, dayEnd=day_end)
    return [BookingResponse.model_validate(b) for b in scheduler.list_in_range(day_start, day_end, tenant_id)]

@router.get("/availability", response_model=list[TimeSlot])
def get_availability(
    user_id: str | None = Query(default=None, alias="userId"),
    day_start: str | None = Query(default=None, alias="dayStart"),
    day_end: str | None = Query(default=None, alias="dayEnd"),
    slot_minutes: int | None = Query(default=None, alias="slotMinutes"),
    tenant_id: str = Depends(get_tenant_id),
    scheduler: BookingScheduler = Depends(get_scheduler),
):
    """
    Free slots of slotMinutes (default 5) for one counsellor in [dayStart, dayEnd).
    Advisory only: a later create re-validates against the current calendar.
    """
    _require(userId=user_id, dayStart=day_start, dayEnd=day_end)
    slots = scheduler.calculate_availability(user_id, tenant_id, day_start, day_end, slot_minutes)
    return [TimeSlot(start=s.start, end=s.end) for s in slots]

@router.get("/blocked", response_model=list[BlockedSlot])
def get_blocked_slots(
    user_id: str | None = Query(default=None, alias="userId"),
    day_start: str | None = Query(default=None, alias="dayStart"),
    day_end: str | None = Query(default=None, alias="dayEnd"),
    tenant_id: str = Depends(get_tenant_id),
    scheduler: BookingScheduler = Depends(get_scheduler),
):
    _require(userId=user_id, dayStart=day_start, dayEnd=day_end)
    blocked = scheduler.get_blocked_slots(user_id, tenant_id, day_start, day_end)
    return [BlockedSlot(scheduled_at=b.scheduled_at, buffer_until=b.buffer_until) for b in blocked]

@router.post("/{booking_id}/complete", response_model=BookingResponse)
def complete_booking(
    booking_id: str,
    tenant_id: str = Depends(get_tenant_id),
    scheduler: BookingScheduler = Depends(get_scheduler),
):
    booking = scheduler.mark_completed(booking_id, tenant_id)
    if booking is None:
        raise NotFound()
    return BookingResponse.model_validate(booking)

@router.post("/{booking_id}/fail", response_model=BookingResponse)
def fail_booking(
    booking_id: str,
    body: BookingFailRequest,
    tenant_id: str = Depends(get_tenant_id),
    scheduler: BookingScheduler = Depends(get_scheduler),
):
    """Mark a booking missed, failed or cancelled; its calendar time is released at once."""
    booking = scheduler.mark_failed(booking_id, body.status, tenant_id)
    if booking is None:
        raise NotFound()
    return BookingResponse.model_validate(booking)
