from datetime import timedelta

import pytest

from deals_pipeline.errors import InvalidSlotLength
from deals_pipeline.scheduler import Slot, overlaps

from conftest import COUNSELLOR, DAY, TENANT

NINE = DAY.replace(hour=9)
ELEVEN = DAY.replace(hour=11)


def grid(start, end, minutes):
    step = timedelta(minutes=minutes)
    out = []
    while start + step <= end:
        out.append(Slot(start, start + step))
        start += step
    return out


def test_booking_excludes_only_the_slot_it_touches(make_booking, scheduler):
    make_booking(NINE)

    slots = scheduler.calculate_availability(COUNSELLOR, TENANT, NINE, ELEVEN, 30)

    assert Slot(NINE, NINE + timedelta(minutes=30)) not in slots
    assert slots == [
        Slot(NINE + timedelta(minutes=30), NINE + timedelta(minutes=60)),
        Slot(NINE + timedelta(minutes=60), NINE + timedelta(minutes=90)),
        Slot(NINE + timedelta(minutes=90), ELEVEN),
    ]

def test_empty_calendar_uses_default_slot_length(scheduler):
    slots = scheduler.calculate_availability(COUNSELLOR, TENANT, NINE, ELEVEN)
    assert len(slots) == 24
    assert slots[0] == Slot(NINE, NINE + timedelta(minutes=5))
    assert slots[-1].end == ELEVEN

def test_trailing_partial_slot_is_dropped(scheduler):
    slots = scheduler.calculate_availability(COUNSELLOR, TENANT, NINE, NINE + timedelta(minutes=50), 20)
    assert slots == grid(NINE, NINE + timedelta(minutes=40), 20)

def test_adjacent_slots_stay_free(make_booking, scheduler):
    # buffer 09:45-10:00 sits exactly between two 15 minute slots
    make_booking(NINE + timedelta(minutes=45))
    slots = scheduler.calculate_availability(COUNSELLOR, TENANT, NINE, ELEVEN, 15)

    assert Slot(NINE + timedelta(minutes=30), NINE + timedelta(minutes=45)) in slots
    assert Slot(NINE + timedelta(minutes=45), NINE + timedelta(minutes=60)) not in slots
    assert Slot(NINE + timedelta(minutes=60), NINE + timedelta(minutes=75)) in slots

def test_booking_straddling_day_start_blocks_first_slot(make_booking, scheduler):
    make_booking(NINE - timedelta(minutes=10))
    slots = scheduler.calculate_availability(COUNSELLOR, TENANT, NINE, ELEVEN, 30)
    assert slots[0].start == NINE + timedelta(minutes=30)

def test_free_and_blocked_cover_the_grid(make_booking, scheduler):
    for minutes in (0, 25, 70, 115):
        make_booking(NINE + timedelta(minutes=minutes))

    free = scheduler.calculate_availability(COUNSELLOR, TENANT, NINE, ELEVEN, 10)
    blocked = scheduler.get_blocked_slots(COUNSELLOR, TENANT, NINE, ELEVEN)
    taken = [
        s for s in grid(NINE, ELEVEN, 10)
        if any(overlaps(s.start, s.end, b.scheduled_at, b.buffer_until) for b in blocked)
    ]

    assert not set(free) & set(taken)
    assert sorted(free + taken) == grid(NINE, ELEVEN, 10)

def test_blocked_slots_are_ordered_and_scoped(make_booking, make_deleted_booking, scheduler):
    make_booking(NINE + timedelta(hours=1))
    make_booking(NINE)
    make_booking(NINE, counsellor="c-2")
    make_booking(NINE + timedelta(minutes=30), tenant_id="t-2")
    make_deleted_booking(NINE + timedelta(minutes=30))
    cancelled = make_booking(NINE + timedelta(minutes=30))
    scheduler.mark_failed(cancelled.id, "cancelled", TENANT)
    make_booking(ELEVEN)

    blocked = scheduler.get_blocked_slots(COUNSELLOR, TENANT, NINE, ELEVEN)

    assert [(b.scheduled_at, b.buffer_until) for b in blocked] == [
        (NINE, NINE + timedelta(minutes=15)),
        (NINE + timedelta(hours=1), NINE + timedelta(hours=1, minutes=15)),
    ]

def test_completed_booking_still_blocks(make_booking, scheduler):
    booking = make_booking(NINE)
    scheduler.mark_completed(booking.id, TENANT)

    slots = scheduler.calculate_availability(COUNSELLOR, TENANT, NINE, ELEVEN, 30)
    assert slots[0].start == NINE + timedelta(minutes=30)

def test_empty_or_inverted_range(scheduler):
    assert scheduler.calculate_availability(COUNSELLOR, TENANT, ELEVEN, NINE, 30) == []
    assert scheduler.calculate_availability(COUNSELLOR, TENANT, NINE, NINE, 30) == []

@pytest.mark.parametrize("minutes", [0, -5, True, 2.5])
def test_rejects_bad_slot_length(scheduler, minutes):
    with pytest.raises(InvalidSlotLength):
        scheduler.calculate_availability(COUNSELLOR, TENANT, NINE, ELEVEN, minutes)
