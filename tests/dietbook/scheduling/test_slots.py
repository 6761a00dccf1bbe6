from datetime import date, datetime, time, timedelta, timezone
from types import SimpleNamespace

import pytest

from dietbook.core.errors import InvalidTimezone, ValidationError
from dietbook.models.out_of_office import OutOfOfficePeriod
from dietbook.scheduling.schedules import AvailabilityScheduleStore
from dietbook.scheduling.slots import SlotGenerator, slice_interval, subtract_intervals

NOW = datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc)
LAGOS = 'Africa/Lagos'
MONDAY = 1


def lagos(day: int, hour: int, minute: int = 0) -> datetime:
    """Wall-clock time in Lagos (UTC+1, no DST) as a UTC instant."""
    return datetime(2025, 1, day, hour - 1, minute, tzinfo=timezone.utc)


def add_leave(db, dietitian_id: int, start: date, end: date) -> None:
    db.add(OutOfOfficePeriod(dietitian_id=dietitian_id, start_date=start, end_date=end))
    db.commit()


def test_subtract_intervals_splits_around_busy_time() -> None:
    window = (lagos(6, 9), lagos(6, 17))

    assert subtract_intervals(window, [(lagos(6, 10), lagos(6, 11))]) == [
        (lagos(6, 9), lagos(6, 10)),
        (lagos(6, 11), lagos(6, 17)),
    ]
    assert subtract_intervals(window, [(lagos(6, 8), lagos(6, 18))]) == []
    assert subtract_intervals(window, [(lagos(6, 17), lagos(6, 18))]) == [window]


def test_slice_interval_drops_partial_tail() -> None:
    slots = slice_interval(lagos(6, 9), lagos(6, 10, 30), 45)

    assert [slot.start for slot in slots] == [lagos(6, 9), lagos(6, 9, 45)]


def test_out_of_office_days_are_skipped(db, dietitian, event_type, add_schedule) -> None:
    add_schedule(dietitian.id, MONDAY, time(9), time(17))
    add_leave(db, dietitian.id, date(2025, 1, 1), date(2025, 1, 5))

    slots = SlotGenerator(db).generate(dietitian.id, '2025-01-01', '2025-01-07', event_type, LAGOS, now=NOW)

    assert [slot.start for slot in slots] == [lagos(6, hour) for hour in range(9, 17)]
    assert all(slot.end - slot.start == timedelta(minutes=60) for slot in slots)


def test_out_of_office_covering_a_working_day_removes_it(db, dietitian, event_type, add_schedule) -> None:
    add_schedule(dietitian.id, MONDAY, time(9), time(17))
    add_leave(db, dietitian.id, date(2025, 1, 6), date(2025, 1, 6))

    assert SlotGenerator(db).generate(dietitian.id, '2025-01-06', '2025-01-06', event_type, LAGOS, now=NOW) == []


def test_confirmed_booking_removes_only_its_slot(db, dietitian, event_type, add_schedule, add_booking) -> None:
    add_schedule(dietitian.id, MONDAY, time(9), time(17))
    add_booking(dietitian.id, lagos(6, 10), lagos(6, 11))

    slots = SlotGenerator(db).generate(dietitian.id, '2025-01-06', '2025-01-06', event_type, LAGOS, now=NOW)

    starts = [slot.start for slot in slots]
    assert lagos(6, 10) not in starts
    assert starts == [lagos(6, hour) for hour in range(9, 17) if hour != 10]


def test_disabling_all_rules_hides_every_slot(db, dietitian, event_type, add_schedule) -> None:
    add_schedule(dietitian.id, MONDAY, time(9), time(17))
    generator = SlotGenerator(db)
    store = AvailabilityScheduleStore(db)

    store.set_all_active(dietitian.id, False)
    assert generator.generate(dietitian.id, '2025-01-06', '2025-01-06', event_type, LAGOS, now=NOW) == []

    store.set_all_active(dietitian.id, True)
    assert len(generator.generate(dietitian.id, '2025-01-06', '2025-01-06', event_type, LAGOS, now=NOW)) == 8


def test_inactive_rules_are_ignored(db, dietitian, event_type, add_schedule) -> None:
    add_schedule(dietitian.id, MONDAY, time(9), time(12))
    add_schedule(dietitian.id, MONDAY, time(14), time(16), active=False)

    slots = SlotGenerator(db).generate(dietitian.id, '2025-01-06', '2025-01-06', event_type, LAGOS, now=NOW)

    assert [slot.start for slot in slots] == [lagos(6, 9), lagos(6, 10), lagos(6, 11)]


def test_slots_must_start_after_now(db, dietitian, event_type, add_schedule) -> None:
    add_schedule(dietitian.id, MONDAY, time(9), time(17))
    now = lagos(6, 9, 30)

    slots = SlotGenerator(db).generate(dietitian.id, '2025-01-06', '2025-01-06', event_type, LAGOS, now=now)

    assert slots[0].start == lagos(6, 10)
    assert all(slot.start > now for slot in slots)


def test_lead_time_pushes_out_the_first_slot(db, dietitian, event_type, add_schedule) -> None:
    add_schedule(dietitian.id, MONDAY, time(9), time(17))

    slots = SlotGenerator(db, lead_time_minutes=120).generate(
        dietitian.id, '2025-01-06', '2025-01-06', event_type, LAGOS, now=lagos(6, 9, 30)
    )

    assert slots[0].start == lagos(6, 12)


def test_rules_bind_to_the_requested_zone(db, dietitian, event_type, add_schedule) -> None:
    add_schedule(dietitian.id, MONDAY, time(9), time(10))

    slots = SlotGenerator(db).generate(dietitian.id, '2025-01-06', '2025-01-06', event_type, 'America/New_York', now=NOW)

    assert [slot.start for slot in slots] == [datetime(2025, 1, 6, 14, 0, tzinfo=timezone.utc)]


def test_output_is_sorted_and_unique_for_overlapping_rules(db, dietitian, event_type, add_schedule) -> None:
    add_schedule(dietitian.id, MONDAY, time(9), time(12))
    add_schedule(dietitian.id, MONDAY, time(10), time(13))

    slots = SlotGenerator(db).generate(dietitian.id, '2025-01-06', '2025-01-06', event_type, LAGOS, now=NOW)

    starts = [slot.start for slot in slots]
    assert starts == sorted(set(starts))
    assert starts == [lagos(6, hour) for hour in range(9, 13)]


def test_no_rules_means_no_slots(db, dietitian, event_type) -> None:
    assert SlotGenerator(db).generate(dietitian.id, '2025-01-06', '2025-01-12', event_type, LAGOS, now=NOW) == []


def test_invalid_inputs_are_rejected(db, dietitian, event_type) -> None:
    generator = SlotGenerator(db, max_range_days=7)

    with pytest.raises(InvalidTimezone):
        generator.generate(dietitian.id, '2025-01-06', '2025-01-06', event_type, 'Nowhere/Special', now=NOW)

    with pytest.raises(ValidationError):
        generator.generate(dietitian.id, '2025-01-07', '2025-01-06', event_type, LAGOS, now=NOW)

    with pytest.raises(ValidationError):
        generator.generate(dietitian.id, '2025-01-01', '2025-01-31', event_type, LAGOS, now=NOW)

    with pytest.raises(ValidationError):
        generator.generate(dietitian.id, '2025-01-06', '2025-01-06', SimpleNamespace(duration_minutes=0), LAGOS, now=NOW)
