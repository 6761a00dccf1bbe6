"""
Slot generation.

Bookable slots for one dietitian are derived on every call from the
current store state:

    1. skip days covered by an out-of-office period
    2. apply a date override: an unavailable date is skipped, an override
       with slots replaces that day's weekly rules, an empty one does nothing
    3. otherwise bind each active weekly rule for the zone-local weekday
    4. subtract confirmed/completed bookings from each window
    5. slice what is left into fixed-length slots, dropping partial tails
    6. keep only slots starting strictly after now plus the lead time

The result is a snapshot. Approval re-checks the slot before committing.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from sqlalchemy.orm import Session

from dietbook.core import config
from dietbook.core.errors import ValidationError
from dietbook.scheduling.conflicts import BookingConflictChecker
from dietbook.scheduling.out_of_office import OutOfOfficePeriodStore, covers
from dietbook.scheduling.overrides import AvailabilityOverrideStore
from dietbook.scheduling.schedules import AvailabilityScheduleStore
from dietbook.scheduling.timezones import day_of_week, get_zone, iter_days, parse_date, to_instant

logger = logging.getLogger(__name__)

Interval = tuple[datetime, datetime]


@dataclass(frozen=True)
class Slot:
    start: datetime
    end: datetime


def subtract_intervals(window: Interval, busy: list[Interval]) -> list[Interval]:
    """Remove every busy interval from ``window``; all intervals are half-open."""
    remaining = [window]

    for busy_start, busy_end in sorted(busy):
        next_remaining: list[Interval] = []
        for free_start, free_end in remaining:
            if busy_end <= free_start or busy_start >= free_end:
                next_remaining.append((free_start, free_end))
                continue
            if busy_start > free_start:
                next_remaining.append((free_start, busy_start))
            if busy_end < free_end:
                next_remaining.append((busy_end, free_end))
        remaining = next_remaining

    return remaining


def slice_interval(start: datetime, end: datetime, duration_minutes: int) -> list[Slot]:
    duration = timedelta(minutes=duration_minutes)
    slots: list[Slot] = []
    current = start

    while current + duration <= end:
        slots.append(Slot(start=current, end=current + duration))
        current += duration

    return slots


class SlotGenerator:
    def __init__(
        self,
        db: Session,
        lead_time_minutes: int | None = None,
        max_range_days: int | None = None,
    ) -> None:
        self.schedules = AvailabilityScheduleStore(db)
        self.out_of_office = OutOfOfficePeriodStore(db)
        self.overrides = AvailabilityOverrideStore(db)
        self.conflicts = BookingConflictChecker(db)
        self.lead_time_minutes = config.SLOT_LEAD_TIME_MINUTES if lead_time_minutes is None else lead_time_minutes
        self.max_range_days = config.SLOT_RANGE_MAX_DAYS if max_range_days is None else max_range_days

    def generate(
        self,
        dietitian_id: int,
        start_date: date | str,
        end_date: date | str,
        event_type,
        zone: str,
        now: datetime | None = None,
    ) -> list[Slot]:
        get_zone(zone)
        first_day = parse_date(start_date)
        last_day = parse_date(end_date)
        duration_minutes = getattr(event_type, 'duration_minutes', None)

        if first_day > last_day:
            raise ValidationError('start_date must be on or before end_date.')
        if (last_day - first_day).days + 1 > self.max_range_days:
            raise ValidationError(f'Date range cannot exceed {self.max_range_days} days.')
        if not duration_minutes or duration_minutes <= 0:
            raise ValidationError('Event type duration must be a positive number of minutes.')

        current_time = now if now is not None else datetime.now(timezone.utc)
        if current_time.tzinfo is None:
            current_time = current_time.replace(tzinfo=timezone.utc)
        earliest_start = current_time + timedelta(minutes=self.lead_time_minutes)

        rules = self.schedules.active_rules(dietitian_id)
        if not rules:
            return []

        periods = self.out_of_office.list(dietitian_id)
        overrides = self.overrides.for_range(dietitian_id, first_day, last_day)
        busy = self.conflicts.active_bookings(
            dietitian_id,
            to_instant(first_day, '00:00', zone),
            to_instant(last_day + timedelta(days=1), '00:00', zone),
        )

        slots: set[Slot] = set()
        for day in iter_days(first_day, last_day):
            if covers(periods, day):
                logger.debug('Dietitian %s is out of office on %s.', dietitian_id, day)
                continue

            override = overrides.get(day)
            if override is not None and override.is_unavailable:
                logger.debug('Dietitian %s marked %s unavailable.', dietitian_id, day)
                continue

            if override is not None and override.slots:
                windows = [(slot.start_time, slot.end_time) for slot in override.slots]
            else:
                weekday = day_of_week(day, zone)
                windows = [(rule.start_time, rule.end_time) for rule in rules if rule.day_of_week == weekday]

            for window_start, window_end in windows:
                window = (to_instant(day, window_start, zone), to_instant(day, window_end, zone))
                if window[0] >= window[1]:
                    continue

                for free_start, free_end in subtract_intervals(window, busy):
                    for slot in slice_interval(free_start, free_end, duration_minutes):
                        if slot.start > earliest_start:
                            slots.add(slot)

        return sorted(slots, key=lambda slot: (slot.start, slot.end))
