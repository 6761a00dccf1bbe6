"""Zone-aware date and time helpers.

Weekday and "is this date in the past" questions are always answered on
the calendar of the requested IANA zone. Nothing here reads the process's
local zone.
"""

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dietbook.core.errors import InvalidDate, InvalidTimezone

DAY_NAMES = ('Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday')


def get_zone(name: str) -> ZoneInfo:
    if not name or not isinstance(name, str):
        raise InvalidTimezone('Timezone is required.')
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
        raise InvalidTimezone(f'Unknown timezone: {name}') from exc


def parse_date(value: date | datetime | str) -> date:
    """Return the calendar date of ``value``.

    Full timestamps are accepted; aware ones are read on the UTC calendar,
    naive ones as written.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).date()
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidDate('Date is required.')

    normalized = value.strip()
    try:
        if len(normalized) == 10:
            return date.fromisoformat(normalized)
        return parse_date(datetime.fromisoformat(normalized.replace('Z', '+00:00')))
    except ValueError as exc:
        raise InvalidDate(f'Invalid date: {value}') from exc


def parse_time(value: time | str) -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if not isinstance(value, str) or not value.strip():
        raise InvalidDate('Time is required.')

    for time_format in ('%H:%M', '%H:%M:%S'):
        try:
            return datetime.strptime(value.strip(), time_format).time()
        except ValueError:
            continue
    raise InvalidDate(f'Invalid time: {value}')


def parse_instant(value: datetime | str) -> datetime:
    """Parse an ISO-8601 instant. Naive values are taken as UTC."""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
        except ValueError as exc:
            raise InvalidDate(f'Invalid timestamp: {value}') from exc
    if not isinstance(value, datetime):
        raise InvalidDate('Timestamp is required.')
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_instant(date_value: date | str, time_value: time | str, zone: str) -> datetime:
    """Bind a zone-local wall-clock time to a date and return it in UTC."""
    tz = get_zone(zone)
    local = datetime.combine(parse_date(date_value), parse_time(time_value), tzinfo=tz)
    return local.astimezone(timezone.utc)


def local_date(value: date | datetime | str, zone: str) -> date:
    tz = get_zone(zone)
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(tz).date()
    if isinstance(value, str) and len(value.strip()) > 10:
        return parse_instant(value).astimezone(tz).date()
    return parse_date(value)


def day_of_week(value: date | datetime | str, zone: str) -> int:
    """0 = Sunday ... 6 = Saturday, read on the zone's calendar."""
    return (local_date(value, zone).weekday() + 1) % 7


def local_day_name(value: date | datetime | str, zone: str) -> str:
    return DAY_NAMES[day_of_week(value, zone)]


def now_in_zone(zone: str, now: datetime | None = None) -> datetime:
    current = now if now is not None else datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    return current.astimezone(get_zone(zone))


def today_in_zone(zone: str, now: datetime | None = None) -> date:
    return now_in_zone(zone, now).date()


def is_past_date(value: date | datetime | str, zone: str, now: datetime | None = None) -> bool:
    return local_date(value, zone) < today_in_zone(zone, now)


def iter_days(start: date, end: date):
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def to_storage(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant
    return instant.astimezone(timezone.utc).replace(tzinfo=None)


def from_storage(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
