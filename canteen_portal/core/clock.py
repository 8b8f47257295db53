"""
Canteen Portal — Server-local time helpers

Menu days and order days are half-open intervals [start_of_day, start_of_day + 24h)
in the server's local timezone.
"""
from datetime import date, datetime, time, timedelta, timezone


def local_now() -> datetime:
    return datetime.now().astimezone()


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def start_of_day(day: date | None = None) -> datetime:
    day = day or local_now().date()
    return datetime.combine(day, time.min).astimezone()


def day_bounds(day: date | None = None) -> tuple[datetime, datetime]:
    start = start_of_day(day)
    return start, start + timedelta(hours=24)
