"""Conversions between datetimes and the JDE date/time encodings.

JDE stores dates as Julian ``CYYDDD`` integers (``115245`` is day 245 of 2015)
and times of day as ``HHMMSS`` integers (``103000`` is 10:30:00).
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta


def to_jde_date(value: date) -> int:
    return (value.year - 1900) * 1000 + value.timetuple().tm_yday


def to_jde_time(value: datetime | time) -> int:
    return value.hour * 10000 + value.minute * 100 + value.second


def from_jde_date(value: int) -> date:
    if value <= 0:
        raise ValueError(f"invalid JDE date: {value}")
    year = 1900 + value // 1000
    day_of_year = value % 1000
    if not 1 <= day_of_year <= 366:
        raise ValueError(f"invalid JDE date: {value}")
    return date(year, 1, 1) + timedelta(days=day_of_year - 1)


def from_jde_time(value: int) -> time:
    hours, rest = divmod(value, 10000)
    minutes, seconds = divmod(rest, 100)
    return time(hours, minutes, seconds)


def from_jde(jde_date: int, jde_time: int) -> datetime:
    return datetime.combine(from_jde_date(jde_date), from_jde_time(jde_time))


def adjust_by_minutes(value: datetime, minutes: int) -> tuple[int, int]:
    """Shift ``value`` by ``minutes`` and return the JDE (date, time) pair.

    Aware datetimes are converted to local time first, since JDE writes local
    wall-clock values.
    """
    shifted = value + timedelta(minutes=minutes)
    if shifted.tzinfo is not None:
        shifted = shifted.astimezone()
    return to_jde_date(shifted), to_jde_time(shifted)
