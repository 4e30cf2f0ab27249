"""Solar position helpers: day of year, declination, equation of time, solar noon."""

import datetime
import math

import pytz


DEGREES_PER_DAY = 360 / 365.24
AXIAL_TILT = 23.44


def degrees_to_radians(degrees: float) -> float:
    return degrees * (math.pi / 180)


def radians_to_degrees(radians: float) -> float:
    return radians * (180 / math.pi)


def wrap_hours(hours: float) -> float:
    """Wrap a decimal-hour value into [0, 24)."""
    return ((hours % 24) + 24) % 24


def _as_date(value) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    return value


def day_of_year(value) -> int:
    """
    Return the 1-based day count of value within its year.

    Accepts a date or a datetime; the time of day is ignored.
    """
    day = _as_date(value)
    return (day - datetime.date(day.year, 1, 1)).days + 1


def solar_declination_angle(day: int) -> float:
    """
    Solar declination in degrees for a 1-based day of year.

    Every trig argument is converted from degrees before the call, including
    the inner sine of the orbital correction term.
    """
    inner = DEGREES_PER_DAY * (day + 10) + 1.9137 * math.sin(
        degrees_to_radians(DEGREES_PER_DAY * (day - 2))
    )
    value = math.sin(degrees_to_radians(AXIAL_TILT)) * math.cos(degrees_to_radians(inner))
    return radians_to_degrees(-math.asin(value))


def equation_of_time(day: int) -> float:
    """Equation of time in decimal hours for a 1-based day of year."""
    b = degrees_to_radians(DEGREES_PER_DAY * (day - 81))
    return (9.87 * math.sin(2 * b) - 7.53 * math.cos(b) - 1.5 * math.sin(b)) / 60


def timezone_offset_hours(when, tz=None) -> float:
    """
    Return the civil UTC offset, in hours, in effect on the given date.

    An aware datetime carries its own offset. Otherwise the date is localized
    at noon in tz (a pytz zone or zone name), or in the host's local zone when
    tz is None.
    """
    if isinstance(when, datetime.datetime) and when.tzinfo is not None:
        return when.utcoffset().total_seconds() / 3600

    day = _as_date(when)
    noon = datetime.datetime(day.year, day.month, day.day, 12, 0)
    if tz is not None:
        if isinstance(tz, str):
            tz = pytz.timezone(tz)
        if hasattr(tz, "localize"):
            local = tz.localize(noon)
        else:
            local = noon.replace(tzinfo=tz)
    else:
        local = noon.astimezone()
    return local.utcoffset().total_seconds() / 3600


def dhuhr_decimal(longitude: float, when, tz=None) -> float:
    """Solar noon in local civil decimal hours (unwrapped)."""
    offset = timezone_offset_hours(when, tz)
    return offset - (longitude / 15) + 12 - equation_of_time(day_of_year(when))


def split_hours(hours: float) -> tuple:
    """
    Split decimal hours into (hour, minute), rounding half up to the minute.

    Minute overflow carries into the hour and the hour wraps into [0, 24).
    """
    total = math.floor(wrap_hours(hours) * 60 + 0.5) % (24 * 60)
    return divmod(total, 60)


def dhuhr_time(longitude: float, when, tz=None) -> str:
    """Solar noon as a 24-hour 'HH:MM' string."""
    hour, minute = split_hours(dhuhr_decimal(longitude, when, tz))
    return f"{hour:02d}:{minute:02d}"
