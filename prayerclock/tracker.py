"""Work out which prayer period is current and how much of it remains."""

import dataclasses
import datetime

from prayerclock.calculator import PrayerTimes, parse_time_12h


# Ishraq never bounds a period. Sunrise and Zawal do, but are not notified.
TRACKED_PRAYERS = ["Fajr", "Sunrise", "Dhuhr", "Asr", "Maghrib", "Isha", "Zawal"]

ONE_DAY = datetime.timedelta(days=1)


@dataclasses.dataclass(frozen=True)
class PrayerTimeInfo:
    name: str
    remaining_time: str
    time_in_ms: int
    percentage_remaining: float


def format_remaining(ms: int) -> str:
    """Format milliseconds as an 'HH:MM:SS' countdown, rounding down."""
    if ms < 0:
        return "00:00:00"
    seconds = int(ms // 1000)
    h = seconds // 3600
    m = (seconds % 3600) // 60
    s = seconds % 60
    return f"{h:02d}:{m:02d}:{s:02d}"


def _localize(naive: datetime.datetime, tzinfo) -> datetime.datetime:
    if tzinfo is None:
        return naive
    if hasattr(tzinfo, "localize"):
        # pytz zones pick the offset in force on that wall-clock date
        return tzinfo.localize(naive)
    return naive.replace(tzinfo=tzinfo)


def on_date(wall: datetime.datetime, day: datetime.date) -> datetime.datetime:
    """Move wall's clock time to another calendar day, re-resolving its UTC offset."""
    naive = datetime.datetime.combine(day, wall.time())
    return _localize(naive, wall.tzinfo)


def time_str_to_datetime(time_str: str, base: datetime.datetime) -> datetime.datetime:
    """
    Place an 'H:MM AM/PM' string on base's calendar date.

    The result is in base's time zone with the offset valid at that time;
    seconds and microseconds are zeroed.
    """
    total_minutes = round(parse_time_12h(time_str) * 60)
    hour, minute = divmod(total_minutes, 60)
    naive = datetime.datetime.combine(base.date(), datetime.time(hour, minute))
    return _localize(naive, base.tzinfo)


def _as_mapping(prayer_times) -> dict:
    if isinstance(prayer_times, PrayerTimes):
        return prayer_times.as_dict()
    return dict(prayer_times)


def build_schedule(prayer_times, now: datetime.datetime) -> list:
    """
    Return sorted (name, datetime) pairs for the tracked prayers.

    Any time already passed today is moved to tomorrow, so every name appears
    exactly once at or after now.
    """
    timings = _as_mapping(prayer_times)
    schedule = []
    for name in TRACKED_PRAYERS:
        if name not in timings:
            continue
        prayer_dt = time_str_to_datetime(timings[name], now)
        if prayer_dt < now:
            prayer_dt = on_date(prayer_dt, prayer_dt.date() + ONE_DAY)
        schedule.append((name, prayer_dt))
    schedule.sort(key=lambda entry: entry[1])
    return schedule


def get_current_prayer(prayer_times, now: datetime.datetime = None, tz=None) -> PrayerTimeInfo:
    """
    Return the prayer period that now falls in, with its remaining time.

    A period starts at its prayer time (inclusive) and ends when the next
    tracked prayer begins. percentage_remaining is the share of the period
    still ahead, in [0, 100].
    """
    if now is None:
        now = datetime.datetime.now(tz) if tz else datetime.datetime.now()

    schedule = build_schedule(prayer_times, now)
    if not schedule:
        raise ValueError("No tracked prayer times given")

    next_index = next(
        (index for index, (_, prayer_dt) in enumerate(schedule) if prayer_dt > now),
        0,
    )
    current_index = next_index - 1 if next_index > 0 else len(schedule) - 1
    current_name, current_dt = schedule[current_index]
    _, next_dt = schedule[next_index]

    if current_index == len(schedule) - 1 and next_index == 0:
        # current already rolled to tomorrow; measure from its start today
        current_dt = on_date(current_dt, current_dt.date() - ONE_DAY)
    total_ms = (next_dt - current_dt).total_seconds() * 1000
    remaining_ms = max(int((next_dt - now).total_seconds() * 1000), 0)

    if total_ms > 0:
        percentage = min(max(remaining_ms / total_ms * 100, 0.0), 100.0)
    else:
        percentage = 0.0

    return PrayerTimeInfo(
        name=current_name,
        remaining_time=format_remaining(remaining_ms),
        time_in_ms=remaining_ms,
        percentage_remaining=percentage,
    )
