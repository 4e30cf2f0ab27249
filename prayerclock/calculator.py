"""Compute daily prayer times locally from coordinates, date and madhab."""

import dataclasses
import datetime
import enum
import math

from prayerclock.solar import (
    day_of_year,
    degrees_to_radians,
    dhuhr_time,
    radians_to_degrees,
    solar_declination_angle,
    split_hours,
    wrap_hours,
)


PRAYER_NAMES = ["Fajr", "Sunrise", "Ishraq", "Dhuhr", "Asr", "Maghrib", "Isha", "Zawal"]

SUNRISE_ZENITH = 91.0
FAJR_ZENITH = 109.0
ELEVATION_FACTOR = 0.0347
ISHRAQ_DELAY_HOURS = 20 / 60

# Legacy preference encodings
ASR_SHAFI, ASR_HANAFI = 1, 2
ISHA_HANAFI, ISHA_SHAFI = 1, 2


class Madhab(enum.Enum):
    HANAFI = "hanafi"
    SHAFI = "shafi"

    @property
    def asr_shadow_ratio(self) -> int:
        return 2 if self is Madhab.HANAFI else 1

    @property
    def isha_zenith(self) -> float:
        return 109.0 if self is Madhab.HANAFI else 107.0

    @property
    def is_hanafi(self) -> bool:
        return self is Madhab.HANAFI

    @classmethod
    def from_flag(cls, is_hanafi: bool) -> "Madhab":
        return cls.HANAFI if is_hanafi else cls.SHAFI

    @classmethod
    def from_legacy(cls, asr_method: int) -> "Madhab":
        """
        Translate the legacy asrMethod integer (1 = Shafi, 2 = Hanafi).

        The stored ishaMethod always mirrors it (1 = Hanafi, 2 = Shafi), so the
        Asr value alone identifies the madhab.
        """
        return cls.HANAFI if int(asr_method) == ASR_HANAFI else cls.SHAFI

    def to_legacy(self) -> tuple:
        """Return the (asrMethod, ishaMethod) pair for this madhab."""
        if self is Madhab.HANAFI:
            return ASR_HANAFI, ISHA_HANAFI
        return ASR_SHAFI, ISHA_SHAFI


@dataclasses.dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float
    altitude: float = 0.0


@dataclasses.dataclass(frozen=True)
class PrayerHours:
    """Prayer times as decimal hours, before wrapping into [0, 24)."""

    fajr: float
    sunrise: float
    ishraq: float
    dhuhr: float
    asr: float
    maghrib: float
    isha: float
    zawal: float

    def as_dict(self) -> dict:
        return {name: getattr(self, name.lower()) for name in PRAYER_NAMES}


@dataclasses.dataclass(frozen=True)
class PrayerTimes:
    """The eight named times of one day, formatted 'H:MM AM/PM'."""

    fajr: str
    sunrise: str
    ishraq: str
    dhuhr: str
    asr: str
    maghrib: str
    isha: str
    zawal: str

    def __getitem__(self, name: str) -> str:
        if name not in PRAYER_NAMES:
            raise KeyError(name)
        return getattr(self, name.lower())

    def __iter__(self):
        return iter(PRAYER_NAMES)

    def as_dict(self) -> dict:
        return {name: self[name] for name in PRAYER_NAMES}


def format_time_12h(hours: float) -> str:
    """Format decimal hours as 'H:MM AM/PM' after wrapping into [0, 24)."""
    hour, minute = split_hours(hours)
    period = "PM" if hour >= 12 else "AM"
    display = hour % 12 or 12
    return f"{display}:{minute:02d} {period}"


def parse_time_12h(time_str: str) -> float:
    """Parse 'H:MM AM/PM' back into decimal hours. Raises ValueError if malformed."""
    try:
        clock, period = time_str.strip().split()
        hours, minutes = (int(part) for part in clock.split(":"))
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid 12-hour time: {time_str!r}")
    period = period.upper()
    if period not in ("AM", "PM") or not 1 <= hours <= 12 or not 0 <= minutes < 60:
        raise ValueError(f"Invalid 12-hour time: {time_str!r}")
    if period == "PM" and hours != 12:
        hours += 12
    if period == "AM" and hours == 12:
        hours = 0
    return hours + minutes / 60


def twilight_zenith(base_angle: float, altitude: float) -> float:
    """Zenith angle corrected for the observer's elevation in meters."""
    return base_angle + math.sqrt(max(altitude, 0.0)) * ELEVATION_FACTOR


def hour_angle_offset(
    day: int,
    coordinates: Coordinates,
    zenith: float = None,
    shadow_ratio: float = None,
) -> float:
    """
    Hours between solar noon and the moment the sun reaches a given angle.

    Pass zenith (degrees) for twilight-based times, or shadow_ratio for Asr.
    The arccos argument is clamped to [-1, 1], so polar latitudes degrade to
    0 or 12 hours instead of raising.
    """
    declination = degrees_to_radians(solar_declination_angle(day))
    latitude = degrees_to_radians(coordinates.latitude)

    if zenith is None:
        zenith = radians_to_degrees(
            math.atan(shadow_ratio + math.tan(abs(latitude - declination)))
        )

    angle = degrees_to_radians(zenith)
    value = math.cos(angle) / (math.cos(latitude) * math.cos(declination)) - math.tan(
        latitude
    ) * math.tan(declination)
    clamped = max(-1.0, min(1.0, value))
    return radians_to_degrees(math.acos(clamped)) / 15


def _resolve_conventions(asr_method, isha_method) -> tuple:
    """Return (shadow_ratio, isha_zenith) from either encoding."""
    if isinstance(asr_method, Madhab):
        return asr_method.asr_shadow_ratio, asr_method.isha_zenith
    if isinstance(isha_method, Madhab):
        isha_zenith = isha_method.isha_zenith
    else:
        isha_zenith = Madhab.SHAFI.isha_zenith if isha_method == ISHA_SHAFI else FAJR_ZENITH
    return asr_method, isha_zenith


def calculate_prayer_hours(
    date: datetime.date,
    coordinates: Coordinates,
    asr_method=ASR_HANAFI,
    isha_method=ISHA_HANAFI,
    tz=None,
) -> PrayerHours:
    """
    Compute the eight prayer times for date as unwrapped decimal hours.

    asr_method is the Asr shadow ratio (1 Shafi, 2 Hanafi) or a Madhab, which
    then fixes both conventions. isha_method is 1 (Hanafi, 109 degrees) or
    2 (Shafi, 107 degrees).
    """
    shadow_ratio, isha_zenith = _resolve_conventions(asr_method, isha_method)
    day = day_of_year(date)
    altitude = coordinates.altitude

    hours, minutes = map(int, dhuhr_time(coordinates.longitude, date, tz).split(":"))
    dhuhr = hours + minutes / 60

    fajr_offset = hour_angle_offset(day, coordinates, zenith=twilight_zenith(FAJR_ZENITH, altitude))
    sunrise_offset = hour_angle_offset(day, coordinates, zenith=twilight_zenith(SUNRISE_ZENITH, altitude))
    asr_offset = hour_angle_offset(day, coordinates, shadow_ratio=shadow_ratio)
    maghrib_offset = hour_angle_offset(day, coordinates, zenith=twilight_zenith(SUNRISE_ZENITH, altitude))
    isha_offset = hour_angle_offset(day, coordinates, zenith=twilight_zenith(isha_zenith, altitude))

    fajr = dhuhr - fajr_offset
    sunrise = dhuhr - sunrise_offset
    maghrib = dhuhr + maghrib_offset

    return PrayerHours(
        fajr=fajr,
        sunrise=sunrise,
        ishraq=sunrise + ISHRAQ_DELAY_HOURS,
        dhuhr=dhuhr,
        asr=dhuhr + asr_offset,
        maghrib=maghrib,
        isha=dhuhr + isha_offset,
        zawal=(fajr + maghrib) / 2,
    )


def calculate_prayer_times(
    date: datetime.date,
    coordinates: Coordinates,
    asr_method=ASR_HANAFI,
    isha_method=ISHA_HANAFI,
    tz=None,
) -> PrayerTimes:
    """
    Compute the eight prayer times for date, formatted 'H:MM AM/PM'.

    Pure and total: the same arguments always give the same result, and
    no finite input raises.
    """
    prayer_hours = calculate_prayer_hours(date, coordinates, asr_method, isha_method, tz)
    return PrayerTimes(
        **{
            name.lower(): format_time_12h(wrap_hours(value))
            for name, value in prayer_hours.as_dict().items()
        }
    )


def sehri_end_time(fajr_time: str, minutes: int = 5) -> str:
    """Return the last time for Sehri, the given minutes before Fajr."""
    return format_time_12h(parse_time_12h(fajr_time) - minutes / 60)


def iftar_time(prayer_times: PrayerTimes) -> str:
    """Iftar falls at Maghrib."""
    return prayer_times["Maghrib"]
