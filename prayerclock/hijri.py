"""Approximate Gregorian to Hijri conversion by counting days from a known anchor."""

import calendar
import dataclasses
import datetime


HIJRI_MONTHS = [
    "Muharram",
    "Safar",
    "Rabi al-Awwal",
    "Rabi al-Thani",
    "Jumada al-Awwal",
    "Jumada al-Thani",
    "Rajab",
    "Shaban",
    "Ramadan",
    "Shawwal",
    "Dhu al-Qadah",
    "Dhu al-Hijjah",
]

# Sunday first
HIJRI_DAYS = [
    "Al-Ahad",
    "Al-Ithnayn",
    "Al-Thulatha",
    "Al-Arbia",
    "Al-Khamis",
    "Al-Jumuah",
    "Al-Sabt",
]

# 11 March 2024 = 1 Ramadan 1445H
ANCHOR_GREGORIAN = datetime.date(2024, 3, 11)
ANCHOR_HIJRI = (1445, 9, 1)

LEAP_YEARS_IN_CYCLE = {2, 5, 7, 10, 13, 16, 18, 21, 24, 26, 29}


@dataclasses.dataclass(frozen=True)
class HijriDate:
    year: int
    month: int
    day: int
    month_name: str
    day_name: str
    formatted_date: str

    def short_format(self) -> str:
        """e.g. '3 Ramadan 1446H'"""
        return f"{self.day} {self.month_name} {self.year}H"


def is_hijri_leap_year(year: int) -> bool:
    """Leap years fall on fixed positions of the 30-year cycle."""
    year_in_cycle = year % 30
    return (year_in_cycle or 30) in LEAP_YEARS_IN_CYCLE


def days_in_hijri_month(month: int, year: int) -> int:
    """Odd months have 30 days, even months 29; Dhu al-Hijjah has 30 in leap years."""
    if month == 12 and is_hijri_leap_year(year):
        return 30
    return 30 if month % 2 == 1 else 29


def _as_date(value) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    return value


def calculate_hijri_date(gregorian_date, day_adjustment: int = 0) -> HijriDate:
    """
    Convert a Gregorian date (plus a manual day offset) to a Hijri date.

    The offset lets users calibrate against local moon sighting. The day name
    always follows the unadjusted Gregorian weekday.
    """
    date = _as_date(gregorian_date)
    remaining = (date - ANCHOR_GREGORIAN).days + int(day_adjustment)
    year, month, day = ANCHOR_HIJRI

    if remaining < 0:
        remaining = -remaining
        while remaining > 0:
            if day > remaining:
                day -= remaining
                remaining = 0
            else:
                # step back to the last day of the previous month
                remaining -= day
                month -= 1
                if month < 1:
                    month = 12
                    year -= 1
                day = days_in_hijri_month(month, year)
    else:
        while remaining > 0:
            left_in_month = days_in_hijri_month(month, year) - day + 1
            if remaining >= left_in_month:
                remaining -= left_in_month
                month += 1
                day = 1
                if month > 12:
                    month = 1
                    year += 1
            else:
                day += remaining
                remaining = 0

    month_name = HIJRI_MONTHS[month - 1]
    # date.weekday() is Monday = 0
    day_name = HIJRI_DAYS[(date.weekday() + 1) % 7]
    return HijriDate(
        year=year,
        month=month,
        day=day,
        month_name=month_name,
        day_name=day_name,
        formatted_date=f"{day} {month_name} {year}",
    )


def hijri_calendar_for_month(year: int, month: int, day_adjustment: int = 0) -> list:
    """Return [(gregorian_date, HijriDate), ...] for every day of a Gregorian month."""
    days = calendar.monthrange(year, month)[1]
    result = []
    for day in range(1, days + 1):
        gregorian = datetime.date(year, month, day)
        result.append((gregorian, calculate_hijri_date(gregorian, day_adjustment)))
    return result
