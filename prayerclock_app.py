#!/usr/bin/env python3
"""
Prayer Clock
Terminal companion that shows:
  - Current location and date (Gregorian + Hijri)
  - Daily prayer times computed locally
  - Sehri end and Iftar times
  - Live countdown for the current prayer period
  - Desktop alert when a prayer period begins
  - Hijri dates for a whole Gregorian month
"""

import argparse
import datetime
import logging
import os
import sys
import time

import pytz

from prayerclock import location
from prayerclock.calculator import (
    PRAYER_NAMES,
    Coordinates,
    Madhab,
    calculate_prayer_times,
    iftar_time,
    sehri_end_time,
)
from prayerclock.hijri import calculate_hijri_date, hijri_calendar_for_month
from prayerclock.location import (
    PermissionDenied,
    clear_manual_location,
    get_current_coordinates,
    get_location,
    save_manual_location,
)
from prayerclock.notifier import (
    NOTIFIABLE_PRAYERS,
    SOUND_OPTIONS,
    DesktopNotifier,
    NotificationOrchestrator,
    SoundPlayer,
    SoundPreference,
)
from prayerclock.preferences import PreferenceStore
from prayerclock.tracker import get_current_prayer

logger = logging.getLogger("prayerclock")

REFRESH_SECONDS = 1  # tick every second


def setup_basic_logging(verbose: bool = False) -> None:
    """Setup stdout logging"""
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def year_month(value: str):
    try:
        parsed = datetime.datetime.strptime(value, "%Y-%m")
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM, got {value!r}")
    return parsed.year, parsed.month


def notifiable_prayer(value: str) -> str:
    name = value.capitalize()
    if name not in NOTIFIABLE_PRAYERS:
        raise argparse.ArgumentTypeError(f"{value!r} is not one of {', '.join(NOTIFIABLE_PRAYERS)}")
    return name


def prayer_sound(value: str):
    prayer, sep, sound = value.partition("=")
    if not sep or sound not in SOUND_OPTIONS:
        raise argparse.ArgumentTypeError(f"expected PRAYER=SOUND with SOUND in {', '.join(SOUND_OPTIONS)}")
    return notifiable_prayer(prayer), sound


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Prayer times and live countdown")
    parser.add_argument("--lat", type=float, help="Latitude in degrees")
    parser.add_argument("--lon", type=float, help="Longitude in degrees")
    parser.add_argument("--alt", type=float, help="Altitude in meters (overrides saved value)")
    parser.add_argument("--timezone", help="IANA time zone, e.g. Asia/Karachi")
    parser.add_argument("--city", help="Name shown for a saved --lat/--lon location")
    parser.add_argument("--save-location", action="store_true",
                        help="Save --lat/--lon/--timezone (or the detected location) for later runs")
    parser.add_argument("--clear-location", action="store_true", help="Forget the saved location")
    parser.add_argument("--madhab", choices=[m.value for m in Madhab],
                        help="Save and use this madhab")
    parser.add_argument("--date", type=datetime.date.fromisoformat,
                        help="Print the table for YYYY-MM-DD and exit")
    parser.add_argument("--hijri-month", type=year_month, metavar="YYYY-MM",
                        help="Print Hijri dates for a Gregorian month and exit")
    parser.add_argument("--hijri-adjust", type=int, help="Save a Hijri day adjustment")
    parser.add_argument("--once", action="store_true", help="Print once and exit")
    parser.add_argument("--background", action="store_true",
                        help="Use the slower background countdown cadence")
    notify = parser.add_mutually_exclusive_group()
    notify.add_argument("--notify", dest="notify", action="store_true", default=None,
                        help="Turn desktop notifications on and remember it")
    notify.add_argument("--no-notify", dest="notify", action="store_false",
                        help="Turn desktop notifications off and remember it")
    parser.add_argument("--sound", type=prayer_sound, action="append", default=[], metavar="PRAYER=SOUND",
                        help=f"Save the alert sound for a prayer ({', '.join(SOUND_OPTIONS)})")
    parser.add_argument("--mute", type=notifiable_prayer, action="append", default=[], metavar="PRAYER",
                        help="Save a silent alert for a prayer")
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.set_defaults(notify=None)
    args = parser.parse_args(argv)
    if (args.lat is None) != (args.lon is None):
        parser.error("--lat and --lon must be given together")
    if args.lat is not None and not (-90 <= args.lat <= 90 and -180 <= args.lon <= 180):
        parser.error("--lat must be within [-90, 90] and --lon within [-180, 180]")
    if args.timezone:
        try:
            pytz.timezone(args.timezone)
        except pytz.UnknownTimeZoneError:
            parser.error(f"Unknown time zone: {args.timezone}")
    if args.save_location and args.lat is not None and not args.timezone:
        parser.error("--save-location with --lat/--lon also needs --timezone")
    if args.save_location and args.clear_location:
        parser.error("--save-location and --clear-location cannot be combined")
    return args


def location_label(loc: dict) -> str:
    return ", ".join(str(loc[key]) for key in ("city", "region", "country") if loc.get(key))


def save_location(args) -> dict:
    """Save the --lat/--lon location, or the detected one, as the manual location."""
    if args.lat is not None:
        loc = {
            "city": args.city or f"{args.lat:.4f}, {args.lon:.4f}",
            "region": "",
            "country": "",
            "lat": args.lat,
            "lon": args.lon,
            "timezone": args.timezone,
        }
    else:
        loc = get_location()
    if args.alt is not None:
        loc["altitude"] = max(0.0, args.alt)
    save_manual_location(loc)
    logger.info(f"Saved location {location_label(loc)}")
    return loc


def resolve_location(args, prefs: PreferenceStore):
    """Return (Coordinates, tz, label) or a PermissionDenied value."""
    altitude = args.alt if args.alt is not None else prefs.get_manual_altitude()
    if args.lat is not None:
        coords = Coordinates(args.lat, args.lon, max(0.0, altitude or 0.0))
        tz_name = args.timezone
        label = args.city or f"{args.lat:.4f}, {args.lon:.4f}"
    else:
        result = get_current_coordinates(altitude_override=altitude)
        if isinstance(result, PermissionDenied):
            return result
        coords, loc = result
        tz_name = args.timezone or loc.get("timezone")
        label = location_label(loc)
    try:
        tz = pytz.timezone(tz_name) if tz_name else None
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Unknown time zone {tz_name}, using local time")
        tz = None
    return coords, tz, label


def render_day(day: datetime.date, coords, tz, madhab: Madhab, hijri_adjustment: int, label: str):
    """Print the prayer table for one day and return its PrayerTimes."""
    times = calculate_prayer_times(day, coords, madhab, tz=tz)
    hijri = calculate_hijri_date(day, hijri_adjustment)
    print(f"📍 {label}  (alt {coords.altitude:.0f} m, {madhab.value})")
    print(f"📅 {day.strftime('%A, %d %B %Y')}")
    print(f"☪  {hijri.day_name}, {hijri.short_format()}")
    print("◇ ─────────────────────────── ◇")
    for name in PRAYER_NAMES:
        print(f"  {name:<10}{times[name]:>10}")
    print("◇ ─────────────────────────── ◇")
    print(f"  {'Sehri ends':<10}{sehri_end_time(times['Fajr']):>10}")
    print(f"  {'Iftar':<10}{iftar_time(times):>10}")
    return times


def render_hijri_month(year: int, month: int, hijri_adjustment: int) -> None:
    for gregorian, hijri in hijri_calendar_for_month(year, month, hijri_adjustment):
        print(f"  {gregorian.isoformat()}  {gregorian.strftime('%a')}  {hijri.short_format()}")


def save_preferences(args, prefs: PreferenceStore) -> None:
    if args.madhab:
        prefs.set_madhab(Madhab(args.madhab))
    if args.hijri_adjust is not None:
        prefs.set_hijri_adjustment(args.hijri_adjust)
    if args.alt is not None:
        prefs.set_manual_altitude(args.alt)
    if args.notify is not None:
        prefs.set_notifications_enabled(args.notify)
    for prayer, sound in args.sound:
        prefs.set_sound_preference(prayer, SoundPreference(enabled=True, sound=sound))
    for prayer in args.mute:
        current = prefs.get_sound_preferences()[prayer]
        prefs.set_sound_preference(prayer, SoundPreference(enabled=False, sound=current.sound))


def run(args) -> int:
    prefs = PreferenceStore()
    save_preferences(args, prefs)
    hijri_adjustment = prefs.get_hijri_adjustment()

    if args.hijri_month:
        render_hijri_month(*args.hijri_month, hijri_adjustment)
        return 0

    if args.clear_location:
        clear_manual_location()
        print("Saved location cleared")
    if args.save_location:
        save_location(args)

    resolved = resolve_location(args, prefs)
    if isinstance(resolved, PermissionDenied):
        print(f"⚠ {resolved.reason}", file=sys.stderr)
        return 2
    coords, tz, label = resolved
    madhab = prefs.get_madhab()

    if args.date:
        render_day(args.date, coords, tz, madhab, hijri_adjustment, label)
        return 0

    now = datetime.datetime.now(tz) if tz else datetime.datetime.now()
    today = now.date()
    times = render_day(today, coords, tz, madhab, hijri_adjustment, label)

    if args.once:
        info = get_current_prayer(times, now)
        print(f"Current: {info.name}  {info.remaining_time} left ({info.percentage_remaining:.0f}%)")
        return 0

    orchestrator = None
    if prefs.notifications_enabled():
        player = SoundPlayer(os.path.join(location.CONFIG_DIR, "sounds"))
        orchestrator = NotificationOrchestrator(
            DesktopNotifier(sound_player=player),
            sound_preferences=prefs.get_sound_preferences(),
            tz=tz,
        )
        if not orchestrator.request_permission():
            print("⚠ Notifications are not permitted; showing countdown only", file=sys.stderr)
            orchestrator = None

    try:
        while True:
            now = datetime.datetime.now(tz) if tz else datetime.datetime.now()
            if now.date() != today:
                today = now.date()
                print()
                times = render_day(today, coords, tz, madhab, hijri_adjustment, label)
            if orchestrator:
                info = orchestrator.tick(times, now, foreground=not args.background)
            else:
                info = get_current_prayer(times, now)
            sys.stdout.write(
                f"\r⏳ {info.name:<8} {info.remaining_time}  {info.percentage_remaining:5.1f}% left "
            )
            sys.stdout.flush()
            time.sleep(REFRESH_SECONDS)
    except KeyboardInterrupt:
        print()
    finally:
        if orchestrator:
            orchestrator.shutdown()
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_basic_logging(args.verbose)
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
