"""Prayer alerts and the live countdown notification, driven by a one-second tick."""

import abc
import dataclasses
import datetime
import enum
import logging
import os
import sys
import threading

import pygame
from plyer import notification as plyer_notification

from prayerclock.tracker import PrayerTimeInfo, get_current_prayer

logger = logging.getLogger(__name__)

APP_NAME = "Prayer Clock"
APP_ICON = ""  # Path to icon file; empty = default

NOTIFIABLE_PRAYERS = ["Fajr", "Dhuhr", "Asr", "Maghrib", "Isha"]
SOUND_OPTIONS = ["default", "beep", "adhan"]
# terminal bells rung for a sound with no audio file
SOUND_BELLS = {"default": 1, "beep": 2, "adhan": 3}
SOUND_EXTENSIONS = (".mp3", ".ogg", ".wav")

COUNTDOWN_ID = "prayer-countdown"
FOREGROUND_INTERVAL_MS = 1000
BACKGROUND_INTERVAL_MS = 15000


@dataclasses.dataclass(frozen=True)
class NotificationContent:
    title: str
    body: str
    sound: str = None
    silent: bool = True
    sticky: bool = False


@dataclasses.dataclass(frozen=True)
class SoundPreference:
    enabled: bool = True
    sound: str = "default"


class NotificationFacility(abc.ABC):
    """Where notifications are presented. Calls may raise; callers decide what to do."""

    @abc.abstractmethod
    def schedule_or_update(self, identifier: str, content: NotificationContent, trigger=None) -> None:
        """Show content under identifier, replacing whatever it showed before.

        trigger is a delay in seconds, or None to show immediately.
        """

    @abc.abstractmethod
    def dismiss(self, identifier: str) -> None:
        pass

    @abc.abstractmethod
    def request_permission(self) -> bool:
        pass


def ring_bell(sound: str) -> None:
    """Ring the terminal bell once per SOUND_BELLS entry for sound."""
    sys.stdout.write("\a" * SOUND_BELLS.get(sound, 1))
    sys.stdout.flush()


class SoundPlayer:
    """
    Plays alert sounds with pygame.mixer.

    A sound id maps to <sound_dir>/<id>.mp3 (or .ogg/.wav); drop an adhan
    recording there as adhan.mp3. Ids without a file fall back to ring_bell.
    """

    def __init__(self, sound_dir: str, volume: float = 0.7):
        self.sound_dir = sound_dir
        self.volume = max(0.0, min(1.0, volume))
        self._mixer_ready = False

    def sound_file(self, sound: str):
        for ext in SOUND_EXTENSIONS:
            path = os.path.join(self.sound_dir, f"{sound}{ext}")
            if os.path.isfile(path):
                return path
        return None

    def __call__(self, sound: str) -> None:
        path = self.sound_file(sound)
        if path is None:
            ring_bell(sound)
            return
        try:
            if not self._mixer_ready:
                pygame.mixer.init()
                self._mixer_ready = True
            pygame.mixer.music.set_volume(self.volume)
            pygame.mixer.music.load(path)
            pygame.mixer.music.play()
            logger.info(f"Playing {sound} from {path}")
        except pygame.error as e:
            logger.error(f"Error playing {path}: {e}")
            ring_bell(sound)


class DesktopNotifier(NotificationFacility):
    """
    Desktop notifications via plyer.

    Desktop toasts cannot be edited once shown, so a sticky notification is
    shown when first established and later updates only replace the live
    content kept under its identifier (see live()).
    """

    def __init__(self, app_name: str = APP_NAME, app_icon: str = APP_ICON, sound_player=ring_bell, timeout: int = 15):
        self.app_name = app_name
        self.app_icon = app_icon
        self.sound_player = sound_player
        self.timeout = timeout
        # _live and _timers are shared with threading.Timer callbacks
        self._lock = threading.Lock()
        self._live: dict = {}
        self._timers: dict = {}

    def live(self, identifier: str):
        """Return the content currently held under identifier, or None."""
        with self._lock:
            return self._live.get(identifier)

    def request_permission(self) -> bool:
        # No permission prompt on desktop platforms
        return True

    def schedule_or_update(self, identifier: str, content: NotificationContent, trigger=None) -> None:
        with self._lock:
            self._cancel_timer(identifier)
            if trigger is not None and trigger > 0:
                t = threading.Timer(trigger, self._present, args=(identifier, content))
                t.daemon = True
                t.start()
                self._timers[identifier] = t
                return
        self._present(identifier, content)

    def dismiss(self, identifier: str) -> None:
        with self._lock:
            self._cancel_timer(identifier)
            self._live.pop(identifier, None)

    def _cancel_timer(self, identifier: str) -> None:
        # caller holds self._lock
        t = self._timers.pop(identifier, None)
        if t is not None:
            t.cancel()

    def _present(self, identifier: str, content: NotificationContent) -> None:
        with self._lock:
            if content.sticky and identifier in self._live:
                self._live[identifier] = content
                return
            kwargs = dict(
                app_name=self.app_name,
                title=content.title,
                message=content.body,
                timeout=self.timeout,
            )
            if self.app_icon:
                kwargs["app_icon"] = self.app_icon
            # only mark live once the toast is actually shown
            plyer_notification.notify(**kwargs)
            self._live[identifier] = content
        if not content.silent and content.sound and self.sound_player:
            self.sound_player(content.sound)


class PrayerState(enum.Enum):
    IDLE = "idle"
    ALERT_SHOWN = "alert_shown"
    COUNTDOWN_ACTIVE = "countdown_active"


@dataclasses.dataclass
class OrchestratorState:
    """Everything the orchestrator remembers between ticks."""

    current_prayer: str = None
    alerts_shown: dict = dataclasses.field(default_factory=dict)
    countdown_prayer: str = None
    last_update_ms: int = None

    def state_of(self, prayer: str) -> PrayerState:
        if self.countdown_prayer == prayer:
            return PrayerState.COUNTDOWN_ACTIVE
        if self.alerts_shown.get(prayer):
            return PrayerState.ALERT_SHOWN
        return PrayerState.IDLE


def alert_content(prayer: str, preference: SoundPreference) -> NotificationContent:
    return NotificationContent(
        title=f"🕌 {prayer} — Time to Pray!",
        body=f"It is now time for {prayer} prayer. Allahu Akbar!",
        sound=preference.sound if preference.enabled else None,
        silent=not preference.enabled,
    )


def countdown_content(info: PrayerTimeInfo) -> NotificationContent:
    return NotificationContent(
        title=f"{info.name} time remaining: {info.remaining_time}",
        body=f"{info.percentage_remaining:.0f}% of {info.name} time left",
        silent=True,
        sticky=True,
    )


def _epoch_ms(now: datetime.datetime) -> int:
    return int(now.timestamp() * 1000)


class NotificationOrchestrator:
    """
    Turns tracker output into at most one alert per prayer period and a
    single live countdown notification.

    Owns its OrchestratorState exclusively; call tick() once per second from
    one thread. Facility failures are logged and never interrupt tracking.
    """

    def __init__(
        self,
        facility: NotificationFacility,
        sound_preferences: dict = None,
        on_transition=None,
        tracker=get_current_prayer,
        tz=None,
    ):
        self.facility = facility
        self.sound_preferences = dict(sound_preferences or {})
        self.on_transition = on_transition
        self.tracker = tracker
        self.tz = tz
        self.state = OrchestratorState()

    def request_permission(self) -> bool:
        try:
            return bool(self.facility.request_permission())
        except Exception:
            logger.exception("Notification permission request failed")
            return False

    def tick(self, prayer_times, now: datetime.datetime = None, foreground: bool = True) -> PrayerTimeInfo:
        """Advance the state machine to now and return the current period info."""
        if now is None:
            now = datetime.datetime.now(self.tz) if self.tz else datetime.datetime.now()
        info = self.tracker(prayer_times, now)
        now_ms = _epoch_ms(now)

        if info.name != self.state.current_prayer:
            self._enter_period(info.name)

        prayer = info.name
        if prayer not in NOTIFIABLE_PRAYERS:
            return info

        if not self.state.alerts_shown.get(prayer):
            if not self._show_alert(prayer):
                return info
            self.state.alerts_shown[prayer] = True
            self._emit(prayer, PrayerState.IDLE, PrayerState.ALERT_SHOWN)

        if self.state.countdown_prayer != prayer:
            if self._send_countdown(info):
                self.state.countdown_prayer = prayer
                self.state.last_update_ms = now_ms
                self._emit(prayer, PrayerState.ALERT_SHOWN, PrayerState.COUNTDOWN_ACTIVE)
            return info

        interval = FOREGROUND_INTERVAL_MS if foreground else BACKGROUND_INTERVAL_MS
        if self.state.last_update_ms is None or now_ms - self.state.last_update_ms >= interval:
            if self._send_countdown(info):
                self.state.last_update_ms = now_ms
        return info

    def shutdown(self) -> None:
        """Dismiss the live countdown; call when the host stops ticking."""
        if self.state.countdown_prayer is not None:
            prayer = self.state.countdown_prayer
            self._dismiss_countdown()
            self.state.countdown_prayer = None
            self._emit(prayer, PrayerState.COUNTDOWN_ACTIVE, PrayerState.ALERT_SHOWN)

    def _enter_period(self, prayer: str) -> None:
        old = self.state
        if old.countdown_prayer is not None:
            self._dismiss_countdown()
        for name in set(old.alerts_shown) | {old.countdown_prayer}:
            if name is None:
                continue
            previous = old.state_of(name)
            if previous is not PrayerState.IDLE:
                self._emit(name, previous, PrayerState.IDLE)
        logger.info(f"Prayer period changed: {old.current_prayer} -> {prayer}")
        self.state = OrchestratorState(current_prayer=prayer)

    def _show_alert(self, prayer: str) -> bool:
        preference = self.sound_preferences.get(prayer, SoundPreference())
        try:
            self.facility.schedule_or_update(f"prayer-alert-{prayer}", alert_content(prayer, preference))
            return True
        except Exception as e:
            logger.warning(f"Could not show {prayer} alert: {e}")
            return False

    def _send_countdown(self, info: PrayerTimeInfo) -> bool:
        try:
            self.facility.schedule_or_update(COUNTDOWN_ID, countdown_content(info))
            return True
        except Exception as e:
            logger.warning(f"Could not update countdown for {info.name}: {e}")
            return False

    def _dismiss_countdown(self) -> bool:
        try:
            self.facility.dismiss(COUNTDOWN_ID)
            return True
        except Exception as e:
            logger.warning(f"Could not dismiss countdown: {e}")
            return False

    def _emit(self, prayer: str, old: PrayerState, new: PrayerState) -> None:
        logger.debug(f"{prayer}: {old.value} -> {new.value}")
        if self.on_transition:
            self.on_transition(prayer, old, new)
