"""Tests for the notifier module."""

import datetime
import io
import os
import shutil
import tempfile
import unittest
from unittest.mock import MagicMock, patch

from prayerclock.notifier import (
    COUNTDOWN_ID,
    DesktopNotifier,
    NotificationContent,
    NotificationFacility,
    NotificationOrchestrator,
    OrchestratorState,
    PrayerState,
    SoundPlayer,
    SoundPreference,
)

TIMINGS = {
    "Fajr": "4:00 AM",
    "Sunrise": "5:30 AM",
    "Ishraq": "5:50 AM",
    "Zawal": "11:00 AM",
    "Dhuhr": "12:00 PM",
    "Asr": "3:30 PM",
    "Maghrib": "6:00 PM",
    "Isha": "7:30 PM",
}


def at(hour, minute=0, second=0, microsecond=0):
    return datetime.datetime(2024, 6, 1, hour, minute, second, microsecond)


class RecordingFacility(NotificationFacility):
    def __init__(self):
        self.calls = []
        self.fail = False

    def schedule_or_update(self, identifier, content, trigger=None):
        if self.fail:
            raise RuntimeError("notification permission revoked")
        self.calls.append(("schedule", identifier, content))

    def dismiss(self, identifier):
        if self.fail:
            raise RuntimeError("notification permission revoked")
        self.calls.append(("dismiss", identifier, None))

    def request_permission(self):
        return True

    def scheduled(self, identifier):
        return [c for kind, i, c in self.calls if kind == "schedule" and i == identifier]


class OrchestratorTestCase(unittest.TestCase):
    def setUp(self):
        self.facility = RecordingFacility()
        self.transitions = []
        self.orchestrator = NotificationOrchestrator(
            self.facility,
            on_transition=lambda *event: self.transitions.append(event),
        )


class TestPeriodTransition(OrchestratorTestCase):
    def test_crossing_from_dhuhr_to_asr(self):
        for now in (at(15, 29, 58), at(15, 29, 59)):
            self.orchestrator.tick(TIMINGS, now)
        self.assertEqual(self.orchestrator.state.alerts_shown, {"Dhuhr": True})

        for now in (at(15, 30), at(15, 30, 1), at(15, 30, 2)):
            info = self.orchestrator.tick(TIMINGS, now)
        self.assertEqual(info.name, "Asr")

        asr_alerts = [t for t in self.transitions if t == ("Asr", PrayerState.IDLE, PrayerState.ALERT_SHOWN)]
        self.assertEqual(len(asr_alerts), 1)
        self.assertEqual(self.orchestrator.state.alerts_shown, {"Asr": True})
        self.assertEqual(self.orchestrator.state.state_of("Dhuhr"), PrayerState.IDLE)
        self.assertEqual(self.orchestrator.state.state_of("Asr"), PrayerState.COUNTDOWN_ACTIVE)
        self.assertIn(("Dhuhr", PrayerState.COUNTDOWN_ACTIVE, PrayerState.IDLE), self.transitions)

        # one dismissal of the Dhuhr countdown, then the same identifier reused
        dismissals = [c for c in self.facility.calls if c[0] == "dismiss"]
        self.assertEqual(dismissals, [("dismiss", COUNTDOWN_ID, None)])
        identifiers = {i for kind, i, _ in self.facility.calls if kind == "schedule"}
        self.assertEqual(identifiers, {COUNTDOWN_ID, "prayer-alert-Dhuhr", "prayer-alert-Asr"})
        self.assertEqual(len(self.facility.scheduled("prayer-alert-Asr")), 1)

    def test_alert_fires_once_per_period(self):
        now = at(12)
        for _ in range(30):
            self.orchestrator.tick(TIMINGS, now)
            now += datetime.timedelta(seconds=1)
        self.assertEqual(len(self.facility.scheduled("prayer-alert-Dhuhr")), 1)
        entered = [t for t in self.transitions if t[2] == PrayerState.ALERT_SHOWN]
        self.assertEqual(entered, [("Dhuhr", PrayerState.IDLE, PrayerState.ALERT_SHOWN)])

    def test_alert_fires_on_first_tick_mid_period(self):
        self.orchestrator.tick(TIMINGS, at(14))
        self.assertEqual(len(self.facility.scheduled("prayer-alert-Dhuhr")), 1)
        self.assertEqual(len(self.facility.scheduled(COUNTDOWN_ID)), 1)


class TestEligibility(OrchestratorTestCase):
    def test_sunrise_and_zawal_never_notify(self):
        info = self.orchestrator.tick(TIMINGS, at(5, 45))
        self.assertEqual(info.name, "Sunrise")
        info = self.orchestrator.tick(TIMINGS, at(11, 30))
        self.assertEqual(info.name, "Zawal")
        self.assertEqual(self.facility.calls, [])
        self.assertEqual(self.transitions, [])


class TestCadence(OrchestratorTestCase):
    def test_foreground_updates_at_most_once_per_second(self):
        for now in (at(13), at(13, 0, 0, 400_000), at(13, 0, 1), at(13, 0, 1, 500_000), at(13, 0, 2)):
            self.orchestrator.tick(TIMINGS, now)
        self.assertEqual(len(self.facility.scheduled(COUNTDOWN_ID)), 3)

    def test_background_updates_every_fifteen_seconds(self):
        now = at(13)
        for _ in range(31):
            self.orchestrator.tick(TIMINGS, now, foreground=False)
            now += datetime.timedelta(seconds=1)
        # established at 0s, refreshed at 15s and 30s
        self.assertEqual(len(self.facility.scheduled(COUNTDOWN_ID)), 3)

    def test_countdown_content_is_silent_and_current(self):
        self.orchestrator.tick(TIMINGS, at(13))
        self.orchestrator.tick(TIMINGS, at(13, 0, 1))
        last = self.facility.scheduled(COUNTDOWN_ID)[-1]
        self.assertTrue(last.silent)
        self.assertTrue(last.sticky)
        self.assertIn("02:29:59", last.title)


class TestSoundPreferences(unittest.TestCase):
    def test_disabled_preference_silences_alert(self):
        facility = RecordingFacility()
        orchestrator = NotificationOrchestrator(
            facility,
            sound_preferences={"Asr": SoundPreference(enabled=False, sound="adhan")},
        )
        orchestrator.tick(TIMINGS, at(16))
        alert = facility.scheduled("prayer-alert-Asr")[0]
        self.assertTrue(alert.silent)
        self.assertIsNone(alert.sound)

    def test_enabled_preference_plays_chosen_sound(self):
        facility = RecordingFacility()
        orchestrator = NotificationOrchestrator(
            facility,
            sound_preferences={"Maghrib": SoundPreference(enabled=True, sound="adhan")},
        )
        orchestrator.tick(TIMINGS, at(18, 1))
        alert = facility.scheduled("prayer-alert-Maghrib")[0]
        self.assertFalse(alert.silent)
        self.assertEqual(alert.sound, "adhan")
        self.assertTrue(facility.scheduled(COUNTDOWN_ID)[0].silent)


class TestFailures(OrchestratorTestCase):
    def test_facility_errors_are_not_fatal(self):
        self.facility.fail = True
        with self.assertLogs("prayerclock.notifier", level="WARNING"):
            info = self.orchestrator.tick(TIMINGS, at(13))
        self.assertEqual(info.name, "Dhuhr")
        self.assertEqual(self.orchestrator.state.state_of("Dhuhr"), PrayerState.IDLE)

        # next tick tries again
        self.facility.fail = False
        self.orchestrator.tick(TIMINGS, at(13, 0, 1))
        self.assertEqual(len(self.facility.scheduled("prayer-alert-Dhuhr")), 1)
        self.assertEqual(self.orchestrator.state.state_of("Dhuhr"), PrayerState.COUNTDOWN_ACTIVE)

    def test_failed_dismiss_still_resets_state(self):
        self.orchestrator.tick(TIMINGS, at(15, 29, 59))
        self.facility.fail = True
        self.orchestrator.tick(TIMINGS, at(15, 30))
        self.assertEqual(self.orchestrator.state, OrchestratorState(current_prayer="Asr"))

    def test_permission_request_errors_return_false(self):
        facility = MagicMock(spec=NotificationFacility)
        facility.request_permission.side_effect = OSError("no notification daemon")
        orchestrator = NotificationOrchestrator(facility)
        self.assertFalse(orchestrator.request_permission())


class TestShutdown(OrchestratorTestCase):
    def test_shutdown_dismisses_countdown(self):
        self.orchestrator.tick(TIMINGS, at(13))
        self.orchestrator.shutdown()
        self.assertEqual(self.facility.calls[-1], ("dismiss", COUNTDOWN_ID, None))
        self.assertIsNone(self.orchestrator.state.countdown_prayer)

    def test_shutdown_without_countdown_does_nothing(self):
        self.orchestrator.shutdown()
        self.assertEqual(self.facility.calls, [])


class TestDesktopNotifier(unittest.TestCase):
    @patch("prayerclock.notifier.plyer_notification")
    def test_alert_calls_plyer_and_plays_sound(self, mock_plyer):
        player = MagicMock()
        notifier = DesktopNotifier(sound_player=player)
        notifier.schedule_or_update("alert", NotificationContent("Asr", "Time", sound="beep", silent=False))
        mock_plyer.notify.assert_called_once()
        kwargs = mock_plyer.notify.call_args[1]
        self.assertEqual(kwargs["title"], "Asr")
        player.assert_called_once_with("beep")

    @patch("prayerclock.notifier.plyer_notification")
    def test_silent_content_plays_no_sound(self, mock_plyer):
        player = MagicMock()
        notifier = DesktopNotifier(sound_player=player)
        notifier.schedule_or_update("alert", NotificationContent("Asr", "Time", sound="beep"))
        player.assert_not_called()

    @patch("prayerclock.notifier.plyer_notification")
    def test_sticky_updates_replace_content_in_place(self, mock_plyer):
        notifier = DesktopNotifier()
        notifier.schedule_or_update(COUNTDOWN_ID, NotificationContent("01:00:00", "", sticky=True))
        notifier.schedule_or_update(COUNTDOWN_ID, NotificationContent("00:59:59", "", sticky=True))
        self.assertEqual(mock_plyer.notify.call_count, 1)
        self.assertEqual(notifier.live(COUNTDOWN_ID).title, "00:59:59")

        notifier.dismiss(COUNTDOWN_ID)
        self.assertIsNone(notifier.live(COUNTDOWN_ID))

    @patch("prayerclock.notifier.plyer_notification")
    def test_failed_sticky_toast_is_not_marked_live(self, mock_plyer):
        mock_plyer.notify.side_effect = [OSError("no notification daemon"), None]
        notifier = DesktopNotifier()
        with self.assertRaises(OSError):
            notifier.schedule_or_update(COUNTDOWN_ID, NotificationContent("01:00:00", "", sticky=True))
        self.assertIsNone(notifier.live(COUNTDOWN_ID))

        notifier.schedule_or_update(COUNTDOWN_ID, NotificationContent("00:59:59", "", sticky=True))
        self.assertEqual(mock_plyer.notify.call_count, 2)
        self.assertEqual(notifier.live(COUNTDOWN_ID).title, "00:59:59")

    @patch("prayerclock.notifier.plyer_notification")
    def test_orchestrator_retries_failed_countdown(self, mock_plyer):
        mock_plyer.notify.side_effect = [None, OSError("no notification daemon"), None]
        orchestrator = NotificationOrchestrator(DesktopNotifier(sound_player=None))
        with self.assertLogs("prayerclock.notifier", level="WARNING"):
            orchestrator.tick(TIMINGS, at(13))
        self.assertEqual(orchestrator.state.state_of("Dhuhr"), PrayerState.ALERT_SHOWN)

        orchestrator.tick(TIMINGS, at(13, 0, 1))
        self.assertEqual(mock_plyer.notify.call_count, 3)
        self.assertEqual(orchestrator.state.state_of("Dhuhr"), PrayerState.COUNTDOWN_ACTIVE)

    def test_delayed_trigger_uses_timer(self):
        with patch("prayerclock.notifier.threading.Timer") as mock_timer_cls:
            mock_timer = MagicMock()
            mock_timer_cls.return_value = mock_timer
            notifier = DesktopNotifier()
            notifier.schedule_or_update("later", NotificationContent("Isha", "soon"), trigger=600)
            mock_timer_cls.assert_called_once()
            self.assertEqual(mock_timer_cls.call_args[0][0], 600)
            mock_timer.start.assert_called_once()

            notifier.dismiss("later")
            mock_timer.cancel.assert_called_once()

    @patch("prayerclock.notifier.plyer_notification")
    def test_timer_callback_presents_content(self, mock_plyer):
        with patch("prayerclock.notifier.threading.Timer") as mock_timer_cls:
            notifier = DesktopNotifier()
            notifier.schedule_or_update("later", NotificationContent("Isha", "soon"), trigger=600)
            _, callback = mock_timer_cls.call_args[0]
            callback(*mock_timer_cls.call_args[1]["args"])
        mock_plyer.notify.assert_called_once()
        self.assertEqual(notifier.live("later").title, "Isha")

    def test_permission_is_granted(self):
        self.assertTrue(DesktopNotifier().request_permission())


class TestSoundPlayer(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.mkdtemp()
        self.adhan_path = os.path.join(self._tmpdir, "adhan.mp3")
        with open(self.adhan_path, "wb") as f:
            f.write(b"ID3")
        self.player = SoundPlayer(self._tmpdir)

    def tearDown(self):
        shutil.rmtree(self._tmpdir, ignore_errors=True)

    @patch("prayerclock.notifier.pygame")
    def test_sound_with_file_plays_through_mixer(self, mock_pygame):
        self.player("adhan")
        mock_pygame.mixer.init.assert_called_once()
        mock_pygame.mixer.music.load.assert_called_once_with(self.adhan_path)
        mock_pygame.mixer.music.play.assert_called_once()

    @patch("prayerclock.notifier.pygame")
    def test_sounds_without_file_ring_different_bells(self, mock_pygame):
        with patch("sys.stdout", new_callable=io.StringIO) as out:
            self.player("default")
        self.assertEqual(out.getvalue(), "\a")
        with patch("sys.stdout", new_callable=io.StringIO) as out:
            self.player("beep")
        self.assertEqual(out.getvalue(), "\a\a")
        mock_pygame.mixer.music.load.assert_not_called()

    @patch("prayerclock.notifier.pygame")
    def test_mixer_error_falls_back_to_bell(self, mock_pygame):
        mock_pygame.error = RuntimeError
        mock_pygame.mixer.init.side_effect = RuntimeError("no audio device")
        with self.assertLogs("prayerclock.notifier", level="ERROR"):
            with patch("sys.stdout", new_callable=io.StringIO) as out:
                self.player("adhan")
        self.assertEqual(out.getvalue(), "\a\a\a")


if __name__ == "__main__":
    unittest.main()
