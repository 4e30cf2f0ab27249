"""Key-value preference store kept as a JSON file, with typed accessors."""

import json
import logging
import os

from prayerclock import location
from prayerclock.calculator import Madhab
from prayerclock.notifier import NOTIFIABLE_PRAYERS, SOUND_OPTIONS, SoundPreference

logger = logging.getLogger(__name__)

ASR_METHOD_KEY = "ASR_METHOD"
ISHA_METHOD_KEY = "ISHA_METHOD"
MADHAB_KEY = "MADHAB_KEY"
MANUAL_ALTITUDE_KEY = "MANUAL_ALTITUDE"
HIJRI_ADJUSTMENT_KEY = "HIJRI_DATE_ADJUSTMENT"
SOUND_PREFERENCES_KEY = "PRAYER_SOUND_PREFERENCES"
NOTIFICATIONS_ENABLED_KEY = "NOTIFICATIONS_ENABLED"

DEFAULT_MADHAB = Madhab.HANAFI


class PreferenceStore:
    """String preferences persisted to a JSON object on disk."""

    def __init__(self, path: str = None):
        self.path = path or os.path.join(location.CONFIG_DIR, "preferences.json")
        self._data = self._load()

    def _load(self) -> dict:
        if not os.path.isfile(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable preferences file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _save(self) -> None:
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2)

    def get_string(self, key: str) -> str | None:
        return self._data.get(key)

    def set_string(self, key: str, value: str) -> None:
        self._data[key] = str(value)
        self._save()

    def remove(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._save()

    # ── madhab ────────────────────────────────────────────────────────────
    def get_madhab(self) -> Madhab:
        """
        Read the madhab, preferring the unified key over the legacy integers.
        """
        unified = self.get_string(MADHAB_KEY)
        if unified in ("true", "false"):
            return Madhab.from_flag(unified == "true")
        asr = self.get_string(ASR_METHOD_KEY)
        if asr is not None:
            try:
                return Madhab.from_legacy(int(asr))
            except ValueError:
                logger.warning(f"Invalid {ASR_METHOD_KEY} value: {asr!r}")
        return DEFAULT_MADHAB

    def set_madhab(self, madhab: Madhab) -> None:
        """Write both encodings together so they always agree."""
        asr_method, isha_method = madhab.to_legacy()
        self._data[ASR_METHOD_KEY] = str(asr_method)
        self._data[ISHA_METHOD_KEY] = str(isha_method)
        self._data[MADHAB_KEY] = "true" if madhab.is_hanafi else "false"
        self._save()

    # ── altitude ──────────────────────────────────────────────────────────
    def get_manual_altitude(self) -> float | None:
        value = self.get_string(MANUAL_ALTITUDE_KEY)
        if value is None:
            return None
        try:
            return max(0.0, float(value))
        except ValueError:
            return None

    def set_manual_altitude(self, meters: float | None) -> None:
        if meters is None:
            self.remove(MANUAL_ALTITUDE_KEY)
        else:
            self.set_string(MANUAL_ALTITUDE_KEY, str(float(meters)))

    # ── hijri ─────────────────────────────────────────────────────────────
    def get_hijri_adjustment(self) -> int:
        value = self.get_string(HIJRI_ADJUSTMENT_KEY)
        try:
            return int(value) if value else 0
        except ValueError:
            return 0

    def set_hijri_adjustment(self, days: int) -> None:
        self.set_string(HIJRI_ADJUSTMENT_KEY, str(int(days)))

    # ── notifications ─────────────────────────────────────────────────────
    def notifications_enabled(self) -> bool:
        """Notifications are on until explicitly turned off."""
        return self.get_string(NOTIFICATIONS_ENABLED_KEY) != "false"

    def set_notifications_enabled(self, enabled: bool) -> None:
        self.set_string(NOTIFICATIONS_ENABLED_KEY, "true" if enabled else "false")

    def get_sound_preferences(self) -> dict:
        """Return {prayer: SoundPreference} for every notifiable prayer."""
        stored = {}
        raw = self.get_string(SOUND_PREFERENCES_KEY)
        if raw:
            try:
                stored = json.loads(raw)
            except ValueError:
                logger.warning(f"Invalid {SOUND_PREFERENCES_KEY} value, using defaults")
        if not isinstance(stored, dict):
            stored = {}
        prefs = {}
        for prayer in NOTIFIABLE_PRAYERS:
            entry = stored.get(prayer)
            if isinstance(entry, dict):
                prefs[prayer] = SoundPreference(
                    enabled=bool(entry.get("enabled", True)),
                    sound=str(entry.get("sound", "default")),
                )
            else:
                prefs[prayer] = SoundPreference()
        return prefs

    def set_sound_preference(self, prayer: str, preference: SoundPreference) -> None:
        if prayer not in NOTIFIABLE_PRAYERS:
            raise ValueError(f"{prayer} does not take notifications")
        if preference.sound not in SOUND_OPTIONS:
            raise ValueError(f"Unknown sound {preference.sound!r}, expected one of {SOUND_OPTIONS}")
        prefs = self.get_sound_preferences()
        prefs[prayer] = preference
        encoded = {
            name: {"enabled": pref.enabled, "sound": pref.sound}
            for name, pref in prefs.items()
        }
        self.set_string(SOUND_PREFERENCES_KEY, json.dumps(encoded))
