# tests/test_settings.py
import os
import unittest
from dataclasses import FrozenInstanceError

from guildcore.config.settings import Settings, load_settings

_KEYS = (
    "ENV",
    "LOG_LEVEL",
    "LOGS_AS_JSON",
    "OWNER_IDS",
    "FEATURES_ENABLED",
    "FEATURES_DISABLED",
    "COMMAND_ALLOW_OVERWRITE",
    "LICENSE_FILE",
)


class SettingsTests(unittest.TestCase):
    def setUp(self) -> None:
        self._snapshot = {key: os.getenv(key) for key in _KEYS}
        for key in _KEYS:
            os.environ.pop(key, None)

    def tearDown(self) -> None:
        for key, value in self._snapshot.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value

    def test_defaults(self) -> None:
        cfg = load_settings()
        self.assertEqual(cfg.env, "development")
        self.assertEqual(cfg.log_level, "INFO")
        self.assertFalse(cfg.logs_as_json)
        self.assertEqual(cfg.owner_ids, ())
        self.assertFalse(cfg.allow_command_overwrite)
        self.assertIsNone(cfg.license_file)
        self.assertFalse(cfg.is_production)

    def test_reads_lists_and_flags(self) -> None:
        os.environ["ENV"] = "Production"
        os.environ["LOG_LEVEL"] = "debug"
        os.environ["OWNER_IDS"] = " 111, 222 ,,"
        os.environ["FEATURES_DISABLED"] = "moderation"
        os.environ["COMMAND_ALLOW_OVERWRITE"] = "yes"

        cfg = load_settings()
        self.assertTrue(cfg.is_production)
        self.assertEqual(cfg.log_level, "DEBUG")
        self.assertEqual(cfg.owner_ids, ("111", "222"))
        self.assertTrue(cfg.allow_command_overwrite)
        self.assertFalse(cfg.feature_allowed("moderation"))
        self.assertTrue(cfg.feature_allowed("welcome"))

    def test_whitelist_limits_features(self) -> None:
        os.environ["FEATURES_ENABLED"] = "welcome"
        cfg = load_settings()
        self.assertTrue(cfg.feature_allowed("welcome"))
        self.assertFalse(cfg.feature_allowed("moderation"))

    def test_invalid_log_level_is_rejected(self) -> None:
        os.environ["LOG_LEVEL"] = "LOUD"
        with self.assertRaises(RuntimeError):
            load_settings()

    def test_feature_in_both_lists_is_rejected(self) -> None:
        os.environ["FEATURES_ENABLED"] = "welcome,moderation"
        os.environ["FEATURES_DISABLED"] = "moderation"
        with self.assertRaises(RuntimeError):
            load_settings()

    def test_missing_license_file_is_rejected(self) -> None:
        os.environ["LICENSE_FILE"] = "/nonexistent/licenses.yaml"
        with self.assertRaises(RuntimeError):
            load_settings()

    def test_settings_are_immutable(self) -> None:
        cfg = load_settings()
        with self.assertRaises(FrozenInstanceError):
            cfg.env = "production"  # type: ignore[misc]
        self.assertIsInstance(cfg, Settings)


if __name__ == "__main__":
    unittest.main()
