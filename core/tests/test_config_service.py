"""
core/tests/test_config_service.py

Layering and type casting of ConfigService.
"""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from core.config.config_service import ConfigService


class TestConfigService(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.machine_ini = Path(self._tmp.name) / "machine.ini"

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_defaults(self) -> None:
        cfg = ConfigService(environ={})
        self.assertEqual(cfg.renderer.instances, 1)
        self.assertEqual(cfg.renderer.job_timeout_seconds, 30.0)
        self.assertFalse(cfg.renderer.required)
        self.assertEqual(cfg.intake.max_file_size_bytes, 10 * 1024 * 1024)
        self.assertTrue(cfg.signature.embed_labels)
        self.assertIsInstance(cfg.storage.root, Path)
        self.assertEqual(cfg.meta_source("Renderer", "instances")["layer"], "defaults.ini")

    def test_env_overrides_defaults(self) -> None:
        cfg = ConfigService(environ={"SIGURA_RENDERER__INSTANCES": "3", "SIGURA_SIGNATURE__EMBED_LABELS": "no"})
        self.assertEqual(cfg.renderer.instances, 3)
        self.assertFalse(cfg.signature.embed_labels)
        self.assertEqual(cfg.meta_source("Renderer", "instances")["layer"], "env")

    def test_machine_ini_beats_env_and_overrides_beat_all(self) -> None:
        self.machine_ini.write_text("[Renderer]\ninstances = 4\nqueue_limit = 2\n", encoding="utf-8")
        environ = {"SIGURA_CONFIG": str(self.machine_ini), "SIGURA_RENDERER__INSTANCES": "3"}
        cfg = ConfigService(environ=environ, overrides={"Renderer": {"queue_limit": "9"}})
        self.assertEqual(cfg.renderer.instances, 4)
        self.assertEqual(cfg.renderer.queue_limit, 9)
        self.assertEqual(cfg.meta_source("Renderer", "queue_limit")["layer"], "override")

    def test_app_bundle_and_get(self) -> None:
        cfg = ConfigService(environ={}, overrides={"Workflow": {"lock_timeout_seconds": "5"}})
        app = cfg.app
        self.assertEqual(app.workflow.lock_timeout_seconds, 5.0)
        self.assertEqual(cfg.get("Workflow", "lock_timeout_seconds", cast=float), 5.0)
        self.assertIsNone(cfg.get("Workflow", "missing"))

    def test_reload_picks_up_machine_changes(self) -> None:
        self.machine_ini.write_text("[Intake]\nmax_file_size_bytes = 100\n", encoding="utf-8")
        cfg = ConfigService(machine_ini=self.machine_ini, environ={})
        self.assertEqual(cfg.intake.max_file_size_bytes, 100)
        self.machine_ini.write_text("[Intake]\nmax_file_size_bytes = 200\n", encoding="utf-8")
        cfg.reload()
        self.assertEqual(cfg.intake.max_file_size_bytes, 200)


if __name__ == "__main__":
    unittest.main()
