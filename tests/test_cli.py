"""End-to-end tests for the backup and restore commands."""

from __future__ import annotations

import os
import tempfile
import unittest
from datetime import datetime
from pathlib import Path
from typing import List
from unittest import mock

from backupfiles import cli
from backupfiles.config import load_config
from backupfiles.context import RunContext

CONFIG = """<?xml version="1.0" encoding="utf-8"?>
<configuration>
  <ProjectName>Demo</ProjectName>
  <Version>1.0.0</Version>
  <extensions>
    <extension>.js</extension>
    <extension tree_only="true">.png</extension>
  </extensions>
  <includePaths>
    <includePath>./src</includePath>
  </includePaths>
  <includeFiles>
    <includeFile>./backup.config.xml</includeFile>
  </includeFiles>
  <excludePaths>
    <excludePath>./backup</excludePath>
  </excludePaths>
  <ResultPath>./backup</ResultPath>
  <ResultFilenameMask>@PROJECTNAME_@VER_#YYYYMMDDhhmmss#.bak.txt</ResultFilenameMask>
  <IsExample>0</IsExample>
</configuration>
"""


class CliTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name).resolve() / "proj"
        (self.root / "src" / "utils").mkdir(parents=True)
        (self.root / "src" / "app.js").write_text("console.log(1)", encoding="utf-8")
        (self.root / "src" / "utils" / "helpers.js").write_text("export const x=1;", encoding="utf-8")
        (self.root / "src" / "logo.png").write_bytes(b"\x89PNG\x00")
        self.config_path = self.root / "backup.config.xml"
        self.config_path.write_text(CONFIG, encoding="utf-8")
        self.messages: List[str] = []
        self.context = RunContext(sink=self.messages.append)

    def tearDown(self) -> None:
        self._tmp.cleanup()


class RunBackupTests(CliTestCase):
    def test_backup_writes_archive_and_bumps_version(self) -> None:
        code = cli.run_backup(self.config_path, context=self.context, now=datetime(2024, 5, 6, 7, 8, 9))

        self.assertEqual(code, 0)
        archive = self.root / "backup" / "Demo_1.0.0_20240506070809.bak.txt"
        text = archive.read_text(encoding="utf-8")
        self.assertIn("##>src/app.js", text)
        self.assertIn("##>src/utils/helpers.js", text)
        self.assertIn("logo.png (skipped)", text)
        self.assertNotIn("##>src/logo.png", text)
        # .xml has no rule, so the include file is skipped by pattern.
        self.assertNotIn("backup.config.xml", text)

        config = load_config(self.config_path)
        self.assertEqual(config.version, "1.0.1")
        self.assertEqual(config.created, "2024-05-06 07:08:09")
        self.assertTrue(any(m.startswith("Backup completed successfully") for m in self.messages))

    def test_backup_then_restore_round_trip(self) -> None:
        cli.run_backup(self.config_path, context=self.context, now=datetime(2024, 5, 6, 7, 8, 9))
        archive = self.root / "backup" / "Demo_1.0.0_20240506070809.bak.txt"

        self.assertEqual(cli.run_restore(archive, self.context), 0)

        restored = self.root / "backup" / "Demo_1.0.0_20240506070809.bak"
        self.assertEqual((restored / "src" / "app.js").read_text(encoding="utf-8"), "console.log(1)")
        self.assertEqual(
            (restored / "src" / "utils" / "helpers.js").read_text(encoding="utf-8"), "export const x=1;"
        )
        self.assertFalse((restored / "src" / "logo.png").exists())

    def test_zip_and_cleanup(self) -> None:
        text = CONFIG.replace(
            "<IsExample>0</IsExample>",
            "<EnableZip>true</EnableZip><DeleteUnziped>true</DeleteUnziped>"
            "<CleanupKeepLast>1</CleanupKeepLast><IsExample>0</IsExample>",
        )
        self.config_path.write_text(text, encoding="utf-8")

        self.assertEqual(cli.run_backup(self.config_path, context=self.context, now=datetime(2024, 1, 1)), 0)
        first = self.root / "backup" / "Demo_1.0.0_20240101000000.bak.txt.zip"
        os.utime(first, (1_000_000, 1_000_000))
        self.assertEqual(cli.run_backup(self.config_path, context=self.context, now=datetime(2024, 1, 2)), 0)

        remaining = sorted(p.name for p in (self.root / "backup").iterdir())
        self.assertEqual(remaining, ["Demo_1.0.1_20240102000000.bak.txt.zip"])

    def test_incremental_run_skips_unchanged_files(self) -> None:
        text = CONFIG.replace(
            "<IsExample>0</IsExample>",
            "<Created>2024-01-01 00:00:00</Created><IncrementalBackup>true</IncrementalBackup><IsExample>0</IsExample>",
        )
        self.config_path.write_text(text, encoding="utf-8")
        old = datetime(2023, 12, 31).timestamp()
        os.utime(self.root / "src" / "app.js", (old, old))

        cli.run_backup(self.config_path, context=self.context, now=datetime(2024, 5, 6, 7, 8, 9))

        archive = self.root / "backup" / "Demo_1.0.0_20240506070809.bak.txt"
        text = archive.read_text(encoding="utf-8")
        self.assertNotIn("##>src/app.js", text)
        self.assertIn("##>src/utils/helpers.js", text)

    def test_example_config_is_refused(self) -> None:
        self.config_path.write_text(CONFIG.replace("<IsExample>0", "<IsExample>1"), encoding="utf-8")
        self.assertEqual(cli.run_backup(self.config_path, context=self.context), 1)
        self.assertFalse((self.root / "backup").exists())

    def test_missing_default_config_creates_template(self) -> None:
        self.config_path.unlink()
        self.assertEqual(cli.run_backup(self.config_path, context=self.context), 1)
        self.assertTrue(self.config_path.exists())
        self.assertTrue(load_config(self.config_path).is_example)

    def test_unwritable_result_path_fails(self) -> None:
        (self.root / "backup").write_text("a file, not a folder", encoding="utf-8")
        self.assertEqual(cli.run_backup(self.config_path, context=self.context), 1)
        self.assertEqual(load_config(self.config_path).version, "1.0.0")


class MainDispatchTests(CliTestCase):
    def test_xml_argument_runs_backup(self) -> None:
        with mock.patch("backupfiles.cli.run_backup", return_value=0) as run_backup:
            self.assertEqual(cli.main([str(self.config_path), "--log-level", "ERROR"]), 0)
        run_backup.assert_called_once()
        self.assertEqual(run_backup.call_args.args[0], self.config_path)

    def test_other_argument_runs_restore(self) -> None:
        archive = self.root / "some.bak.txt"
        archive.write_text("", encoding="utf-8")
        with mock.patch("backupfiles.cli.run_restore", return_value=0) as run_restore:
            self.assertEqual(cli.main([str(archive), "--log-level", "ERROR"]), 0)
        run_restore.assert_called_once()

    def test_no_argument_uses_default_config_in_cwd(self) -> None:
        previous_cwd = Path.cwd()
        try:
            os.chdir(self.root)
            with mock.patch("backupfiles.cli.run_backup", return_value=0) as run_backup:
                cli.main(["--log-level", "ERROR"])
        finally:
            os.chdir(previous_cwd)
        self.assertEqual(run_backup.call_args.args[0].resolve(), self.config_path)

    def test_restore_of_missing_file_fails(self) -> None:
        self.assertEqual(cli.run_restore(self.root / "nope.txt", self.context), 1)


if __name__ == "__main__":
    unittest.main()
