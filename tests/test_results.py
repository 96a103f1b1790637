"""Tests for zip wrapping and keep-last cleanup of result files."""

from __future__ import annotations

import os
import tempfile
import unittest
import zipfile
from pathlib import Path

from backupfiles.results import cleanup_old_results, mask_to_pattern, zip_result

MASK = "@PROJECTNAME_@VER_#YYYYMMDDhhmmss#.bak.txt"


class ResultsTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.base = Path(self._tmp.name).resolve()

    def tearDown(self) -> None:
        self._tmp.cleanup()


class ZipResultTests(ResultsTestCase):
    def test_zip_wraps_archive_and_optionally_deletes_it(self) -> None:
        archive = self.base / "Demo_1.0.1_20240101000000.bak.txt"
        archive.write_text("proj./\n", encoding="utf-8")

        zip_path = zip_result(archive, delete_unzipped=True)

        self.assertEqual(zip_path.name, archive.name + ".zip")
        self.assertFalse(archive.exists())
        with zipfile.ZipFile(zip_path) as zf:
            self.assertEqual(zf.namelist(), [archive.name])
            self.assertEqual(zf.read(archive.name), b"proj./\n")


class CleanupTests(ResultsTestCase):
    def test_mask_to_pattern(self) -> None:
        self.assertEqual(mask_to_pattern(MASK, "Demo"), "Demo_*_*.bak.txt")

    def test_keeps_only_the_newest_results(self) -> None:
        day = 86400
        paths = []
        for index in range(1, 6):
            path = self.base / f"Demo_1.0.{index}_2024010{index}000000.bak.txt"
            path.write_text(str(index), encoding="utf-8")
            os.utime(path, (index * day, index * day))
            paths.append(path)
        unrelated = self.base / "notes.txt"
        unrelated.write_text("keep me", encoding="utf-8")

        deleted = cleanup_old_results(self.base, MASK, "Demo", keep_last=2)

        self.assertEqual(sorted(deleted), sorted(paths[:3]))
        self.assertEqual(sorted(p for p in self.base.iterdir()), sorted([paths[3], paths[4], unrelated]))

    def test_zip_results_count_as_results(self) -> None:
        old = self.base / "Demo_1.0.1_20240101000000.bak.txt.zip"
        new = self.base / "Demo_1.0.2_20240102000000.bak.txt"
        old.write_bytes(b"zip")
        new.write_text("txt", encoding="utf-8")
        os.utime(old, (100, 100))
        os.utime(new, (200, 200))

        cleanup_old_results(self.base, MASK, "Demo", keep_last=1)

        self.assertFalse(old.exists())
        self.assertTrue(new.exists())

    def test_archive_and_its_zip_count_as_one_result(self) -> None:
        pairs = []
        for index in range(1, 4):
            plain = self.base / f"Demo_1.0.{index}_2024010{index}000000.bak.txt"
            zipped = plain.with_name(plain.name + ".zip")
            plain.write_text(str(index), encoding="utf-8")
            zipped.write_bytes(b"zip")
            os.utime(plain, (index * 100, index * 100))
            os.utime(zipped, (index * 100 + 1, index * 100 + 1))
            pairs.append((plain, zipped))

        deleted = cleanup_old_results(self.base, MASK, "Demo", keep_last=2)

        self.assertEqual(sorted(deleted), sorted(pairs[0]))
        self.assertEqual(len(list(self.base.iterdir())), 4)
        for plain, zipped in pairs[1:]:
            self.assertTrue(plain.exists())
            self.assertTrue(zipped.exists())

    def test_zero_keeps_everything(self) -> None:
        path = self.base / "Demo_1.0.1_20240101000000.bak.txt"
        path.write_text("x", encoding="utf-8")
        self.assertEqual(cleanup_old_results(self.base, MASK, "Demo", keep_last=0), [])
        self.assertTrue(path.exists())


if __name__ == "__main__":
    unittest.main()
