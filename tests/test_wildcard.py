"""Tests for the pure wildcard matcher."""

from __future__ import annotations

import unittest

from backupfiles.wildcard import has_wildcard, normalize_pattern, wildcard_match


class WildcardMatchTests(unittest.TestCase):
    def test_star_matches_any_run_including_separators(self) -> None:
        self.assertTrue(wildcard_match("src/lib/app.min.js", "*.min.js"))
        self.assertTrue(wildcard_match("a/node_modules/x/y.js", "*/node_modules/*"))
        self.assertTrue(wildcard_match("app.js", "*app.js"))

    def test_question_mark_matches_exactly_one_character(self) -> None:
        self.assertTrue(wildcard_match("file1.txt", "file?.txt"))
        self.assertFalse(wildcard_match("file12.txt", "file?.txt"))
        self.assertFalse(wildcard_match("file.txt", "file?.txt"))

    def test_match_is_anchored_and_case_insensitive(self) -> None:
        self.assertTrue(wildcard_match("README.MD", "*.md"))
        self.assertFalse(wildcard_match("notes.md.bak", "*.md"))

    def test_separators_and_leading_dot_slash_are_normalized(self) -> None:
        self.assertTrue(wildcard_match("bin\\tool.exe", "./bin/*"))
        self.assertTrue(wildcard_match("bin/tool.exe", "/bin/*"))
        self.assertTrue(wildcard_match("bin/tool.exe", ".\\bin\\*"))

    def test_regex_metacharacters_are_literal(self) -> None:
        self.assertTrue(wildcard_match("a+b(1).txt", "a+b(1).*"))
        self.assertFalse(wildcard_match("axtxt", "a.txt"))

    def test_empty_pattern_never_matches(self) -> None:
        self.assertFalse(wildcard_match("", ""))
        self.assertFalse(wildcard_match("a", ""))

    def test_helpers(self) -> None:
        self.assertTrue(has_wildcard("*.js"))
        self.assertTrue(has_wildcard("file?.txt"))
        self.assertFalse(has_wildcard(".js"))
        self.assertEqual(normalize_pattern("./src/"), "src/")
        self.assertEqual(normalize_pattern("//x"), "x")


if __name__ == "__main__":
    unittest.main()
