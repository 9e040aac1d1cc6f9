"""Tests for utility helpers."""

from __future__ import annotations

import logging
import tempfile
import unittest
from pathlib import Path

from booru_bot.utils import (
    BooruBotError,
    FetchError,
    TransferError,
    atomic_write,
    format_bytes,
    sanitize_filename,
    setup_logging,
)


class TestUtils(unittest.TestCase):
    def test_sanitize_filename_keeps_plain_names(self) -> None:
        self.assertEqual(sanitize_filename("cat.png"), "cat.png")
        self.assertEqual(sanitize_filename("Sinon_01-final.JPG"), "Sinon_01-final.JPG")

    def test_sanitize_filename_strips_paths_and_spaces(self) -> None:
        self.assertEqual(sanitize_filename("../../etc/passwd"), "_.._etc_passwd")
        self.assertEqual(sanitize_filename("my cat.png"), "my_cat.png")
        self.assertEqual(sanitize_filename("   "), "file")

    def test_sanitize_filename_keeps_unicode_names_distinct(self) -> None:
        first = sanitize_filename("シノン.png")
        second = sanitize_filename("朝田詩乃.png")
        self.assertEqual(first, "シノン.png")
        self.assertEqual(second, "朝田詩乃.png")
        self.assertNotEqual(first, second)

    def test_sanitize_filename_replaces_control_characters(self) -> None:
        self.assertEqual(sanitize_filename("sinon\x00\n.png"), "sinon_.png")

    def test_format_bytes(self) -> None:
        self.assertEqual(format_bytes(512), "512 B")
        self.assertEqual(format_bytes(2048), "2.00 KB")
        self.assertEqual(format_bytes(3 * 1024 * 1024), "3.00 MB")
        with self.assertRaises(ValueError):
            format_bytes(-1)

    def test_atomic_write_replaces_content(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            target = Path(temp_dir) / "nested" / "database.json"
            atomic_write(target, "first")
            atomic_write(target, "second")
            self.assertEqual(target.read_text(encoding="utf-8"), "second")
            self.assertFalse(target.with_suffix(".json.tmp").exists())

    def test_error_hierarchy(self) -> None:
        self.assertTrue(issubclass(FetchError, BooruBotError))
        self.assertTrue(issubclass(TransferError, BooruBotError))

    def test_setup_logging_levels(self) -> None:
        logger = setup_logging(production=True)
        self.assertEqual(logger.level, logging.INFO)
        logger = setup_logging(production=False)
        self.assertEqual(logger.level, logging.DEBUG)
        self.assertEqual(len(logger.handlers), 1)


if __name__ == "__main__":
    unittest.main()
