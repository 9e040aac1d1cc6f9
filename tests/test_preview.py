"""Tests for preview generation."""

from __future__ import annotations

import asyncio
import os
import tempfile
import unittest
from pathlib import Path

from PIL import Image

from booru_bot.preview import (
    JpegProfile,
    PngQuantProfile,
    PreviewGenerator,
    measure_quality,
    select_profile,
)
from booru_bot.utils import CompressionError, UnsupportedFormatError
from tests.fakes import image_bytes


class TestSelectProfile(unittest.TestCase):
    def test_png_extensions(self) -> None:
        for name in ("cat.png", "CAT.PNG", "a.b.png"):
            with self.subTest(name=name):
                profile = select_profile(name)
                self.assertIsInstance(profile, PngQuantProfile)
                self.assertEqual(profile.quality, (0.56, 0.72))

    def test_jpeg_extensions(self) -> None:
        for name in ("cat.jpg", "cat.jpeg", "cat.JPEG"):
            with self.subTest(name=name):
                profile = select_profile(name, jpeg_quality=55)
                self.assertIsInstance(profile, JpegProfile)
                self.assertEqual(profile.quality, 55)

    def test_unsupported_extensions(self) -> None:
        for name in ("cat.gif", "cat.webp", "cat", "png", "cat.png.txt"):
            with self.subTest(name=name):
                with self.assertRaises(UnsupportedFormatError):
                    select_profile(name)

    def test_palette_size_follows_max_quality(self) -> None:
        self.assertEqual(PngQuantProfile(quality=(0.56, 0.72)).colors, 184)
        self.assertEqual(PngQuantProfile(quality=(0.0, 0.0)).colors, 2)
        self.assertEqual(PngQuantProfile(quality=(0.0, 1.0)).colors, 256)


class TestPreviewGenerator(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        root = Path(self.temp_dir.name)
        self.downloads = root / "image_downloads"
        self.previews = root / "image_previews"
        self.downloads.mkdir()
        self.previews.mkdir()
        self.generator = PreviewGenerator(self.previews)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _cache(self, name: str, data: bytes) -> Path:
        path = self.downloads / name
        path.write_bytes(data)
        return path

    def test_png_preview_is_palette_image(self) -> None:
        source = self._cache("cat.png", image_bytes("PNG"))
        preview = self.generator.generate(source)
        self.assertEqual(preview, self.previews / "cat.png")
        with Image.open(preview) as img:
            self.assertEqual(img.format, "PNG")
            self.assertEqual(img.mode, "P")
            self.assertEqual(img.size, (32, 32))

    def test_png_with_alpha(self) -> None:
        source = self._cache("ghost.png", image_bytes("PNG", mode="RGBA"))
        preview = self.generator.generate(source)
        with Image.open(preview) as img:
            self.assertEqual(img.mode, "P")

    def test_jpeg_preview(self) -> None:
        source = self._cache("cat.jpg", image_bytes("JPEG"))
        preview = self.generator.generate(source)
        with Image.open(preview) as img:
            self.assertEqual(img.format, "JPEG")
            self.assertEqual(img.mode, "RGB")

    def test_unsupported_format_writes_nothing(self) -> None:
        source = self._cache("cat.gif", image_bytes("GIF"))
        with self.assertRaises(UnsupportedFormatError):
            self.generator.generate(source)
        self.assertEqual(list(self.previews.iterdir()), [])

    def test_corrupt_image(self) -> None:
        source = self._cache("broken.png", b"definitely not a png")
        with self.assertRaises(CompressionError):
            self.generator.generate(source)
        self.assertFalse((self.previews / "broken.png").exists())

    def test_quality_floor_rejects_lossy_result(self) -> None:
        noise = Image.frombytes("RGB", (64, 64), os.urandom(64 * 64 * 3))
        path = self.downloads / "noise.png"
        noise.save(path, format="PNG")
        strict = PreviewGenerator(self.previews, png_quality=(1.0, 1.0))
        with self.assertRaises(CompressionError):
            strict.generate(path)
        self.assertFalse((self.previews / "noise.png").exists())

    def test_generate_async(self) -> None:
        source = self._cache("cat.jpeg", image_bytes("JPEG"))
        preview = asyncio.run(self.generator.generate_async(source))
        self.assertTrue(preview.exists())


class TestMeasureQuality(unittest.TestCase):
    def test_identical_images(self) -> None:
        img = Image.new("RGB", (4, 4), (10, 20, 30))
        self.assertEqual(measure_quality(img, img.copy()), 1.0)

    def test_opposite_images(self) -> None:
        black = Image.new("RGB", (4, 4), (0, 0, 0))
        white = Image.new("RGB", (4, 4), (255, 255, 255))
        self.assertEqual(measure_quality(black, white), 0.0)


if __name__ == "__main__":
    unittest.main()
