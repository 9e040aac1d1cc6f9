"""
Preview generation for published images.

Previews are re-encoded copies of the original written to the preview cache
under the same filename. The codec profile is picked from the file extension:
PNG files are palette-quantized, JPEG files are re-encoded at a lower quality.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple, Union

from PIL import Image, ImageChops, ImageStat, UnidentifiedImageError

from .utils import CompressionError, UnsupportedFormatError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PngQuantProfile:
    """Lossy palette quantization with a [min, max] perceptual quality range."""

    quality: Tuple[float, float] = (0.56, 0.72)
    name: str = "png-quant"

    @property
    def colors(self) -> int:
        return max(2, min(256, round(256 * self.quality[1])))

    def encode(self, img: Image.Image, dest: Path) -> None:
        source = _normalize_mode(img)
        if source.mode == "RGBA":
            quantized = source.quantize(colors=self.colors, method=Image.Quantize.FASTOCTREE)
        else:
            quantized = source.quantize(colors=self.colors, method=Image.Quantize.MEDIANCUT)

        achieved = measure_quality(source, quantized.convert(source.mode))
        if achieved < self.quality[0]:
            raise CompressionError(
                f"Quantized quality {achieved:.2f} is below the minimum {self.quality[0]:.2f}")
        quantized.save(dest, format="PNG", optimize=True)


@dataclass(frozen=True)
class JpegProfile:
    """Plain JPEG re-encode at a fixed quality."""

    quality: int = 70
    name: str = "jpeg"

    def encode(self, img: Image.Image, dest: Path) -> None:
        _flatten(img).save(dest, format="JPEG", quality=self.quality, optimize=True)


PreviewProfile = Union[PngQuantProfile, JpegProfile]

PNG_EXTENSIONS = (".png",)
JPEG_EXTENSIONS = (".jpg", ".jpeg")


def select_profile(
    filename: str,
    png_quality: Tuple[float, float] = (0.56, 0.72),
    jpeg_quality: int = 70,
) -> PreviewProfile:
    """
    Pick the codec profile for a file.

    Raises:
        UnsupportedFormatError: If the extension is neither PNG nor JPEG.
    """
    ext = os.path.splitext(filename)[1].lower()
    if ext in PNG_EXTENSIONS:
        return PngQuantProfile(quality=png_quality)
    if ext in JPEG_EXTENSIONS:
        return JpegProfile(quality=jpeg_quality)
    raise UnsupportedFormatError(f"No preview profile for {filename!r}")


def measure_quality(original: Image.Image, degraded: Image.Image) -> float:
    """Return 1 - mean absolute channel error / 255 between two same-mode images."""
    diff = ImageChops.difference(original, degraded)
    means = ImageStat.Stat(diff).mean
    return 1.0 - (sum(means) / len(means)) / 255.0


def _normalize_mode(img: Image.Image) -> Image.Image:
    if img.mode in ("RGB", "RGBA"):
        return img
    if img.mode in ("LA", "PA") or "transparency" in img.info:
        return img.convert("RGBA")
    return img.convert("RGB")


def _flatten(img: Image.Image) -> Image.Image:
    """Composite transparency onto white; JPEG has no alpha channel."""
    if img.mode in ("RGBA", "LA", "P"):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


class PreviewGenerator:
    """Writes compressed previews of cached images into the preview directory."""

    def __init__(
        self,
        preview_dir: Union[str, Path],
        png_quality: Tuple[float, float] = (0.56, 0.72),
        jpeg_quality: int = 70,
    ):
        self.preview_dir = Path(preview_dir)
        self.png_quality = png_quality
        self.jpeg_quality = jpeg_quality

    def profile_for(self, filename: str) -> PreviewProfile:
        return select_profile(filename, self.png_quality, self.jpeg_quality)

    def generate(self, source_path: Union[str, Path]) -> Path:
        """
        Generate a preview for a cached image.

        Args:
            source_path: Image in the download cache.

        Returns:
            Path of the written preview.

        Raises:
            UnsupportedFormatError: Before any file is opened or written.
            CompressionError: If decoding or encoding fails.
        """
        source_path = Path(source_path)
        profile = self.profile_for(source_path.name)
        dest = self.preview_dir / source_path.name

        try:
            with Image.open(source_path) as img:
                img.load()
                profile.encode(img, dest)
        except CompressionError:
            _remove_quietly(dest)
            raise
        except (OSError, ValueError, UnidentifiedImageError) as exc:
            _remove_quietly(dest)
            raise CompressionError(f"Could not build preview for {source_path.name}: {exc}") from exc

        logger.info("Preview %s written with %s profile", dest, profile.name)
        return dest

    async def generate_async(self, source_path: Union[str, Path]) -> Path:
        return await asyncio.to_thread(self.generate, source_path)


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove incomplete preview %s: %s", path, exc)
