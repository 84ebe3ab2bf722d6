"""Pixel-statistics grayscale detection."""

from __future__ import annotations

import numpy as np
from PIL import Image
from PIL.Image import Resampling

# Images are downsampled to at most this many pixels per side before analysis.
ANALYSIS_MAX_SIDE = 512
# Share of pixels allowed to exceed the tolerance (specular highlights, JPEG noise).
OUTLIER_PERCENTILE = 99.0

_SINGLE_CHANNEL_MODES = frozenset({"1", "L", "LA", "I", "I;16", "F"})


def build_analysis_image(image: Image.Image, max_side: int = ANALYSIS_MAX_SIDE) -> Image.Image:
    """Produce an RGB copy of ``image`` constrained to ``max_side`` pixels."""

    safe_side = max(1, int(max_side))
    width, height = image.size
    scale = safe_side / max(width, height)
    if scale < 1.0:
        size = (max(1, round(width * scale)), max(1, round(height * scale)))
        # Downsample before the mode conversion.
        image = image.resize(size, resample=Resampling.BILINEAR)
    return image.convert("RGB")


def chroma(image: Image.Image) -> np.ndarray:
    """Return per-pixel chroma in ``[0, 1]``: max channel minus min channel."""

    pixels = np.asarray(build_analysis_image(image), dtype=np.float32) / 255.0
    return pixels.max(axis=2) - pixels.min(axis=2)


def classify(image: Image.Image, tolerance: float) -> bool:
    """Return ``True`` when ``image`` is visually grayscale within ``tolerance``.

    Tolerance is the chroma (0..1) a pixel may carry and still count as gray.
    The image is grayscale when the 99th percentile of chroma is within it,
    so a few stray colored pixels do not flip the verdict.
    """

    if not 0.0 <= tolerance <= 1.0:
        raise ValueError(f"tolerance must be between 0 and 1, got {tolerance!r}")
    if image.width == 0 or image.height == 0:
        raise ValueError("cannot classify an empty image")
    if image.mode in _SINGLE_CHANNEL_MODES:
        return True

    values = chroma(image)
    return bool(np.percentile(values, OUTLIER_PERCENTILE) <= tolerance)


__all__ = ["ANALYSIS_MAX_SIDE", "build_analysis_image", "chroma", "classify"]
