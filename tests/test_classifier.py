"""Tests for the grayscale classifier and its adapter."""

from __future__ import annotations

import numpy as np
import pytest
from PIL import Image

from bw_tagger.classifier import is_grayscale
from bw_tagger.errors import ClassificationFailed
from bw_tagger.grayscale import build_analysis_image, chroma, classify


def test_gray_rgb_image_is_grayscale() -> None:
    assert classify(Image.new("RGB", (32, 32), color=(90, 90, 90)), 0.1) is True


def test_saturated_image_is_color() -> None:
    assert classify(Image.new("RGB", (32, 32), color=(220, 40, 40)), 0.1) is False


def test_single_channel_image_is_grayscale() -> None:
    assert classify(Image.new("L", (8, 8), color=200), 0.0) is True


def test_slight_tint_within_tolerance() -> None:
    # Chroma of (130, 125, 120) is 10/255, about 0.04.
    tinted = Image.new("RGB", (32, 32), color=(130, 125, 120))

    assert classify(tinted, 0.1) is True
    assert classify(tinted, 0.01) is False


def test_few_colored_pixels_do_not_flip_verdict() -> None:
    pixels = np.full((100, 100, 3), 128, dtype=np.uint8)
    pixels[0, :50] = (255, 0, 0)  # 0.5% of the image
    image = Image.fromarray(pixels)

    assert classify(image, 0.1) is True


def test_chroma_is_scaled_to_unit_range() -> None:
    values = chroma(Image.new("RGB", (4, 4), color=(255, 0, 0)))

    assert values.shape == (4, 4)
    assert float(values.max()) == pytest.approx(1.0)


def test_analysis_image_is_bounded() -> None:
    resized = build_analysis_image(Image.new("RGBA", (2000, 1000)), max_side=100)

    assert resized.mode == "RGB"
    assert max(resized.size) == 100


def test_analysis_image_converts_after_downsampling(monkeypatch: pytest.MonkeyPatch) -> None:
    converted_sizes = []
    original_convert = Image.Image.convert

    def recording_convert(self, *args, **kwargs):
        converted_sizes.append(self.size)
        return original_convert(self, *args, **kwargs)

    monkeypatch.setattr(Image.Image, "convert", recording_convert)

    resized = build_analysis_image(Image.new("CMYK", (2000, 1000)), max_side=100)

    assert resized.size == (100, 50)
    assert converted_sizes == [(100, 50)]


def test_analysis_image_keeps_small_images() -> None:
    resized = build_analysis_image(Image.new("P", (40, 30)), max_side=100)

    assert resized.mode == "RGB"
    assert resized.size == (40, 30)


def test_classify_rejects_out_of_range_tolerance() -> None:
    with pytest.raises(ValueError):
        classify(Image.new("RGB", (4, 4)), 1.5)


def test_adapter_maps_errors() -> None:
    def broken(image: Image.Image, tolerance: float) -> bool:
        raise RuntimeError("analyzer crashed")

    with pytest.raises(ClassificationFailed, match="analyzer crashed"):
        is_grayscale(Image.new("RGB", (4, 4)), 0.1, classify=broken)


def test_adapter_passes_tolerance_through() -> None:
    seen: list[float] = []

    def record(image: Image.Image, tolerance: float) -> bool:
        seen.append(tolerance)
        return True

    assert is_grayscale(Image.new("RGB", (4, 4)), 0.25, classify=record) is True
    assert seen == [0.25]
