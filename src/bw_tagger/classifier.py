"""Adapter between the batch driver and the grayscale classifier."""

from __future__ import annotations

from collections.abc import Callable

from PIL import Image

from bw_tagger import grayscale
from bw_tagger.errors import ClassificationFailed

Classify = Callable[[Image.Image, float], bool]


def is_grayscale(image: Image.Image, tolerance: float, classify: Classify = grayscale.classify) -> bool:
    """Call the classifier, mapping any classifier-side error to :class:`ClassificationFailed`."""

    try:
        return bool(classify(image, tolerance))
    except Exception as exc:  # the classifier is opaque; every failure is one kind here
        raise ClassificationFailed(f"failed to analyze grayscale: {exc}") from exc


__all__ = ["Classify", "is_grayscale"]
