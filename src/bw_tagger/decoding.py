"""Decode raw image bytes with an ordered list of decoder strategies."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from io import BytesIO

import pillow_heif
from PIL import Image

Decoder = Callable[[bytes], Image.Image]


class DecodeError(ValueError):
    """Raised when none of the decoder strategies understood the bytes."""


def decode_with_pillow(data: bytes) -> Image.Image:
    """Decode any format Pillow ships a plugin for (JPEG, PNG, GIF, TIFF, WebP, ...)."""

    image = Image.open(BytesIO(data))
    image.load()
    return image


def decode_with_heif(data: bytes) -> Image.Image:
    """Decode HEIC/HEIF bytes through libheif."""

    heif_file = pillow_heif.open_heif(BytesIO(data))
    return heif_file.to_pillow()


DEFAULT_DECODERS: tuple[tuple[str, Decoder], ...] = (
    ("standard", decode_with_pillow),
    ("heif", decode_with_heif),
)


def decode_image(data: bytes, decoders: Sequence[tuple[str, Decoder]] = DEFAULT_DECODERS) -> tuple[str, Image.Image]:
    """Return ``(decoder_name, image)`` from the first strategy that succeeds."""

    last_error: Exception | None = None
    for name, decoder in decoders:
        try:
            return name, decoder(data)
        except Exception as exc:  # decoders raise format-specific error types
            last_error = exc

    names = ", ".join(name for name, _ in decoders)
    raise DecodeError(f"failed to decode image (tried {names}): {last_error}") from last_error


__all__ = ["Decoder", "DecodeError", "DEFAULT_DECODERS", "decode_image", "decode_with_heif", "decode_with_pillow"]
