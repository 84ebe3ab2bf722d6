"""Exceptions raised by the black & white tagger.

Startup errors (:class:`ConfigError`, :class:`ConnectivityError`,
:class:`SchemaError`) abort the run. Per-photo errors
(:class:`AcquisitionFailed`, :class:`ClassificationFailed`,
:class:`PersistenceFailed`) are caught by the batch driver, logged, and the
pass moves on to the next photo.
"""

from __future__ import annotations


class BwTaggerError(Exception):
    """Base exception for all tagger errors."""


class ConfigError(BwTaggerError):
    """Raised when the configuration file is missing, malformed, or incomplete."""


class ConnectivityError(BwTaggerError):
    """Raised when the photo store cannot be reached or queried."""


class SchemaError(BwTaggerError):
    """Raised when required columns or the Black & White tag cannot be ensured."""


class AcquisitionFailed(BwTaggerError):
    """Raised when no variant of a photo yielded a decodable image."""

    def __init__(self, photo_id: str, last_error: BaseException | None = None) -> None:
        self.photo_id = photo_id
        self.last_error = last_error
        if last_error is None:
            message = f"photo {photo_id} has no usable image variant"
        else:
            message = f"failed to download any image variant of photo {photo_id}, last error: {last_error}"
        super().__init__(message)


class ClassificationFailed(BwTaggerError):
    """Raised when the grayscale classifier errors on a decoded image."""


class PersistenceFailed(BwTaggerError):
    """Raised when the classification flag or tag association could not be written."""


__all__ = [
    "BwTaggerError",
    "ConfigError",
    "ConnectivityError",
    "SchemaError",
    "AcquisitionFailed",
    "ClassificationFailed",
    "PersistenceFailed",
]
