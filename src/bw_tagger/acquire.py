"""Fetch and decode the pixel data of a candidate photo."""

from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx
from PIL import Image

from bw_tagger.decoding import DEFAULT_DECODERS, DecodeError, Decoder, decode_image
from bw_tagger.errors import AcquisitionFailed
from bw_tagger.selector import Candidate
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "acquirer"})


class SourceError(Exception):
    """A single variant URL answered with something other than HTTP 200."""


class ImageAcquirer:
    """Download a photo's renditions in priority order and decode the first usable one."""

    def __init__(
        self,
        client: httpx.Client,
        base_url: str,
        decoders: Sequence[tuple[str, Decoder]] = DEFAULT_DECODERS,
        *,
        verbose: bool = False,
    ) -> None:
        self._client = client
        self._base_url = base_url
        self._decoders = tuple(decoders)
        self._progress_level = logging.INFO if verbose else logging.DEBUG

    def source_urls(self, photo: Candidate) -> list[str]:
        """Return fetch URLs for the photo, large rendition first."""

        return [self._base_url + path for path in photo.variant_paths]

    def acquire(self, photo: Candidate) -> Image.Image:
        """Return the first successfully decoded rendition of ``photo``.

        Any of these only fails the current source, and the next one is tried:
        a non-200 status, a transport error, a malformed URL, undecodable bytes.
        :class:`AcquisitionFailed` carries the last underlying error once every
        source is exhausted.
        """

        last_error: Exception | None = None
        for url in self.source_urls(photo):
            LOGGER.log(self._progress_level, "image_download", extra={"photo_id": photo.id, "url": url})
            try:
                data = self._fetch(url)
                decoder_name, image = decode_image(data, self._decoders)
            except (httpx.HTTPError, httpx.InvalidURL, SourceError, DecodeError) as exc:
                LOGGER.log(
                    self._progress_level,
                    "image_source_failed",
                    extra={"photo_id": photo.id, "url": url, "error": str(exc)},
                )
                last_error = exc
                continue

            LOGGER.log(
                self._progress_level,
                "image_decoded",
                extra={"photo_id": photo.id, "url": url, "decoder": decoder_name, "format": image.format},
            )
            return image

        raise AcquisitionFailed(photo.id, last_error)

    def _fetch(self, url: str) -> bytes:
        resp = self._client.get(url)
        if resp.status_code != httpx.codes.OK:
            raise SourceError(f"HTTP {resp.status_code}")
        return resp.content


__all__ = ["ImageAcquirer", "SourceError"]
