"""Tests for image acquisition with source fallback."""

from __future__ import annotations

import logging

import httpx
import pytest
from conftest import BASE_URL, GRAY_PNG, RED_PNG, image_bytes, mock_client
from PIL import Image

from bw_tagger.acquire import ImageAcquirer
from bw_tagger.decoding import DecodeError, decode_image
from bw_tagger.errors import AcquisitionFailed
from bw_tagger.selector import Candidate


def _photo(large: str | None = "large/p1.jpg", original: str | None = "original/p1.jpg") -> Candidate:
    return Candidate(id="p1", media_kind="image/jpeg", checksum="abc", large_path=large, original_path=original)


def test_acquire_prefers_large_rendition() -> None:
    requested: list[str] = []
    client = mock_client(
        {BASE_URL + "large/p1.jpg": (200, GRAY_PNG), BASE_URL + "original/p1.jpg": (200, RED_PNG)},
        requested,
    )

    image = ImageAcquirer(client, BASE_URL).acquire(_photo())

    assert image.getpixel((0, 0)) == (128, 128, 128)
    assert requested == [BASE_URL + "large/p1.jpg"]


def test_acquire_falls_back_to_original_on_404() -> None:
    requested: list[str] = []
    client = mock_client({BASE_URL + "original/p1.jpg": (200, RED_PNG)}, requested)

    image = ImageAcquirer(client, BASE_URL).acquire(_photo())

    assert image.getpixel((0, 0)) == (200, 30, 30)
    assert requested == [BASE_URL + "large/p1.jpg", BASE_URL + "original/p1.jpg"]


def test_acquire_falls_back_when_large_is_undecodable() -> None:
    client = mock_client(
        {BASE_URL + "large/p1.jpg": (200, b"not an image"), BASE_URL + "original/p1.jpg": (200, GRAY_PNG)}
    )

    image = ImageAcquirer(client, BASE_URL).acquire(_photo())

    assert image.size == (16, 16)


def test_acquire_treats_transport_errors_as_source_failures() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("large/p1.jpg"):
            raise httpx.ConnectTimeout("timed out", request=request)
        return httpx.Response(200, content=GRAY_PNG)

    client = httpx.Client(transport=httpx.MockTransport(handler))

    image = ImageAcquirer(client, BASE_URL).acquire(_photo())

    assert image.size == (16, 16)


def test_acquire_treats_malformed_urls_as_source_failures() -> None:
    client = mock_client({BASE_URL + "original/p1.jpg": (200, GRAY_PNG)})

    image = ImageAcquirer(client, BASE_URL).acquire(_photo(large="large/bad\x01.png"))

    assert image.size == (16, 16)


def test_acquire_reports_malformed_url_when_it_is_the_only_source() -> None:
    client = mock_client({})

    with pytest.raises(AcquisitionFailed) as excinfo:
        ImageAcquirer(client, BASE_URL).acquire(_photo(large="large/bad\x01.png", original=None))

    assert isinstance(excinfo.value.last_error, httpx.InvalidURL)


def test_verbose_acquirer_logs_download_progress(caplog: pytest.LogCaptureFixture) -> None:
    client = mock_client({BASE_URL + "large/p1.jpg": (404, b""), BASE_URL + "original/p1.jpg": (200, GRAY_PNG)})

    with caplog.at_level(logging.INFO):
        ImageAcquirer(client, BASE_URL, verbose=True).acquire(_photo())
    loud = [record.getMessage() for record in caplog.records if record.name == "bw_tagger.acquire"]

    caplog.clear()
    with caplog.at_level(logging.INFO):
        ImageAcquirer(client, BASE_URL).acquire(_photo())
    quiet = [record.getMessage() for record in caplog.records if record.name == "bw_tagger.acquire"]

    assert loud == ["image_download", "image_source_failed", "image_download", "image_decoded"]
    assert quiet == []


def test_acquire_fails_when_all_sources_fail() -> None:
    client = mock_client(
        {BASE_URL + "large/p1.jpg": (500, b"boom"), BASE_URL + "original/p1.jpg": (500, b"boom")}
    )

    with pytest.raises(AcquisitionFailed) as excinfo:
        ImageAcquirer(client, BASE_URL).acquire(_photo())

    assert excinfo.value.photo_id == "p1"
    assert "HTTP 500" in str(excinfo.value.last_error)


def test_acquire_fails_without_sources() -> None:
    client = mock_client({})

    with pytest.raises(AcquisitionFailed) as excinfo:
        ImageAcquirer(client, BASE_URL).acquire(_photo(large=None, original=None))

    assert excinfo.value.last_error is None


def test_acquire_uses_secondary_decoder() -> None:
    calls: list[str] = []

    def failing(data: bytes) -> Image.Image:
        calls.append("standard")
        raise OSError("unsupported format")

    def fallback(data: bytes) -> Image.Image:
        calls.append("fallback")
        return Image.new("RGB", (4, 4))

    client = mock_client({BASE_URL + "large/p1.jpg": (200, b"\x00heic-ish")})
    acquirer = ImageAcquirer(client, BASE_URL, decoders=[("standard", failing), ("fallback", fallback)])

    image = acquirer.acquire(_photo(original=None))

    assert image.size == (4, 4)
    assert calls == ["standard", "fallback"]


def test_decode_image_reads_standard_formats() -> None:
    name, image = decode_image(image_bytes((10, 10, 10), fmt="JPEG"))

    assert name == "standard"
    assert image.format == "JPEG"


def test_decode_image_reports_all_strategies() -> None:
    with pytest.raises(DecodeError, match="standard, heif"):
        decode_image(b"garbage")
