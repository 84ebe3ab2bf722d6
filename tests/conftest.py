"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime, timedelta
from io import BytesIO
from pathlib import Path

import httpx
import pytest
from PIL import Image
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from bw_tagger.context import RunContext
from bw_tagger.db import LARGE_VARIANT, ORIGINAL_VARIANT, Base, Photo, SizeVariant, Tag, get_engine, open_session

BASE_URL = "http://lychee.test/uploads/"
BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


@pytest.fixture
def engine(tmp_path: Path) -> Engine:
    """SQLite store with the Lychee tables the tagger touches."""

    engine = get_engine(tmp_path / "lychee.db")
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def session(engine: Engine) -> Iterator[Session]:
    with open_session(engine) as session:
        yield session


@pytest.fixture
def bw_tag_id(session: Session) -> int:
    tag = Tag(name="Black & White", description="Automatically detected black and white photos")
    session.add(tag)
    session.commit()
    return tag.id


@pytest.fixture
def ctx(bw_tag_id: int) -> RunContext:
    return RunContext(bw_tag_id=bw_tag_id, page_delay=0.0)


def add_photo(
    session: Session,
    photo_id: str,
    *,
    media_kind: str = "image/jpeg",
    minutes: int = 0,
    large: str | None = None,
    original: str | None = None,
    bw_flag: bool | None = None,
) -> Photo:
    """Insert a photo created ``minutes`` after BASE_TIME, with optional renditions."""

    photo = Photo(
        id=photo_id,
        type=media_kind,
        checksum=f"sha-{photo_id}",
        bw_flag=bw_flag,
        created_at=BASE_TIME + timedelta(minutes=minutes),
        updated_at=None,
    )
    session.add(photo)
    if large is not None:
        session.add(SizeVariant(photo_id=photo_id, type=LARGE_VARIANT, short_path=large))
    if original is not None:
        session.add(SizeVariant(photo_id=photo_id, type=ORIGINAL_VARIANT, short_path=original))
    session.commit()
    return photo


def image_bytes(color: tuple[int, int, int], fmt: str = "PNG", size: tuple[int, int] = (16, 16)) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, color=color).save(buffer, format=fmt)
    return buffer.getvalue()


GRAY_PNG = image_bytes((128, 128, 128))
RED_PNG = image_bytes((200, 30, 30))


def mock_client(routes: dict[str, tuple[int, bytes]], requested: list[str] | None = None) -> httpx.Client:
    """httpx client answering from ``routes`` (url -> (status, body)); unknown URLs get 404."""

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if requested is not None:
            requested.append(url)
        status, body = routes.get(url, (404, b"not found"))
        return httpx.Response(status, content=body)

    return httpx.Client(transport=httpx.MockTransport(handler))
