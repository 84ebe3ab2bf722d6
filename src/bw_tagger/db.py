"""SQLAlchemy models for the Lychee tables we touch, plus engine and session helpers.

The schema is owned by Lychee. This module never creates tables in a live
store; it only maps the columns the tagger reads and writes, and adds the
``_dz_bw`` result column when it is missing.
"""

from __future__ import annotations

import enum
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, create_engine, event, inspect, text
from sqlalchemy.engine import URL, Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column

from bw_tagger.db_helpers import normalize_database_url
from bw_tagger.errors import ConnectivityError, SchemaError
from utils.logging import get_logger

LOGGER = get_logger(__name__)

BW_COLUMN = "_dz_bw"

# Lychee size variant types.
ORIGINAL_VARIANT = 0
LARGE_VARIANT = 2


class Classification(enum.Enum):
    """Tri-state classification stored in the nullable ``_dz_bw`` column."""

    UNKNOWN = "unknown"
    GRAYSCALE = "grayscale"
    COLOR = "color"

    @classmethod
    def from_flag(cls, flag: bool | None) -> "Classification":
        if flag is None:
            return cls.UNKNOWN
        return cls.GRAYSCALE if flag else cls.COLOR


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class Photo(Base):
    """A photo row; only eligibility fields and the result flag are mapped."""

    __tablename__ = "photos"

    id: Mapped[str] = mapped_column(String(24), primary_key=True)
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    checksum: Mapped[str] = mapped_column(String(40), nullable=False)
    bw_flag: Mapped[bool | None] = mapped_column(BW_COLUMN, Boolean, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    @property
    def classification(self) -> Classification:
        return Classification.from_flag(self.bw_flag)


class SizeVariant(Base):
    """A stored rendition of a photo at a path relative to the image base URL."""

    __tablename__ = "size_variants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    photo_id: Mapped[str] = mapped_column(String(24), nullable=False)
    type: Mapped[int] = mapped_column(Integer, nullable=False)
    short_path: Mapped[str] = mapped_column(String(255), nullable=False)

    __table_args__ = (Index("idx_size_variants_photo_type", "photo_id", "type", unique=True),)


class Tag(Base):
    """A named label attachable to photos."""

    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class PhotoTag(Base):
    """Photo-tag association; the composite key makes each pair unique."""

    __tablename__ = "photos_tags"

    tag_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    photo_id: Mapped[str] = mapped_column(String(24), primary_key=True)

    __table_args__ = (Index("idx_photos_tags_photo", "photo_id"),)


_ENGINE_CACHE: dict[str, Engine] = {}
_ENGINE_LOCK = Lock()


def get_engine(target: str | Path | URL) -> Engine:
    """Return a cached SQLAlchemy engine for the provided target."""

    normalized = normalize_database_url(target)
    engine = _ENGINE_CACHE.get(normalized)
    if engine is not None:
        return engine

    with _ENGINE_LOCK:
        engine = _ENGINE_CACHE.get(normalized)
        if engine is not None:
            return engine

        sa_url = make_url(normalized)
        is_sqlite = sa_url.drivername.startswith("sqlite")

        engine_kwargs: dict[str, object] = {}
        if is_sqlite:
            engine_kwargs["connect_args"] = {"timeout": 30.0}
        else:
            engine_kwargs["pool_pre_ping"] = True
            engine_kwargs["pool_recycle"] = 3600

        engine = create_engine(normalized, **engine_kwargs)

        if is_sqlite:

            @event.listens_for(engine, "connect")
            def _set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:  # type: ignore[override]
                cursor = dbapi_connection.cursor()
                try:
                    cursor.execute("PRAGMA busy_timeout = 30000")
                finally:
                    cursor.close()

        _ENGINE_CACHE[normalized] = engine
        return engine


def connect_store(target: str | Path | URL) -> Engine:
    """Return an engine for ``target`` after checking the store answers a ping."""

    try:
        engine = get_engine(target)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        raise ConnectivityError(f"failed to connect to database: {exc}") from exc

    LOGGER.info("db_connected", extra={"dialect": engine.dialect.name})
    return engine


def open_session(target: str | Path | URL | Engine) -> Session:
    """Open a SQLAlchemy session against the photo store."""

    engine = target if isinstance(target, Engine) else get_engine(target)
    return Session(engine)


def prepare_schema(engine: Engine) -> None:
    """Ensure ``photos`` has the nullable ``_dz_bw`` result column."""

    try:
        inspector = inspect(engine)
        if not inspector.has_table(Photo.__tablename__):
            raise SchemaError(f"table {Photo.__tablename__!r} does not exist")

        columns = {column["name"] for column in inspector.get_columns(Photo.__tablename__)}
        if BW_COLUMN in columns:
            LOGGER.info("db_schema_ready", extra={"column_added": False})
            return

        if engine.dialect.name == "mysql":
            ddl = (
                f"ALTER TABLE photos ADD COLUMN {BW_COLUMN} TINYINT(1) NULL "
                "COMMENT 'Black & white detection result'"
            )
        else:
            ddl = f"ALTER TABLE photos ADD COLUMN {BW_COLUMN} BOOLEAN NULL"

        with engine.begin() as conn:
            conn.execute(text(ddl))
    except SQLAlchemyError as exc:
        raise SchemaError(f"failed to add {BW_COLUMN} column: {exc}") from exc

    LOGGER.info("db_schema_ready", extra={"column_added": True})


__all__ = [
    "BW_COLUMN",
    "LARGE_VARIANT",
    "ORIGINAL_VARIANT",
    "Base",
    "Classification",
    "Photo",
    "PhotoTag",
    "SizeVariant",
    "Tag",
    "connect_store",
    "get_engine",
    "open_session",
    "prepare_schema",
]
