"""Shared helpers for database URLs and dialect-aware operations."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import URL
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session


def normalize_database_url(target: str | Path | URL) -> str:
    """Normalize database URL or path inputs to absolute URL strings."""

    if isinstance(target, URL):
        return target.render_as_string(hide_password=False)

    if isinstance(target, Path):
        return f"sqlite:///{target.resolve()}"

    raw = str(target).strip()
    if not raw:
        raise ValueError("database target cannot be empty")

    if "://" not in raw:
        return f"sqlite:///{Path(raw).resolve()}"

    url = make_url(raw)
    if url.drivername.startswith("sqlite"):
        database = url.database or ""
        if database not in {":memory:", ""}:
            db_path = Path(database)
            if not db_path.is_absolute():
                db_path = (Path.cwd() / db_path).resolve()
            url = url.set(database=str(db_path))
        return url.render_as_string(hide_password=False)

    return raw


def insert_ignore(session: Session, table: Any, values: dict[str, Any]) -> Any:
    """Return a dialect-aware INSERT that is a no-op when the row already exists."""

    bind = session.get_bind()
    if bind is None:
        raise RuntimeError("Session is not bound to an engine.")

    name = bind.dialect.name
    if name == "mysql":
        stmt = mysql_insert(table).values(**values)
        # Re-assigning a key column to itself leaves the existing row untouched.
        first_key = next(iter(values))
        return stmt.on_duplicate_key_update({first_key: stmt.inserted[first_key]})
    if name == "sqlite":
        return sqlite_insert(table).values(**values).on_conflict_do_nothing()
    raise NotImplementedError(f"Unsupported dialect for insert-ignore: {name}")


__all__ = ["normalize_database_url", "insert_ignore"]
