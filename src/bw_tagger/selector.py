"""Candidate selection: pages of photos that still need a black & white verdict."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import and_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from bw_tagger.context import RunContext
from bw_tagger.db import LARGE_VARIANT, ORIGINAL_VARIANT, Photo, PhotoTag, SizeVariant
from bw_tagger.errors import ConnectivityError
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "selector"})


@dataclass(frozen=True)
class Candidate:
    """A photo eligible for classification in the current pass."""

    id: str
    media_kind: str
    checksum: str
    large_path: str | None = None
    original_path: str | None = None

    @property
    def variant_paths(self) -> tuple[str, ...]:
        """Known rendition paths in fetch priority order: large, then original."""

        return tuple(path for path in (self.large_path, self.original_path) if path)


class CandidateSelector:
    """Query the store for unclassified, eligible photos one page at a time."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def fetch_page(self, ctx: RunContext) -> list[Candidate]:
        """Return up to ``ctx.page_size`` candidates, oldest first.

        A photo is a candidate when it has no association with the Black & White
        tag, its ``_dz_bw`` flag is NULL and its type is neither video nor raw.
        Photos in ``ctx.skipped_ids`` are left out. An empty list means the pass
        is exhausted.
        """

        large = aliased(SizeVariant)
        original = aliased(SizeVariant)

        stmt = (
            select(
                Photo.id,
                Photo.type,
                Photo.checksum,
                large.short_path.label("large_path"),
                original.short_path.label("original_path"),
            )
            .outerjoin(PhotoTag, and_(PhotoTag.photo_id == Photo.id, PhotoTag.tag_id == ctx.bw_tag_id))
            .outerjoin(large, and_(large.photo_id == Photo.id, large.type == LARGE_VARIANT))
            .outerjoin(original, and_(original.photo_id == Photo.id, original.type == ORIGINAL_VARIANT))
            .where(
                PhotoTag.photo_id.is_(None),
                Photo.bw_flag.is_(None),
                Photo.type.not_like("%video%"),
                Photo.type.not_like("%raw%"),
            )
            .order_by(Photo.created_at.asc(), Photo.id.asc())
            .limit(ctx.page_size)
        )
        if ctx.skipped_ids:
            stmt = stmt.where(Photo.id.not_in(sorted(ctx.skipped_ids)))

        try:
            rows = self._session.execute(stmt).all()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise ConnectivityError(f"failed to query photos: {exc}") from exc

        return [
            Candidate(
                id=row.id,
                media_kind=row.type,
                checksum=row.checksum,
                large_path=row.large_path,
                original_path=row.original_path,
            )
            for row in rows
        ]


__all__ = ["Candidate", "CandidateSelector"]
