"""Persist classification results and the Black & White tag via SQLAlchemy."""

from __future__ import annotations

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bw_tagger.db import Photo, PhotoTag, Tag
from bw_tagger.db_helpers import insert_ignore
from bw_tagger.errors import PersistenceFailed, SchemaError
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "persister"})

BW_TAG_NAME = "Black & White"
BW_TAG_DESCRIPTION = "Automatically detected black and white photos"


def find_or_create_tag(session: Session, name: str = BW_TAG_NAME, description: str = BW_TAG_DESCRIPTION) -> int:
    """Return the id of the tag called ``name``, creating it when missing."""

    try:
        existing = session.execute(select(Tag.id).where(Tag.name == name)).scalar_one_or_none()
        if existing is not None:
            LOGGER.info("tag_found", extra={"tag_name": name, "tag_id": existing})
            return existing

        tag = Tag(name=name, description=description)
        session.add(tag)
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise SchemaError(f"failed to find or create tag {name!r}: {exc}") from exc

    LOGGER.info("tag_created", extra={"tag_name": name, "tag_id": tag.id})
    return tag.id


class ResultPersister:
    """Write the ``_dz_bw`` flag and the tag association for classified photos.

    The flag is the authoritative outcome: once it is written the photo leaves
    the candidate set. Tagging runs afterwards and never undoes the flag.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def record_classification(self, photo_id: str, is_grayscale: bool) -> None:
        """Set the classification flag and bump ``updated_at`` (last write wins)."""

        stmt = (
            update(Photo)
            .where(Photo.id == photo_id)
            .values({Photo.bw_flag: is_grayscale, Photo.updated_at: func.now()})
            .execution_options(synchronize_session=False)
        )
        try:
            result = self._session.execute(stmt)
            if result.rowcount == 0:
                self._session.rollback()
                raise PersistenceFailed(f"photo {photo_id} not found")
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise PersistenceFailed(f"failed to update photo {photo_id}: {exc}") from exc

    def apply_tag(self, photo_id: str, tag_id: int) -> None:
        """Associate the tag with the photo; an existing association is left as is."""

        stmt = insert_ignore(self._session, PhotoTag.__table__, {"tag_id": tag_id, "photo_id": photo_id})
        try:
            self._session.execute(stmt)
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise PersistenceFailed(f"failed to apply tag {tag_id} to photo {photo_id}: {exc}") from exc


__all__ = ["BW_TAG_DESCRIPTION", "BW_TAG_NAME", "ResultPersister", "find_or_create_tag"]
