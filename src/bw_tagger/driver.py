"""Batch driver: page through candidates and classify them one at a time."""

from __future__ import annotations

import enum
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from PIL import Image

from bw_tagger.acquire import ImageAcquirer
from bw_tagger.classifier import is_grayscale
from bw_tagger.context import RunContext
from bw_tagger.errors import AcquisitionFailed, ClassificationFailed, PersistenceFailed
from bw_tagger.persistence import ResultPersister
from bw_tagger.selector import Candidate, CandidateSelector
from utils.logging import get_logger


class DriverState(enum.Enum):
    PAGING = "paging"
    DISPATCHING = "dispatching"
    ACQUIRING = "acquiring"
    CLASSIFYING = "classifying"
    PERSISTING = "persisting"
    TAGGING = "tagging"
    DONE = "done"


_PHOTO_STATES = frozenset(
    {
        DriverState.ACQUIRING,
        DriverState.CLASSIFYING,
        DriverState.PERSISTING,
        DriverState.TAGGING,
    }
)


@dataclass
class PassStats:
    """Counters for one pass over the library."""

    pages: int = 0
    processed: int = 0
    grayscale: int = 0
    color: int = 0
    skipped: int = 0
    persist_failed: int = 0
    tag_failed: int = 0


@dataclass
class _WorkItem:
    photo: Candidate
    image: Image.Image | None = None
    is_grayscale: bool | None = None


class BatchDriver:
    """Run one pass: ``PAGING -> DISPATCHING -> (ACQUIRING -> CLASSIFYING ->
    PERSISTING -> TAGGING)* -> PAGING`` until a page comes back empty.

    Each state has a handler that returns the next state. Per-photo failures
    are logged and the photo is skipped; they never end the pass.
    """

    def __init__(
        self,
        selector: CandidateSelector,
        acquirer: ImageAcquirer,
        persister: ResultPersister,
        ctx: RunContext,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._selector = selector
        self._acquirer = acquirer
        self._persister = persister
        self._ctx = ctx
        self._sleep = sleep
        self._logger = get_logger(__name__, extra={"component": "driver"})
        self._handlers: dict[DriverState, Callable[[], DriverState]] = {
            DriverState.PAGING: self._page,
            DriverState.DISPATCHING: self._dispatch,
            DriverState.ACQUIRING: self._acquire,
            DriverState.CLASSIFYING: self._classify,
            DriverState.PERSISTING: self._persist,
            DriverState.TAGGING: self._tag,
        }
        self._queue: deque[Candidate] = deque()
        self._item: _WorkItem | None = None
        self._page_stats = PassStats()
        self.state = DriverState.PAGING
        self.stats = PassStats()

    def run(self) -> PassStats:
        """Drive the state machine to ``DONE`` and return the pass counters."""

        self.state = DriverState.PAGING
        while self.state is not DriverState.DONE:
            self.state = self._step()

        self._logger.info(
            "pass_complete",
            extra={
                "pages": self.stats.pages,
                "processed": self.stats.processed,
                "grayscale": self.stats.grayscale,
                "color": self.stats.color,
                "skipped": self.stats.skipped,
                "persist_failed": self.stats.persist_failed,
                "tag_failed": self.stats.tag_failed,
            },
        )
        return self.stats

    def _step(self) -> DriverState:
        """Run the current state's handler and return the next state.

        An unexpected error while a photo is in flight skips that photo. Errors
        outside the per-photo states (paging, dispatching) end the pass.
        """

        handler = self._handlers[self.state]
        if self.state not in _PHOTO_STATES:
            return handler()
        try:
            return handler()
        except Exception as exc:
            item = self._current()
            if item.image is not None:
                item.image.close()
                item.image = None
            return self._skip(item, "photo_unexpected_error", exc, exc_info=True)

    def _page(self) -> DriverState:
        page = self._selector.fetch_page(self._ctx)
        if not page:
            self._logger.info("no_more_photos", extra={})
            return DriverState.DONE

        self.stats.pages += 1
        self._page_stats = PassStats(pages=1)
        self._queue.extend(page)
        self._logger.info("page_start", extra={"page": self.stats.pages, "photos": len(page)})
        return DriverState.DISPATCHING

    def _dispatch(self) -> DriverState:
        if not self._queue:
            self._item = None
            self._logger.info(
                "page_complete",
                extra={
                    "page": self.stats.pages,
                    "grayscale": self._page_stats.grayscale,
                    "color": self._page_stats.color,
                    "failed": self._page_stats.skipped + self._page_stats.persist_failed,
                },
            )
            # Throttle load on the image server between pages.
            self._sleep(self._ctx.page_delay)
            return DriverState.PAGING

        photo = self._queue.popleft()
        self._item = _WorkItem(photo=photo)
        if self._ctx.verbose:
            self._logger.info("photo_processing", extra={"photo_id": photo.id, "media_kind": photo.media_kind})
        return DriverState.ACQUIRING

    def _acquire(self) -> DriverState:
        item = self._current()
        try:
            item.image = self._acquirer.acquire(item.photo)
        except AcquisitionFailed as exc:
            return self._skip(item, "photo_acquisition_failed", exc)
        return DriverState.CLASSIFYING

    def _classify(self) -> DriverState:
        item = self._current()
        if item.image is None:
            raise RuntimeError(f"photo {item.photo.id} reached classification without an image")
        try:
            item.is_grayscale = is_grayscale(item.image, self._ctx.tolerance)
        except ClassificationFailed as exc:
            return self._skip(item, "photo_classification_failed", exc)
        finally:
            item.image.close()
            item.image = None
        return DriverState.PERSISTING

    def _persist(self) -> DriverState:
        item = self._current()
        if item.is_grayscale is None:
            raise RuntimeError(f"photo {item.photo.id} reached persistence without a classification")
        try:
            self._persister.record_classification(item.photo.id, item.is_grayscale)
        except PersistenceFailed as exc:
            self._ctx.skipped_ids.add(item.photo.id)
            self.stats.persist_failed += 1
            self._page_stats.persist_failed += 1
            self._logger.error("photo_update_failed", extra={"photo_id": item.photo.id, "error": str(exc)})
            return DriverState.DISPATCHING

        self.stats.processed += 1
        if item.is_grayscale:
            self.stats.grayscale += 1
            self._page_stats.grayscale += 1
            return DriverState.TAGGING

        self.stats.color += 1
        self._page_stats.color += 1
        if self._ctx.verbose:
            self._logger.info("photo_not_grayscale", extra={"photo_id": item.photo.id})
        return DriverState.DISPATCHING

    def _tag(self) -> DriverState:
        item = self._current()
        if self._ctx.verbose:
            self._logger.info("photo_grayscale_applying_tag", extra={"photo_id": item.photo.id})
        try:
            self._persister.apply_tag(item.photo.id, self._ctx.bw_tag_id)
        except PersistenceFailed as exc:
            self.stats.tag_failed += 1
            self._logger.error(
                "photo_tag_failed",
                extra={"photo_id": item.photo.id, "tag_id": self._ctx.bw_tag_id, "error": str(exc)},
            )
        return DriverState.DISPATCHING

    def _current(self) -> _WorkItem:
        if self._item is None:
            raise RuntimeError(f"no photo is being processed in state {self.state.value}")
        return self._item

    def _skip(self, item: _WorkItem, event: str, exc: Exception, *, exc_info: bool = False) -> DriverState:
        """Leave the photo unflagged and keep it out of the rest of this pass."""

        self._ctx.skipped_ids.add(item.photo.id)
        self.stats.skipped += 1
        self._page_stats.skipped += 1
        self._logger.warning(
            event,
            extra={"photo_id": item.photo.id, "state": self.state.value, "error": str(exc)},
            exc_info=exc_info,
        )
        return DriverState.DISPATCHING


__all__ = ["BatchDriver", "DriverState", "PassStats"]
