"""Per-run state threaded through every pipeline component."""

from __future__ import annotations

from dataclasses import dataclass, field

from bw_tagger.config import DEFAULT_GRAYSCALE_TOLERANCE, DEFAULT_PAGE_DELAY, DEFAULT_PAGE_SIZE, Settings


@dataclass
class RunContext:
    """State resolved once at startup and shared by one pass.

    ``bw_tag_id`` is the id of the singleton Black & White tag. ``skipped_ids``
    collects photos that failed before their flag was written; the selector
    leaves them out of later pages of the same pass.
    """

    bw_tag_id: int
    tolerance: float = DEFAULT_GRAYSCALE_TOLERANCE
    page_size: int = DEFAULT_PAGE_SIZE
    page_delay: float = DEFAULT_PAGE_DELAY
    verbose: bool = False
    skipped_ids: set[str] = field(default_factory=set)

    @classmethod
    def from_settings(cls, settings: Settings, bw_tag_id: int, *, verbose: bool = False) -> "RunContext":
        return cls(
            bw_tag_id=bw_tag_id,
            tolerance=settings.grayscale_tolerance,
            page_size=settings.page_size,
            page_delay=settings.page_delay,
            verbose=verbose,
        )


__all__ = ["RunContext"]
