"""CLI entrypoint: classify every unprocessed Lychee photo as black & white or color.

One invocation is one pass. Startup problems (configuration, connectivity,
schema, tag bootstrap) exit with status 1; a completed pass exits 0 no matter
how many individual photos failed.
"""

from __future__ import annotations

from pathlib import Path

import httpx
import typer

from bw_tagger.acquire import ImageAcquirer
from bw_tagger.config import Settings, load_settings
from bw_tagger.context import RunContext
from bw_tagger.db import connect_store, open_session, prepare_schema
from bw_tagger.driver import BatchDriver
from bw_tagger.errors import BwTaggerError, ConfigError, ConnectivityError, SchemaError
from bw_tagger.persistence import ResultPersister, find_or_create_tag
from bw_tagger.selector import CandidateSelector
from utils.logging import get_logger

LOGGER = get_logger(__name__)

app = typer.Typer(add_completion=False, help="Tag black & white photos in a Lychee library.")


def _apply_cli_overrides(settings: Settings, page_size: int | None, page_delay: float | None) -> Settings:
    """Apply CLI overrides for paging to the settings."""

    if page_size is not None and page_size > 0:
        settings.page_size = page_size
    if page_delay is not None and page_delay >= 0:
        settings.page_delay = page_delay
    return settings


def _fail(step: str, exc: BwTaggerError) -> typer.Exit:
    LOGGER.error("startup_failed", extra={"step": step, "error": str(exc)})
    typer.echo(f"Failed to {step}: {exc}", err=True)
    return typer.Exit(code=1)


@app.command()
def main(
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the YAML configuration file (default: $BW_TAGGER_CONFIG or ./config.yml).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log progress and outcome for every photo.",
    ),
    page_size: int | None = typer.Option(
        None,
        "--page-size",
        help="Override the number of photos fetched per page.",
    ),
    page_delay: float | None = typer.Option(
        None,
        "--page-delay",
        help="Override the pause between pages, in seconds.",
    ),
) -> None:
    """Run one classification pass over the photo library."""

    try:
        settings = load_settings(config)
    except ConfigError as exc:
        raise _fail("load configuration", exc) from exc
    settings = _apply_cli_overrides(settings, page_size=page_size, page_delay=page_delay)

    try:
        engine = connect_store(settings.database.url())
    except ConnectivityError as exc:
        raise _fail("connect to database", exc) from exc

    try:
        prepare_schema(engine)
    except SchemaError as exc:
        raise _fail("prepare database", exc) from exc

    with open_session(engine) as session, httpx.Client(timeout=settings.http_timeout, follow_redirects=True) as client:
        try:
            bw_tag_id = find_or_create_tag(session)
        except SchemaError as exc:
            raise _fail("find/create Black & White tag", exc) from exc

        ctx = RunContext.from_settings(settings, bw_tag_id, verbose=verbose)
        driver = BatchDriver(
            selector=CandidateSelector(session),
            acquirer=ImageAcquirer(client, settings.image_base_url, verbose=verbose),
            persister=ResultPersister(session),
            ctx=ctx,
        )
        try:
            driver.run()
        except ConnectivityError as exc:
            raise _fail("process photos", exc) from exc

    LOGGER.info("processing_completed", extra={})


def run() -> None:
    """Console-script entrypoint."""

    app()


if __name__ == "__main__":
    run()


__all__ = ["app", "main", "run"]
