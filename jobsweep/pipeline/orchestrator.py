"""Orchestrator: fans out source searches, then dedups and stores the batch.

Data flow:
  1. One task per (location, source) pair, bounded by a semaphore
  2. Run deadline: pairs still pending are cancelled and excluded
  3. Raw listings concatenated in pair order (location, then source priority)
  4. Deduplicator → unique listings
  5. ListingStore upsert → tally
  6. Run recorded in ingestion history
"""

import asyncio
import logging
import sqlite3
import time
from datetime import datetime

from jobsweep.core.config import Settings
from jobsweep.core.db import insert_ingestion_run
from jobsweep.core.errors import SourceError
from jobsweep.core.schemas import IngestionResult, RawListing
from jobsweep.pipeline.normalizer import Deduplicator
from jobsweep.pipeline.store import ListingStore
from jobsweep.sources.base import SourceClient

logger = logging.getLogger(__name__)


class PairOutcome:
    """What one (location, source) search produced."""

    def __init__(
        self,
        location: str,
        source: str,
        listings: list[RawListing] | None = None,
        error: str | None = None,
    ) -> None:
        self.location = location
        self.source = source
        self.listings = listings or []
        self.error = error

    @property
    def failed(self) -> bool:
        return self.error is not None


async def _search_pair(
    client: SourceClient,
    keywords: list[str],
    location: str,
    semaphore: asyncio.Semaphore,
) -> list[RawListing]:
    async with semaphore:
        return await client.search(keywords, location)


async def fetch_all(
    clients: list[SourceClient],
    locations: list[str],
    keywords: list[str],
    *,
    max_concurrency: int = 4,
    deadline_seconds: float = 300.0,
) -> tuple[list[PairOutcome], bool]:
    """Search every (location, source) pair concurrently.

    Returns the outcomes in pair order and whether the deadline cut the run short.
    Source failures are captured per pair; anything else propagates.
    """
    semaphore = asyncio.Semaphore(max_concurrency)
    pairs = [(location, client) for location in locations for client in clients]
    tasks = [
        asyncio.create_task(_search_pair(client, keywords, location, semaphore))
        for location, client in pairs
    ]
    logger.info("Dispatched %d searches (%d locations x %d sources)",
                len(tasks), len(locations), len(clients))
    if not tasks:
        return [], False

    _, pending = await asyncio.wait(tasks, timeout=deadline_seconds)
    # Cancelled pairs are not awaited.
    for task in pending:
        task.cancel()
        task.add_done_callback(_consume_outcome)
    if pending:
        logger.warning("Run deadline of %.0fs exceeded - abandoning %d searches",
                       deadline_seconds, len(pending))

    outcomes: list[PairOutcome] = []
    for (location, client), task in zip(pairs, tasks):
        source = client.source_id.value
        if task in pending:
            outcomes.append(PairOutcome(location, source, error="deadline exceeded"))
            continue
        try:
            listings = task.result()
        except SourceError as e:
            logger.warning("Source failed for '%s': %s", location, e)
            outcomes.append(PairOutcome(location, source, error=str(e)))
            continue
        outcomes.append(PairOutcome(location, source, listings=listings))

    return outcomes, bool(pending)


def _consume_outcome(task: asyncio.Task) -> None:
    if not task.cancelled():
        task.exception()


async def run_ingestion(
    settings: Settings,
    clients: list[SourceClient],
    store: ListingStore,
    *,
    locations: list[str] | None = None,
) -> IngestionResult:
    """Run one full sweep and return its summary.

    ``locations`` overrides the configured list for this run only.
    """
    started_at = datetime.now()
    started = time.perf_counter()
    config = settings.ingestion
    target_locations = [loc.strip() for loc in (locations or config.locations) if loc.strip()]

    outcomes, partial = await fetch_all(
        clients,
        target_locations,
        config.keywords,
        max_concurrency=config.max_concurrency,
        deadline_seconds=config.run_deadline_seconds,
    )

    raw: list[RawListing] = []
    failed_pairs = 0
    for outcome in outcomes:
        if outcome.failed:
            failed_pairs += 1
        else:
            raw.extend(outcome.listings)
    logger.info("Downloaded %d raw listings (%d failed searches)", len(raw), failed_pairs)

    deduped = Deduplicator(config.ttl_days)(raw)
    logger.info("After dedup: %d unique (%d duplicates, %d malformed)",
                len(deduped.listings), deduped.duplicates, deduped.malformed)

    tally = store.upsert_all(deduped.listings)

    result = IngestionResult(
        locations=len(target_locations),
        downloaded=len(raw),
        unique=len(deduped.listings),
        inserted=tally.inserted,
        renewed=tally.renewed,
        errors=failed_pairs + tally.errors,
        duplicates=deduped.duplicates,
        malformed=deduped.malformed,
        duration_ms=int((time.perf_counter() - started) * 1000),
        partial=partial,
        started_at=started_at,
    )
    try:
        insert_ingestion_run(store.conn, result, finished_at=datetime.now())
    except sqlite3.Error as e:
        logger.warning("Could not record ingestion run: %s", e)

    logger.info(
        "Ingestion complete: %d downloaded, %d unique, %d inserted, %d renewed, %d errors%s",
        result.downloaded, result.unique, result.inserted, result.renewed, result.errors,
        " (partial)" if partial else "",
    )
    return result
