"""Listing store: per-record upserts that never abort the batch."""

import logging
import sqlite3

from jobsweep.core.db import upsert_listing
from jobsweep.core.errors import StorageFault
from jobsweep.core.schemas import JobListing, StoreTally, UpsertOutcome

logger = logging.getLogger(__name__)


class ListingStore:
    """Writes deduplicated listings and tallies inserted/renewed/errored.

    Usage::

        store = ListingStore(conn)
        tally = store.upsert_all(result.listings)
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    def upsert(self, listing: JobListing) -> UpsertOutcome:
        """Store one listing, reporting a storage fault as ERRORED."""
        try:
            return upsert_listing(self._conn, listing)
        except StorageFault as e:
            logger.warning("Storage fault: %s", e)
            return UpsertOutcome.ERRORED

    def upsert_all(self, listings: list[JobListing]) -> StoreTally:
        """Store every listing independently and return the tally."""
        tally = StoreTally()
        for listing in listings:
            tally.record(self.upsert(listing))
        logger.info(
            "Store: %d inserted, %d renewed, %d errors",
            tally.inserted, tally.renewed, tally.errors,
        )
        return tally
