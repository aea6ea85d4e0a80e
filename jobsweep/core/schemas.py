"""Core data models for the ingestion sweep."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Source(str, Enum):
    """Job-listing providers the sweep knows how to query."""

    JSEARCH = "jsearch"
    ACTIVE_JOBS_DB = "active_jobs_db"
    ADZUNA = "adzuna"


class RawListing(BaseModel):
    """A listing as returned by one provider, before normalization.

    Every text field may be empty: providers are inconsistent about what they fill in.
    """

    model_config = ConfigDict(frozen=True)

    source: Source
    external_id: str | None = None
    title: str = ""
    company: str = ""
    location: str = ""
    description: str = ""
    url: str = ""
    salary: str | None = None
    posted_at: str | None = None
    skills: list[str] = Field(default_factory=list)


class JobListing(BaseModel):
    """A normalized, fingerprinted listing ready for storage.

    Frozen - renewal happens in the store, not by mutating the model.
    """

    model_config = ConfigDict(frozen=True)

    fingerprint: str
    content_hash: str
    source: Source
    external_id: str | None = None
    title: str
    company: str = ""
    location: str = ""
    description: str = ""
    url: str = ""
    salary: str | None = None
    posted_at: str | None = None
    keywords: list[str] = Field(default_factory=list)
    scraped_at: datetime
    expires_at: datetime


class UpsertOutcome(str, Enum):
    """Per-record result of a store write."""

    INSERTED = "inserted"
    RENEWED = "renewed"
    ERRORED = "errored"


class StoreTally(BaseModel):
    """Counts accumulated while writing one batch."""

    inserted: int = 0
    renewed: int = 0
    errors: int = 0

    def record(self, outcome: UpsertOutcome) -> None:
        if outcome is UpsertOutcome.INSERTED:
            self.inserted += 1
        elif outcome is UpsertOutcome.RENEWED:
            self.renewed += 1
        else:
            self.errors += 1


class IngestionResult(BaseModel):
    """Summary of one orchestrated run, returned to the trigger caller."""

    locations: int
    downloaded: int
    unique: int
    inserted: int
    renewed: int = 0
    errors: int = 0
    duplicates: int = 0
    malformed: int = 0
    duration_ms: int = 0
    partial: bool = False
    started_at: datetime = Field(default_factory=datetime.now)

    def summary(self) -> dict[str, Any]:
        """Serialize in the shape the cron trigger responds with."""
        return {
            "locations": self.locations,
            "downloaded": self.downloaded,
            "unique": self.unique,
            "inserted": self.inserted,
            "errors": self.errors,
            "duration": self.duration_ms,
            "renewed": self.renewed,
            "duplicates": self.duplicates,
            "malformed": self.malformed,
            "partial": self.partial,
        }


class RateLimitDecision(BaseModel):
    """Answer from the rate limiter for one attempt."""

    model_config = ConfigDict(frozen=True)

    limited: bool
    remaining: int
    reset_at: datetime
    limit: int
