"""Tests for core schemas: RawListing, JobListing, StoreTally, IngestionResult."""

from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError

from jobsweep.core.schemas import (
    IngestionResult,
    JobListing,
    RawListing,
    Source,
    StoreTally,
    UpsertOutcome,
)


def _listing(**overrides: object) -> JobListing:
    now = datetime(2026, 1, 1, 12, 0)
    defaults: dict[str, object] = {
        "fingerprint": "jsearch:abc",
        "content_hash": "deadbeef",
        "source": Source.JSEARCH,
        "external_id": "abc",
        "title": "Senior Python Engineer",
        "company": "Acme Corp",
        "location": "Edmonton, AB",
        "url": "https://example.com/abc",
        "scraped_at": now,
        "expires_at": now + timedelta(days=14),
    }
    defaults.update(overrides)
    return JobListing(**defaults)  # type: ignore[arg-type]


class TestRawListing:
    def test_only_source_required(self) -> None:
        r = RawListing(source=Source.ADZUNA)
        assert r.title == ""
        assert r.external_id is None
        assert r.salary is None
        assert r.skills == []

    def test_source_from_string(self) -> None:
        r = RawListing(source="active_jobs_db")
        assert r.source is Source.ACTIVE_JOBS_DB

    def test_unknown_source_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RawListing(source="monster")

    def test_frozen(self) -> None:
        r = RawListing(source=Source.JSEARCH, title="Dev")
        with pytest.raises(ValidationError):
            r.title = "Other"  # type: ignore[misc]


class TestJobListing:
    def test_defaults(self) -> None:
        listing = _listing()
        assert listing.salary is None
        assert listing.keywords == []

    def test_frozen(self) -> None:
        listing = _listing()
        with pytest.raises(ValidationError):
            listing.expires_at = datetime.now()  # type: ignore[misc]

    def test_equality(self) -> None:
        assert _listing() == _listing()
        assert _listing(fingerprint="jsearch:1") != _listing(fingerprint="jsearch:2")


class TestStoreTally:
    def test_records_each_outcome(self) -> None:
        tally = StoreTally()
        for outcome in (
            UpsertOutcome.INSERTED,
            UpsertOutcome.INSERTED,
            UpsertOutcome.RENEWED,
            UpsertOutcome.ERRORED,
        ):
            tally.record(outcome)
        assert (tally.inserted, tally.renewed, tally.errors) == (2, 1, 1)


class TestIngestionResult:
    def test_summary_shape(self) -> None:
        result = IngestionResult(
            locations=2, downloaded=5, unique=4, inserted=3, renewed=1,
            errors=1, duplicates=1, duration_ms=1234,
        )
        summary = result.summary()
        assert summary["locations"] == 2
        assert summary["downloaded"] == 5
        assert summary["unique"] == 4
        assert summary["inserted"] == 3
        assert summary["errors"] == 1
        assert summary["duration"] == 1234
        assert summary["renewed"] == 1
        assert summary["partial"] is False

    def test_defaults(self) -> None:
        result = IngestionResult(locations=1, downloaded=0, unique=0, inserted=0)
        assert result.errors == 0
        assert result.partial is False
        assert isinstance(result.started_at, datetime)
