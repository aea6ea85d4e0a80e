"""Normalize raw provider listings and drop duplicates within one run.

Fingerprint rule:
  1. ``<source>:<external_id>`` when the provider supplies a stable id
  2. ``content:<sha1>`` of normalized title|company|location otherwise

Within a batch a record is a duplicate when:
  - its id key was already seen, or
  - it has no id and its content hash was already seen, or
  - its content hash was first seen from a different source.

Two postings from one provider with distinct ids are never merged; the same
job reported by two providers collapses to the first one in iteration order.
"""

import hashlib
import logging
from datetime import datetime, timedelta

from jobsweep.core.schemas import JobListing, RawListing, Source
from jobsweep.pipeline.keywords import extract_keywords

logger = logging.getLogger(__name__)

DEFAULT_TTL_DAYS = 14


class DedupResult:
    """Unique listings plus the reasons the rest were dropped."""

    def __init__(self, listings: list[JobListing], duplicates: int, malformed: int) -> None:
        self.listings = listings
        self.duplicates = duplicates
        self.malformed = malformed


def collapse_whitespace(text: str | None) -> str:
    return " ".join((text or "").split())


def comparison_key(text: str | None) -> str:
    """Lower-cased, whitespace-collapsed form used only for comparisons."""
    return collapse_whitespace(text).lower()


def content_hash(title: str, company: str, location: str) -> str:
    """Fallback fingerprint over normalized (title, company, location)."""
    key = "|".join(comparison_key(part) for part in (title, company, location))
    return hashlib.sha1(key.encode("utf-8")).hexdigest()


def id_key(raw: RawListing) -> str | None:
    external_id = collapse_whitespace(raw.external_id)
    if not external_id:
        return None
    return f"{raw.source.value}:{external_id}"


def is_malformed(raw: RawListing) -> bool:
    """A listing without title and company cannot be identified or displayed."""
    return not collapse_whitespace(raw.title) and not collapse_whitespace(raw.company)


class Deduplicator:
    """First-seen-wins de-duplication over one run's concatenated batch.

    Stateful: keys seen in earlier calls on the same instance also count.
    """

    def __init__(self, ttl_days: int = DEFAULT_TTL_DAYS) -> None:
        self._ttl = timedelta(days=ttl_days)
        self._seen_ids: set[str] = set()
        self._hash_sources: dict[str, Source] = {}

    def __call__(self, raw_listings: list[RawListing], now: datetime | None = None) -> DedupResult:
        now = now or datetime.now()
        expires_at = now + self._ttl
        unique: list[JobListing] = []
        duplicates = 0
        malformed = 0

        for raw in raw_listings:
            if is_malformed(raw):
                malformed += 1
                logger.debug("Dropping unidentifiable %s listing (url=%r)", raw.source.value, raw.url)
                continue

            key = id_key(raw)
            digest = content_hash(raw.title, raw.company, raw.location)
            if self._is_duplicate(raw, key, digest):
                duplicates += 1
                continue
            if key is not None:
                self._seen_ids.add(key)
            self._hash_sources.setdefault(digest, raw.source)

            unique.append(_normalize(raw, key, digest, now, expires_at))

        if duplicates or malformed:
            logger.debug("Deduplicator: removed %d duplicates, %d malformed", duplicates, malformed)
        return DedupResult(unique, duplicates, malformed)

    def _is_duplicate(self, raw: RawListing, key: str | None, digest: str) -> bool:
        if key is not None and key in self._seen_ids:
            return True
        first_source = self._hash_sources.get(digest)
        if first_source is None:
            return False
        return key is None or first_source is not raw.source


def deduplicate(
    raw_listings: list[RawListing],
    *,
    ttl_days: int = DEFAULT_TTL_DAYS,
    now: datetime | None = None,
) -> DedupResult:
    """Normalize and de-duplicate a single batch with a fresh Deduplicator."""
    return Deduplicator(ttl_days)(raw_listings, now=now)


def _normalize(
    raw: RawListing,
    key: str | None,
    digest: str,
    now: datetime,
    expires_at: datetime,
) -> JobListing:
    title = collapse_whitespace(raw.title)
    company = collapse_whitespace(raw.company)
    location = collapse_whitespace(raw.location)
    description = (raw.description or "").strip()
    salary = collapse_whitespace(raw.salary) or None

    return JobListing(
        fingerprint=key or f"content:{digest}",
        content_hash=digest,
        source=raw.source,
        external_id=collapse_whitespace(raw.external_id) or None,
        title=title,
        company=company,
        location=location,
        description=description,
        url=(raw.url or "").strip(),
        salary=salary,
        posted_at=collapse_whitespace(raw.posted_at) or None,
        keywords=extract_keywords(title, description, company, location, raw.skills),
        scraped_at=now,
        expires_at=expires_at,
    )
