"""Active Jobs DB client via RapidAPI."""

from typing import Any
from urllib.parse import urlparse

from jobsweep.core.schemas import RawListing, Source
from jobsweep.sources.base import SourceClient, as_text, first_text, require_list


class ActiveJobsDBClient(SourceClient):
    """Search client for the Active Jobs DB API."""

    @property
    def source_id(self) -> Source:
        return Source.ACTIVE_JOBS_DB

    @property
    def default_base_url(self) -> str:
        return "https://active-jobs-db.p.rapidapi.com/v1/jobs/search"

    def build_headers(self) -> dict[str, str]:
        headers = super().build_headers()
        headers["X-RapidAPI-Key"] = self.api_key()
        headers["X-RapidAPI-Host"] = urlparse(self.base_url).hostname or ""
        return headers

    def build_params(self, keywords: list[str], location: str) -> dict[str, Any]:
        return {
            "query": " ".join(keywords),
            "location": location,
            "limit": self._config.results_per_page,
        }

    def parse(self, payload: Any) -> list[RawListing]:
        listings: list[RawListing] = []
        for item in require_list(self.source_id, payload, "jobs", "data"):
            skills = item.get("skills") or []
            listings.append(RawListing(
                source=self.source_id,
                external_id=first_text(item, "id", "job_id") or None,
                title=first_text(item, "title", "job_title"),
                company=first_text(item, "company", "company_name"),
                location=first_text(item, "location", "job_location"),
                description=first_text(item, "description", "job_description"),
                url=first_text(item, "url", "job_url", "apply_url"),
                salary=first_text(item, "salary", "salary_range") or None,
                posted_at=first_text(item, "posted_date", "date_posted", "publication_date") or None,
                skills=[as_text(s) for s in skills if as_text(s)] if isinstance(skills, list) else [],
            ))
        return listings
