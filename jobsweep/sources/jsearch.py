"""JSearch (Google for Jobs aggregate) client via RapidAPI."""

from typing import Any
from urllib.parse import urlparse

from jobsweep.core.schemas import RawListing, Source
from jobsweep.sources.base import SourceClient, as_text, first_text, require_list


def format_salary(low: Any, high: Any) -> str | None:
    """Render a salary range from optional numeric bounds."""
    parts = [f"{float(v):,.0f}" for v in (low, high) if isinstance(v, (int, float)) and v > 0]
    if not parts:
        return None
    if len(parts) == 2 and parts[0] != parts[1]:
        return f"{parts[0]} - {parts[1]}"
    return parts[0]


class JSearchClient(SourceClient):
    """Search client for the JSearch API."""

    @property
    def source_id(self) -> Source:
        return Source.JSEARCH

    @property
    def default_base_url(self) -> str:
        return "https://jsearch.p.rapidapi.com/search"

    def build_headers(self) -> dict[str, str]:
        headers = super().build_headers()
        headers["X-RapidAPI-Key"] = self.api_key()
        headers["X-RapidAPI-Host"] = urlparse(self.base_url).hostname or ""
        return headers

    def build_params(self, keywords: list[str], location: str) -> dict[str, Any]:
        what = " ".join(keywords) or "jobs"
        return {
            "query": f"{what} in {location}",
            "page": 1,
            "num_pages": 1,
        }

    def parse(self, payload: Any) -> list[RawListing]:
        listings: list[RawListing] = []
        for item in require_list(self.source_id, payload, "data"):
            city_state = [as_text(item.get("job_city")), as_text(item.get("job_state"))]
            salary = as_text(item.get("job_salary")) or format_salary(
                item.get("job_min_salary"), item.get("job_max_salary"),
            )
            skills = item.get("job_required_skills") or []
            listings.append(RawListing(
                source=self.source_id,
                external_id=as_text(item.get("job_id")) or None,
                title=as_text(item.get("job_title")),
                company=as_text(item.get("employer_name")),
                location=", ".join(p for p in city_state if p),
                description=as_text(item.get("job_description")),
                url=first_text(item, "job_apply_link", "job_google_link"),
                salary=salary or None,
                posted_at=as_text(item.get("job_posted_at_datetime_utc")) or None,
                skills=[as_text(s) for s in skills if as_text(s)] if isinstance(skills, list) else [],
            ))
        return listings
