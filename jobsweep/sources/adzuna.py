"""Adzuna Jobs API client.

Adzuna authenticates with an app id and key passed as query parameters and
paginates by path segment (``/search/1``); one sweep reads the first page.
"""

import os
from typing import Any

from jobsweep.core.schemas import RawListing, Source
from jobsweep.sources.base import SourceClient, as_text, require_list
from jobsweep.sources.jsearch import format_salary


class AdzunaClient(SourceClient):
    """Search client for the Adzuna API."""

    @property
    def source_id(self) -> Source:
        return Source.ADZUNA

    @property
    def default_base_url(self) -> str:
        return "https://api.adzuna.com/v1/api/jobs"

    def build_url(self, keywords: list[str], location: str) -> str:
        return f"{self.base_url.rstrip('/')}/{self._config.country}/search/1"

    def build_params(self, keywords: list[str], location: str) -> dict[str, Any]:
        app_id_env = self._config.app_id_env or "ADZUNA_APP_ID"
        return {
            "app_id": os.environ.get(app_id_env, ""),
            "app_key": self.api_key(),
            "what": " ".join(keywords),
            "where": location,
            "results_per_page": self._config.results_per_page,
            "content-type": "application/json",
        }

    def parse(self, payload: Any) -> list[RawListing]:
        listings: list[RawListing] = []
        for item in require_list(self.source_id, payload, "results"):
            company = item.get("company") or {}
            location = item.get("location") or {}
            listings.append(RawListing(
                source=self.source_id,
                external_id=as_text(item.get("id")) or None,
                title=as_text(item.get("title")),
                company=as_text(company.get("display_name")) if isinstance(company, dict) else "",
                location=as_text(location.get("display_name")) if isinstance(location, dict) else "",
                description=as_text(item.get("description")),
                url=as_text(item.get("redirect_url")),
                salary=format_salary(item.get("salary_min"), item.get("salary_max")),
                posted_at=as_text(item.get("created")) or None,
            ))
        return listings
