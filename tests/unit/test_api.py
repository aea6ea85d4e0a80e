"""Tests for the HTTP API: cron trigger auth, listing reads, rate-limited research."""

from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from jobsweep.api.app import RATE_LIMIT_MESSAGE, create_app, is_authorized
from jobsweep.core.config import RateLimitRule, Settings
from jobsweep.core.errors import SourceUnavailable
from jobsweep.core.schemas import RawListing, Source
from jobsweep.pipeline.rate_limiter import RateLimiter
from jobsweep.research.base import ResearchProvider
from jobsweep.sources.base import SourceClient

SECRET = "s3cret"
AUTH = {"Authorization": f"Bearer {SECRET}"}
USER = {"x-user-id": "user-1"}

RESEARCH_JSON = '{"company": "Acme Corp", "summary": "Logistics software.", "sources": []}'


class StaticSource(SourceClient):
    def __init__(self, source: Source, listings: list[RawListing] | Exception) -> None:
        super().__init__()
        self._source = source
        self._listings = listings

    @property
    def source_id(self) -> Source:
        return self._source

    @property
    def default_base_url(self) -> str:
        return "https://fake.example/search"

    def build_params(self, keywords: list[str], location: str) -> dict[str, Any]:
        return {}

    def parse(self, payload: Any) -> list[RawListing]:
        return []

    async def search(self, keywords: list[str], location: str) -> list[RawListing]:
        if isinstance(self._listings, Exception):
            raise self._listings
        return [
            RawListing(
                source=self._source,
                external_id=f"{raw.external_id}-{location}",
                title=raw.title,
                company=raw.company,
                location=location,
            )
            for raw in self._listings
        ]


class CountingProvider(ResearchProvider):
    def __init__(self, response: str = RESEARCH_JSON) -> None:
        self.response = response
        self.calls = 0

    @property
    def provider_id(self) -> str:
        return "counting"

    @property
    def default_model(self) -> str:
        return "test"

    @property
    def env_var(self) -> None:
        return None

    def complete(self, prompt: str, model: str | None = None, *, system: str | None = None) -> str:
        self.calls += 1
        return self.response


class UnreachableProvider(CountingProvider):
    def complete(self, prompt: str, model: str | None = None, *, system: str | None = None) -> str:
        self.calls += 1
        raise ConnectionError("network down")


def _settings(tmp_path: Path) -> Settings:
    return Settings(
        database={"path": str(tmp_path / "api.db")},
        ingestion={"locations": ["Edmonton, AB"], "sources": ["jsearch"]},
        rate_limit={"routes": {"company-research": {"window_seconds": 60, "max_requests": 2}}},
    )


def _clients() -> list[SourceClient]:
    return [
        StaticSource(Source.JSEARCH, [
            RawListing(source=Source.JSEARCH, external_id="1", title="Python Developer",
                       company="Acme"),
            RawListing(source=Source.JSEARCH, external_id="2", title="Data Analyst",
                       company="Globex"),
        ]),
    ]


@pytest.fixture
def provider() -> CountingProvider:
    return CountingProvider()


@pytest.fixture
def client(tmp_path: Path, provider: CountingProvider) -> Any:
    app = create_app(
        _settings(tmp_path),
        clients=_clients(),
        research_provider=provider,
        cron_secret=SECRET,
    )
    with TestClient(app) as c:
        yield c


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------


class TestIsAuthorized:
    def test_matching_bearer(self) -> None:
        assert is_authorized(f"Bearer {SECRET}", SECRET) is True
        assert is_authorized(f"bearer {SECRET}", SECRET) is True

    def test_wrong_token(self) -> None:
        assert is_authorized("Bearer nope", SECRET) is False

    def test_wrong_scheme(self) -> None:
        assert is_authorized(f"Basic {SECRET}", SECRET) is False

    def test_missing_header(self) -> None:
        assert is_authorized(None, SECRET) is False

    def test_unset_secret_rejects_everything(self) -> None:
        assert is_authorized("Bearer ", "") is False
        assert is_authorized("Bearer anything", None) is False


# ---------------------------------------------------------------------------
# Cron trigger
# ---------------------------------------------------------------------------


class TestBulkDownload:
    def test_missing_secret_is_401(self, client: TestClient) -> None:
        resp = client.get("/api/cron/bulk-download-jobs")
        assert resp.status_code == 401
        assert resp.json() == {"success": False, "error": "Unauthorized"}

    def test_bad_secret_is_401(self, client: TestClient) -> None:
        resp = client.get("/api/cron/bulk-download-jobs", headers={"Authorization": "Bearer x"})
        assert resp.status_code == 401

    def test_get_runs_ingestion(self, client: TestClient) -> None:
        resp = client.get("/api/cron/bulk-download-jobs", headers=AUTH)
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        results = body["results"]
        assert results["locations"] == 1
        assert results["downloaded"] == 2
        assert results["unique"] == 2
        assert results["inserted"] == 2
        assert results["errors"] == 0
        assert "duration" in results

    def test_get_with_location_override(self, client: TestClient) -> None:
        resp = client.get(
            "/api/cron/bulk-download-jobs",
            params=[("location", "Calgary, AB"), ("location", "Red Deer, AB")],
            headers=AUTH,
        )
        assert resp.json()["results"]["locations"] == 2
        assert resp.json()["results"]["inserted"] == 4

    def test_post_with_body(self, client: TestClient) -> None:
        resp = client.post(
            "/api/cron/bulk-download-jobs",
            json={"locations": ["Calgary, AB"]},
            headers=AUTH,
        )
        assert resp.status_code == 200
        assert resp.json()["results"]["locations"] == 1

    def test_post_without_body(self, client: TestClient) -> None:
        resp = client.post("/api/cron/bulk-download-jobs", headers=AUTH)
        assert resp.status_code == 200
        assert resp.json()["results"]["locations"] == 1

    def test_unauthenticated_bad_body_is_401(self, client: TestClient) -> None:
        resp = client.post("/api/cron/bulk-download-jobs", json={"locations": "x"})
        assert resp.status_code == 401
        assert resp.json() == {"success": False, "error": "Unauthorized"}

    def test_invalid_body_is_422(self, client: TestClient) -> None:
        resp = client.post(
            "/api/cron/bulk-download-jobs", json={"locations": "x"}, headers=AUTH,
        )
        assert resp.status_code == 422
        assert resp.json() == {"success": False, "error": "Invalid request body"}

    def test_malformed_json_is_422(self, client: TestClient) -> None:
        resp = client.post(
            "/api/cron/bulk-download-jobs",
            content=b"{not json",
            headers={**AUTH, "Content-Type": "application/json"},
        )
        assert resp.status_code == 422

    def test_second_run_renews(self, client: TestClient) -> None:
        client.get("/api/cron/bulk-download-jobs", headers=AUTH)
        results = client.get("/api/cron/bulk-download-jobs", headers=AUTH).json()["results"]
        assert results["inserted"] == 0
        assert results["renewed"] == 2

    def test_source_failure_counted_not_fatal(self, tmp_path: Path) -> None:
        app = create_app(
            _settings(tmp_path),
            clients=[StaticSource(Source.JSEARCH, SourceUnavailable("jsearch", "HTTP 503"))],
            cron_secret=SECRET,
        )
        with TestClient(app) as c:
            resp = c.get("/api/cron/bulk-download-jobs", headers=AUTH)
        assert resp.status_code == 200
        assert resp.json()["results"]["errors"] == 1

    def test_unexpected_failure_is_500(self, tmp_path: Path) -> None:
        app = create_app(
            _settings(tmp_path),
            clients=[StaticSource(Source.JSEARCH, RuntimeError("database on fire"))],
            cron_secret=SECRET,
        )
        with TestClient(app) as c:
            resp = c.get("/api/cron/bulk-download-jobs", headers=AUTH)
        assert resp.status_code == 500
        assert resp.json() == {"success": False, "error": "database on fire"}

    def test_unset_secret_rejects_trigger(self, tmp_path: Path) -> None:
        app = create_app(_settings(tmp_path), clients=_clients(), cron_secret="")
        with TestClient(app) as c:
            resp = c.get("/api/cron/bulk-download-jobs", headers={"Authorization": "Bearer "})
        assert resp.status_code == 401


# ---------------------------------------------------------------------------
# Run history
# ---------------------------------------------------------------------------


class TestRecentRuns:
    def test_requires_secret(self, client: TestClient) -> None:
        assert client.get("/api/cron/runs").status_code == 401

    def test_empty(self, client: TestClient) -> None:
        assert client.get("/api/cron/runs", headers=AUTH).json() == {"count": 0, "runs": []}

    def test_lists_runs_newest_first(self, client: TestClient) -> None:
        client.get("/api/cron/bulk-download-jobs", headers=AUTH)
        client.get("/api/cron/bulk-download-jobs", headers=AUTH)
        body = client.get("/api/cron/runs", headers=AUTH).json()
        assert body["count"] == 2
        assert [run["inserted"] for run in body["runs"]] == [0, 2]
        assert [run["renewed"] for run in body["runs"]] == [2, 0]

    def test_limit(self, client: TestClient) -> None:
        for _ in range(3):
            client.get("/api/cron/bulk-download-jobs", headers=AUTH)
        body = client.get("/api/cron/runs", params={"limit": 1}, headers=AUTH).json()
        assert body["count"] == 1
        assert client.get("/api/cron/runs", params={"limit": 0}, headers=AUTH).status_code == 422


# ---------------------------------------------------------------------------
# Listing reads
# ---------------------------------------------------------------------------


class TestListJobs:
    def test_empty(self, client: TestClient) -> None:
        assert client.get("/api/jobs").json() == {"count": 0, "listings": []}

    def test_after_ingestion(self, client: TestClient) -> None:
        client.get("/api/cron/bulk-download-jobs", headers=AUTH)
        body = client.get("/api/jobs").json()
        assert body["count"] == 2
        assert {row["company"] for row in body["listings"]} == {"Acme", "Globex"}
        assert all(isinstance(row["keywords"], list) for row in body["listings"])

    def test_filters(self, client: TestClient) -> None:
        client.get("/api/cron/bulk-download-jobs", headers=AUTH)
        body = client.get("/api/jobs", params={"keyword": "python"}).json()
        assert [row["company"] for row in body["listings"]] == ["Acme"]
        assert client.get("/api/jobs", params={"source": "adzuna"}).json()["count"] == 0

    def test_invalid_params(self, client: TestClient) -> None:
        assert client.get("/api/jobs", params={"source": "monster"}).status_code == 422
        assert client.get("/api/jobs", params={"limit": 0}).status_code == 422


# ---------------------------------------------------------------------------
# Company research
# ---------------------------------------------------------------------------


class TestCompanyResearch:
    def test_success(self, client: TestClient) -> None:
        resp = client.post("/api/company/research", json={"company": "Acme Corp"}, headers=USER)
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["research"]["company"] == "Acme Corp"
        assert resp.headers["X-RateLimit-Limit"] == "2"
        assert resp.headers["X-RateLimit-Remaining"] == "1"

    def test_anonymous_is_429(self, client: TestClient, provider: CountingProvider) -> None:
        resp = client.post("/api/company/research", json={"company": "Acme Corp"})
        assert resp.status_code == 429
        assert resp.json()["detail"] == RATE_LIMIT_MESSAGE
        assert provider.calls == 0

    def test_limit_exceeded_is_429(self, client: TestClient) -> None:
        for _ in range(2):
            resp = client.post("/api/company/research", json={"company": "Acme"}, headers=USER)
            assert resp.status_code == 200
        resp = client.post("/api/company/research", json={"company": "Acme"}, headers=USER)
        assert resp.status_code == 429
        assert resp.headers["X-RateLimit-Remaining"] == "0"
        assert "Retry-After" in resp.headers

    def test_limits_are_per_user(self, client: TestClient) -> None:
        for _ in range(3):
            client.post("/api/company/research", json={"company": "Acme"}, headers=USER)
        resp = client.post(
            "/api/company/research", json={"company": "Acme"}, headers={"x-user-id": "user-2"},
        )
        assert resp.status_code == 200

    def test_repeat_query_served_from_cache(
        self, client: TestClient, provider: CountingProvider,
    ) -> None:
        client.post("/api/company/research", json={"company": "Acme Corp"}, headers=USER)
        client.post("/api/company/research", json={"company": "  acme corp "}, headers=USER)
        assert provider.calls == 1
        assert client.get("/health").json()["cache"]["hits"] == 1

    def test_provider_failure_is_502(self, tmp_path: Path) -> None:
        app = create_app(
            _settings(tmp_path),
            clients=_clients(),
            research_provider=CountingProvider("I could not find that company."),
            cron_secret=SECRET,
        )
        with TestClient(app) as c:
            resp = c.post("/api/company/research", json={"company": "Acme"}, headers=USER)
            assert resp.status_code == 502
            assert resp.json()["detail"] == "Company research is temporarily unavailable."
            assert c.get("/health").json()["cache"]["size"] == 0

    def test_transport_failure_is_502(self, tmp_path: Path) -> None:
        provider = UnreachableProvider()
        app = create_app(
            _settings(tmp_path),
            clients=_clients(),
            research_provider=provider,
            cron_secret=SECRET,
        )
        with TestClient(app) as c:
            resp = c.post("/api/company/research", json={"company": "Acme"}, headers=USER)
            assert resp.status_code == 502
            assert resp.json()["detail"] == "Company research is temporarily unavailable."
            assert c.get("/health").json()["cache"]["size"] == 0
        assert provider.calls == 1

    def test_blank_company_rejected(self, client: TestClient) -> None:
        resp = client.post("/api/company/research", json={"company": ""}, headers=USER)
        assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        client.get("/api/cron/bulk-download-jobs", headers=AUTH)
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["active_listings"] == 2
        assert body["cache"]["size"] == 0
        assert body["rate_limit_keys"] == 0

    def test_expired_rate_counters_purged(self, tmp_path: Path) -> None:
        now = [1_000.0]
        limiter = RateLimiter(
            routes={"company-research": RateLimitRule(window_seconds=60, max_requests=2)},
            clock=lambda: now[0],
        )
        app = create_app(
            _settings(tmp_path),
            clients=_clients(),
            research_provider=CountingProvider(),
            cron_secret=SECRET,
            rate_limiter=limiter,
        )
        with TestClient(app) as c:
            c.post("/api/company/research", json={"company": "Acme"}, headers=USER)
            assert c.get("/health").json()["rate_limit_keys"] == 1
            now[0] += 61
            assert c.get("/health").json()["rate_limit_keys"] == 0
