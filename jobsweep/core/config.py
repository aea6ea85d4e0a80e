"""Configuration models and YAML loader for the ingestion sweep."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from jobsweep.core.schemas import Source


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: str = "data/listings.db"


class SourceConfig(BaseModel):
    """Connection settings for a single job-listing provider."""

    timeout_seconds: float = Field(default=10.0, gt=0.0, le=15.0)
    api_key_env: str = "RAPIDAPI_KEY"
    app_id_env: str | None = None
    base_url: str | None = None
    country: str = "ca"
    results_per_page: int = Field(default=50, ge=1, le=100)


def _default_sources() -> dict[Source, SourceConfig]:
    return {
        Source.JSEARCH: SourceConfig(),
        Source.ACTIVE_JOBS_DB: SourceConfig(),
        Source.ADZUNA: SourceConfig(api_key_env="ADZUNA_APP_KEY", app_id_env="ADZUNA_APP_ID"),
    }


class IngestionConfig(BaseModel):
    """What one sweep covers and how hard it may push the providers.

    ``sources`` is ordered: when the same job shows up in two providers, the
    one listed first wins.
    """

    locations: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    sources: list[Source] = Field(default_factory=lambda: [Source.JSEARCH, Source.ACTIVE_JOBS_DB])
    ttl_days: int = Field(default=14, ge=1)
    run_deadline_seconds: float = Field(default=300.0, gt=0.0)
    max_concurrency: int = Field(default=4, ge=1, le=32)

    @field_validator("locations")
    @classmethod
    def locations_not_blank(cls, v: list[str]) -> list[str]:
        cleaned = [loc.strip() for loc in v]
        if any(not loc for loc in cleaned):
            msg = "locations must not contain blank entries"
            raise ValueError(msg)
        return cleaned

    @field_validator("keywords")
    @classmethod
    def strip_keywords(cls, v: list[str]) -> list[str]:
        return [kw.strip() for kw in v if kw.strip()]

    @field_validator("sources")
    @classmethod
    def sources_unique(cls, v: list[Source]) -> list[Source]:
        if not v:
            msg = "at least one source must be enabled"
            raise ValueError(msg)
        if len(set(v)) != len(v):
            msg = "sources must not be listed twice"
            raise ValueError(msg)
        return v


class RateLimitRule(BaseModel):
    """Fixed-window limit: at most ``max_requests`` per ``window_seconds``."""

    window_seconds: float = Field(default=3600.0, gt=0.0)
    max_requests: int = Field(default=20, ge=1)


class RateLimitConfig(BaseModel):
    """Default rule plus per-route overrides keyed by route key."""

    default: RateLimitRule = Field(default_factory=RateLimitRule)
    routes: dict[str, RateLimitRule] = Field(default_factory=dict)


class CacheConfig(BaseModel):
    """Response cache in front of AI-backed endpoints."""

    ttl_seconds: float = Field(default=300.0, ge=0.0)
    max_entries: int = Field(default=1024, ge=1)


class ResearchConfig(BaseModel):
    """AI provider used for company research."""

    provider: str = "perplexity"
    model: str | None = None


class ApiConfig(BaseModel):
    """HTTP layer settings. Secrets come from the environment, never from YAML."""

    cron_secret_env: str = "CRON_SECRET"
    identity_header: str = "x-user-id"


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    ingestion: IngestionConfig = Field(default_factory=IngestionConfig)
    sources: dict[Source, SourceConfig] = Field(default_factory=_default_sources)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    research: ResearchConfig = Field(default_factory=ResearchConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    @model_validator(mode="after")
    def at_least_one_location(self) -> "Settings":
        if not self.ingestion.locations:
            msg = "at least one location must be configured"
            raise ValueError(msg)
        return self

    def source_config(self, source: Source) -> SourceConfig:
        """Return the config for a source, falling back to defaults."""
        return self.sources.get(source) or _default_sources()[source]

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
