"""Source client registry with lazy loading.

Usage:
    from jobsweep.sources import get_source_client

    client = get_source_client("jsearch", settings.source_config(Source.JSEARCH))
    listings = await client.search(["python"], "Edmonton, AB")
"""

from __future__ import annotations

import importlib

import httpx

from jobsweep.core.config import Settings, SourceConfig
from jobsweep.core.schemas import Source
from jobsweep.sources.base import SourceClient

__all__ = ["SourceClient", "available_sources", "build_clients", "get_source_client"]

# Lazy registry: maps source → (module_path, class_name)
_REGISTRY: dict[Source, tuple[str, str]] = {
    Source.JSEARCH: ("jobsweep.sources.jsearch", "JSearchClient"),
    Source.ACTIVE_JOBS_DB: ("jobsweep.sources.active_jobs_db", "ActiveJobsDBClient"),
    Source.ADZUNA: ("jobsweep.sources.adzuna", "AdzunaClient"),
}


def get_source_client(
    source: Source | str,
    config: SourceConfig | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SourceClient:
    """Instantiate the client for a source.

    Raises:
        ValueError: If the source name is unknown.
    """
    try:
        key = Source(source)
    except ValueError:
        valid = ", ".join(available_sources())
        msg = f"Unknown source '{source}'. Available: {valid}"
        raise ValueError(msg) from None

    module_path, class_name = _REGISTRY[key]
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)
    return cls(config, transport)  # type: ignore[no-any-return]


def build_clients(
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[SourceClient]:
    """Clients for every enabled source, in configured priority order."""
    return [
        get_source_client(source, settings.source_config(source), transport)
        for source in settings.ingestion.sources
    ]


def available_sources() -> list[str]:
    """Return sorted list of registered source names."""
    return sorted(s.value for s in _REGISTRY)
