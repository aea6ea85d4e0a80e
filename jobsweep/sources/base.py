"""Abstract base class for job-listing source clients."""

import logging
import os
from abc import ABC, abstractmethod
from typing import Any

import httpx

from jobsweep.core.config import SourceConfig
from jobsweep.core.errors import SourceMalformed, SourceUnavailable
from jobsweep.core.schemas import RawListing, Source

logger = logging.getLogger(__name__)

_USER_AGENT = "jobsweep/0.3 (+bulk job ingestion)"


class SourceClient(ABC):
    """Queries one provider for a single (keywords, location) pair.

    Stateless between calls: each search opens its own HTTP client, so one
    instance can serve concurrent searches for different locations.
    """

    def __init__(
        self,
        config: SourceConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or SourceConfig()
        self._transport = transport

    @property
    @abstractmethod
    def source_id(self) -> Source:
        """Which provider this client talks to."""

    @property
    @abstractmethod
    def default_base_url(self) -> str:
        """Endpoint used when the config does not override it."""

    @abstractmethod
    def build_params(self, keywords: list[str], location: str) -> dict[str, Any]:
        """Query-string parameters for one search."""

    @abstractmethod
    def parse(self, payload: Any) -> list[RawListing]:
        """Map a provider payload to raw listings.

        Raises:
            SourceMalformed: If the payload does not have the expected shape.
        """

    @property
    def base_url(self) -> str:
        return self._config.base_url or self.default_base_url

    def build_url(self, keywords: list[str], location: str) -> str:
        return self.base_url

    def build_headers(self) -> dict[str, str]:
        return {"User-Agent": _USER_AGENT}

    def api_key(self) -> str:
        """Read the provider key from the configured environment variable."""
        return os.environ.get(self._config.api_key_env, "")

    async def search(self, keywords: list[str], location: str) -> list[RawListing]:
        """Run one search and return raw listings (possibly empty).

        Raises:
            SourceUnavailable: Timeout, network failure or non-2xx status.
            SourceMalformed: Response was not JSON of the expected shape.
        """
        payload = await self._get_json(
            self.build_url(keywords, location),
            self.build_params(keywords, location),
        )
        listings = self.parse(payload)
        logger.info("%s: %d listings for '%s'", self.source_id.value, len(listings), location)
        return listings

    async def _get_json(self, url: str, params: dict[str, Any]) -> Any:
        source = self.source_id.value
        clean_params = {k: v for k, v in params.items() if v is not None and v != ""}
        try:
            async with httpx.AsyncClient(
                timeout=self._config.timeout_seconds,
                headers=self.build_headers(),
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.get(url, params=clean_params)
        except httpx.TimeoutException as e:
            msg = f"timed out after {self._config.timeout_seconds}s"
            raise SourceUnavailable(source, msg) from e
        except httpx.HTTPError as e:
            raise SourceUnavailable(source, f"request failed: {e}") from e

        if not response.is_success:
            raise SourceUnavailable(source, f"HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise SourceMalformed(source, "response body is not JSON") from e


def as_text(value: Any) -> str:
    """Coerce a loosely-typed payload field to a stripped string."""
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value).strip()


def first_text(item: dict[str, Any], *keys: str) -> str:
    """Return the first non-empty field among ``keys``."""
    for key in keys:
        text = as_text(item.get(key))
        if text:
            return text
    return ""


def require_list(source: Source, payload: Any, *keys: str) -> list[dict[str, Any]]:
    """Pull the listing array out of a payload, trying ``keys`` in order.

    A payload without any of the keys, or whose value is not a list of objects,
    is malformed. An empty list is a valid, empty result.
    """
    if not isinstance(payload, dict):
        raise SourceMalformed(source.value, f"expected a JSON object, got {type(payload).__name__}")
    for key in keys:
        if key in payload:
            items = payload[key]
            if items is None:
                return []
            if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
                raise SourceMalformed(source.value, f"'{key}' is not a list of objects")
            return items
    expected = ", ".join(keys)
    raise SourceMalformed(source.value, f"payload has none of: {expected}")
