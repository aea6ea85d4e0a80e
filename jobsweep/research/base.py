"""Abstract base class for company-research providers and shared parsing."""

import json
import re
from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

SYSTEM_PROMPT = (
    "You are a company research assistant for job seekers. Using current, "
    "publicly available information, research the company named by the user.\n\n"
    "Return ONLY a JSON object (no markdown, no explanation) with these fields:\n"
    "- company (string): the company's canonical name\n"
    "- summary (string): 2-4 sentences on what the company does\n"
    "- industry (string or null)\n"
    "- headquarters (string or null)\n"
    "- size (string or null): employee count range if known\n"
    "- culture (list[str]): short notes on culture and work environment\n"
    "- recent_news (list[str]): up to 5 recent notable events\n"
    "- hiring_signals (list[str]): signs the company is or is not hiring\n"
    "- sources (list[str]): URLs backing the above\n\n"
    "Use null or an empty list when information is not available. Do not guess."
)


class CompanyResearch(BaseModel):
    """Structured answer for one company-research query."""

    company: str
    summary: str = ""
    industry: str | None = None
    headquarters: str | None = None
    size: str | None = None
    culture: list[str] = Field(default_factory=list)
    recent_news: list[str] = Field(default_factory=list)
    hiring_signals: list[str] = Field(default_factory=list)
    sources: list[str] = Field(default_factory=list)


def parse_research(raw_text: str) -> CompanyResearch:
    """Parse a provider response into CompanyResearch.

    Handles markdown-wrapped JSON (```json ... ```) and plain JSON.
    """
    cleaned = re.sub(r"^```(?:json)?\s*\n?", "", raw_text.strip())
    cleaned = re.sub(r"\n?```\s*$", "", cleaned)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        msg = f"Failed to parse research response as JSON: {e}"
        raise ValueError(msg) from e

    return CompanyResearch.model_validate(data)


class ResearchProvider(ABC):
    """Base class that every research provider must implement."""

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Unique identifier for this provider (e.g. 'perplexity')."""

    @abstractmethod
    def complete(
        self,
        prompt: str,
        model: str | None = None,
        *,
        system: str | None = None,
    ) -> str:
        """Send a research prompt and return the raw response text.

        Args:
            prompt: The user-facing research question.
            model: Override the provider's default model. None uses default.
            system: Override the system prompt. None falls back to SYSTEM_PROMPT.

        Returns:
            Raw text response from the provider (expected to be JSON).
        """

    @property
    @abstractmethod
    def default_model(self) -> str:
        """The default model ID used when no override is specified."""

    @property
    @abstractmethod
    def env_var(self) -> str | None:
        """Environment variable name for the API key, or None if not needed."""
