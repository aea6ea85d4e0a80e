"""Company-research provider registry with lazy loading.

Usage:
    from jobsweep.research import get_provider, research_company

    provider = get_provider("perplexity")
    report = research_company(provider, "Acme Corp", location="Edmonton, AB")
"""

from __future__ import annotations

import importlib
import logging

from jobsweep.core.errors import ResearchUnavailable
from jobsweep.research.base import CompanyResearch, ResearchProvider, parse_research

__all__ = [
    "CompanyResearch",
    "ResearchProvider",
    "available_providers",
    "build_prompt",
    "get_provider",
    "parse_research",
    "research_company",
]

logger = logging.getLogger(__name__)

# Lazy registry: maps provider name → (module_path, class_name)
_REGISTRY: dict[str, tuple[str, str]] = {
    "perplexity": ("jobsweep.research.perplexity", "PerplexityProvider"),
    "anthropic": ("jobsweep.research.anthropic", "AnthropicProvider"),
}


def get_provider(name: str) -> ResearchProvider:
    """Instantiate and return a research provider by name.

    Raises:
        ValueError: If the provider name is unknown.
    """
    if name not in _REGISTRY:
        valid = ", ".join(sorted(_REGISTRY))
        msg = f"Unknown research provider '{name}'. Available: {valid}"
        raise ValueError(msg)

    module_path, class_name = _REGISTRY[name]
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)
    return cls()  # type: ignore[no-any-return]


def available_providers() -> list[str]:
    """Return sorted list of registered provider names."""
    return sorted(_REGISTRY)


def build_prompt(company: str, location: str | None = None) -> str:
    prompt = f"Research the company '{company.strip()}'"
    if location and location.strip():
        prompt += f" with a focus on its presence in {location.strip()}"
    return prompt + "."


def research_company(
    provider: ResearchProvider,
    company: str,
    location: str | None = None,
    model: str | None = None,
) -> CompanyResearch:
    """Ask the provider about a company and parse the structured answer.

    Raises:
        ValueError: If the company is blank, the provider is misconfigured,
            or the answer is not valid JSON.
        ImportError: If the provider's SDK is not installed.
        ResearchUnavailable: If the provider call itself fails.
    """
    if not company.strip():
        msg = "company must not be empty"
        raise ValueError(msg)
    try:
        raw = provider.complete(build_prompt(company, location), model=model)
    except (ValueError, ImportError):
        raise
    except Exception as e:
        msg = f"{provider.provider_id} research request failed: {e}"
        raise ResearchUnavailable(msg) from e
    report = parse_research(raw)
    logger.info("Research for '%s' via %s: %d sources",
                company, provider.provider_id, len(report.sources))
    return report
