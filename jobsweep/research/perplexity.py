"""Perplexity search-grounded provider, spoken to through the openai SDK."""

import logging
import os

from jobsweep.research.base import SYSTEM_PROMPT, ResearchProvider

logger = logging.getLogger(__name__)

PERPLEXITY_BASE_URL = "https://api.perplexity.ai"

SEARCH_RECENCY = "month"


class PerplexityProvider(ResearchProvider):
    """Default research provider: answers come with live web citations."""

    @property
    def provider_id(self) -> str:
        return "perplexity"

    @property
    def default_model(self) -> str:
        return "sonar"

    @property
    def env_var(self) -> str:
        return "PERPLEXITY_API_KEY"

    def complete(
        self,
        prompt: str,
        model: str | None = None,
        *,
        system: str | None = None,
    ) -> str:
        api_key = os.environ.get(self.env_var)
        if not api_key:
            msg = f"{self.env_var} environment variable is required for company research"
            raise ValueError(msg)

        try:
            import openai
        except ImportError:
            msg = (
                "openai is required to talk to Perplexity's OpenAI-compatible API. "
                "Install with: pip install 'jobsweep[perplexity]'"
            )
            raise ImportError(msg) from None

        use_model = model or self.default_model
        logger.info("Researching via Perplexity (%s)", use_model)
        completion = openai.OpenAI(base_url=PERPLEXITY_BASE_URL, api_key=api_key).chat.completions.create(
            model=use_model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT if system is None else system},
                {"role": "user", "content": prompt},
            ],
            extra_body={"search_recency_filter": SEARCH_RECENCY},
        )
        return completion.choices[0].message.content or ""
