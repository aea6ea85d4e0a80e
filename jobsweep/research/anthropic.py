"""Anthropic Claude research provider with server-side web search."""

import logging
import os
from typing import Any

from jobsweep.research.base import SYSTEM_PROMPT, ResearchProvider

logger = logging.getLogger(__name__)

WEB_SEARCH_TOOL = "web_search_20250305"
MAX_SEARCHES = 5


def _joined_text(blocks: list[Any]) -> str:
    """Concatenate the text blocks of a reply; tool-use blocks carry no answer text."""
    return "".join(getattr(block, "text", "") for block in blocks if getattr(block, "type", "") == "text")


class AnthropicProvider(ResearchProvider):
    """Claude answers research prompts after up to ``MAX_SEARCHES`` web searches."""

    @property
    def provider_id(self) -> str:
        return "anthropic"

    @property
    def default_model(self) -> str:
        return "claude-sonnet-4-20250514"

    @property
    def env_var(self) -> str:
        return "ANTHROPIC_API_KEY"

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
            import anthropic
        except ImportError:
            msg = (
                "anthropic is required for company research. "
                "Install with: pip install 'jobsweep[anthropic]'"
            )
            raise ImportError(msg) from None

        use_model = model or self.default_model
        logger.info("Researching via Anthropic (%s, up to %d searches)", use_model, MAX_SEARCHES)
        reply = anthropic.Anthropic(api_key=api_key).messages.create(
            model=use_model,
            max_tokens=2048,
            system=SYSTEM_PROMPT if system is None else system,
            tools=[{"type": WEB_SEARCH_TOOL, "name": "web_search", "max_uses": MAX_SEARCHES}],
            messages=[{"role": "user", "content": prompt}],
        )

        text = _joined_text(reply.content)
        if not text:
            msg = "Anthropic returned no text for the research prompt"
            raise ValueError(msg)
        return text
