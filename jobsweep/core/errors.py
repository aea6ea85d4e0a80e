"""Exception hierarchy for ingestion and storage failures."""


class JobsweepError(Exception):
    """Base class for all recoverable jobsweep errors."""


class SourceError(JobsweepError):
    """A job-listing provider could not serve a (keywords, location) query."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"[{source}] {message}")
        self.source = source


class SourceUnavailable(SourceError):
    """Transient provider failure: timeout, network error or non-2xx status."""


class SourceMalformed(SourceError):
    """Provider answered, but the payload did not have the expected shape."""


class StorageFault(JobsweepError):
    """The listings table could not be written."""


class ResearchUnavailable(JobsweepError):
    """The company-research provider failed to answer (transport, API or SDK error)."""
