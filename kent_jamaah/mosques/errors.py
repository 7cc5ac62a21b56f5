"""
Exceptions raised inside the scraping pipeline. Per-source errors are caught
at the source boundary; only RenderSessionError escapes a run.
"""


class ScrapeError(Exception):
    """Base class for scraping failures."""


class RenderSessionError(ScrapeError):
    """The headless browser could not be launched; aborts the current run."""


class SourceFetchError(ScrapeError):
    """A page or PDF could not be fetched."""


class UnknownSourceKindError(ScrapeError):
    """A descriptor names a source kind with no registered extractor."""
