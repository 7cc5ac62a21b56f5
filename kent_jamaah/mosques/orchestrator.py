"""
Scrape every registered mosque once, in registry order, sharing one browser
session. A failing source yields an empty result; it never stops the run.
"""
import logging
from contextlib import ExitStack, contextmanager
from datetime import date
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from .errors import RenderSessionError, UnknownSourceKindError
from .extractor_base import MosqueExtractor
from .extractor_factory import create_extractor
from .registry import MosqueDescriptor
from .renderer import BrowserSession
from .results import DailySnapshot, MosqueResult, utc_now

SessionFactory = Callable[[Dict[str, Any]], Any]


class ScrapeOrchestrator:
    def __init__(
        self,
        registry: Sequence[MosqueDescriptor],
        settings: Optional[Dict[str, Any]] = None,
        session_factory: SessionFactory = BrowserSession,
    ):
        self.registry = tuple(registry)
        self.settings = settings or {}
        self.session_factory = session_factory
        self.logger = logging.getLogger(self.__class__.__name__)

    def run(self, target_date: Optional[date] = None) -> DailySnapshot:
        """Scrape all mosques for target_date (default today).

        Raises RenderSessionError only when the browser cannot be started.
        """
        target_date = target_date or date.today()
        self.logger.info(f"Scraping {len(self.registry)} mosque(s) for {target_date.isoformat()}")

        extractors = [(descriptor, self._build_extractor(descriptor)) for descriptor in self.registry]
        needs_browser = any(extractor is not None and extractor.needs_browser for _, extractor in extractors)

        results: List[MosqueResult] = []
        with self._session(needs_browser) as session:
            for descriptor, extractor in extractors:
                results.append(self._scrape_one(descriptor, extractor, session, target_date))

        snapshot = DailySnapshot(date=target_date, results=tuple(results), updated_at=utc_now())
        with_data = sum(1 for result in results if result.jamaah and any(result.jamaah.values()))
        self.logger.info(f"Scrape finished: {with_data}/{len(results)} mosque(s) with jamaah times")
        return snapshot

    def _build_extractor(self, descriptor: MosqueDescriptor) -> Optional[MosqueExtractor]:
        try:
            return create_extractor(descriptor, self.settings)
        except UnknownSourceKindError as e:
            self.logger.error(str(e))
            return None
        except Exception as e:
            self.logger.exception(f"Could not build extractor for {descriptor.name} ({descriptor.id}): {e}")
            return None

    @contextmanager
    def _session(self, needs_browser: bool) -> Iterator[Any]:
        if not needs_browser:
            yield None
            return
        with ExitStack() as stack:
            try:
                session = stack.enter_context(self.session_factory(self.settings))
            except RenderSessionError:
                raise
            except Exception as e:
                raise RenderSessionError(f"Failed to start rendering session: {e}") from e
            yield session

    def _scrape_one(
        self,
        descriptor: MosqueDescriptor,
        extractor: Optional[MosqueExtractor],
        session: Any,
        target_date: date,
    ) -> MosqueResult:
        if extractor is None:
            return MosqueResult.empty(descriptor)
        try:
            content = extractor.load(session, target_date)
            extraction = extractor.extract(content, target_date)
        except Exception as e:
            self.logger.warning(f"Scrape failed for {descriptor.name} ({descriptor.id}): {e}")
            return MosqueResult.empty(descriptor)

        if not extraction.ok:
            self.logger.warning(f"No times for {descriptor.name}: {extraction.error}")
        else:
            self.logger.info(
                f"{descriptor.name}: {extraction.found_count} jamaah time(s), "
                f"{len(extraction.jummah)} jummah time(s), confidence={extraction.confidence}"
            )
        return MosqueResult.from_extraction(descriptor, extraction)


def run_all(
    registry: Sequence[MosqueDescriptor],
    target_date: Optional[date] = None,
    settings: Optional[Dict[str, Any]] = None,
    session_factory: SessionFactory = BrowserSession,
) -> DailySnapshot:
    """One full scrape of the registry; see ScrapeOrchestrator.run."""
    return ScrapeOrchestrator(registry, settings, session_factory).run(target_date)
