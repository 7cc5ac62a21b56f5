from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, Optional
import logging

from bs4 import BeautifulSoup

from .registry import MosqueDescriptor
from .renderer import RenderedPage
from .results import ExtractionResult


class MosqueExtractor(ABC):
    """One extraction strategy bound to one mosque descriptor.

    load() fetches the raw content and may raise; the orchestrator absorbs
    that. extract() never raises: any parsing failure becomes the empty result.
    """

    # HTML strategies need the shared browser session, PDFs do not
    needs_browser = True

    def __init__(self, descriptor: MosqueDescriptor, settings: Optional[Dict[str, Any]] = None):
        self.descriptor = descriptor
        self.settings = settings or {}
        self.params = descriptor.source_params
        self.logger = logging.getLogger(self.__class__.__name__)

    def get_name(self) -> str:
        return self.descriptor.name

    def load(self, session: Any, target_date: Optional[date] = None) -> Any:
        """Render the mosque page in the shared session"""
        return session.render(self.descriptor.resolve_url(target_date))

    def extract(self, content: Any, target_date: Optional[date] = None) -> ExtractionResult:
        """Parse content into jamaah/jummah times
        Args:
            content: RenderedPage for HTML sources, PDF bytes for PDF sources
            target_date: Day to extract (defaults to today)
        Returns:
            ExtractionResult; empty with error set when parsing failed
        """
        if content is None:
            self.logger.warning(f"No content to extract for {self.get_name()}")
            return ExtractionResult.empty(error="no content")
        try:
            return self.parse(content, target_date or date.today())
        except Exception as e:
            self.logger.error(f"Error parsing times from {self.get_name()}: {e}", exc_info=True)
            return ExtractionResult.empty(error=str(e))

    @abstractmethod
    def parse(self, content: Any, target_date: date) -> ExtractionResult:
        pass


class HtmlExtractor(MosqueExtractor):
    """Helpers shared by the DOM-based strategies."""

    def _soup(self, page: RenderedPage) -> BeautifulSoup:
        return BeautifulSoup(page.html or "", "html.parser")

    def _body_text(self, page: RenderedPage, soup: BeautifulSoup) -> str:
        """Visible text: browser innerText when available, else text from the markup."""
        if page.text:
            return page.text
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        root = soup.body or soup
        return root.get_text(separator="\n", strip=True)
