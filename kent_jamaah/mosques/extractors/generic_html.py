import re
from datetime import date
from typing import List, Optional

from bs4 import BeautifulSoup

from ..extractor_base import HtmlExtractor
from ..normalizer import PRAYER_ALIASES, PRAYER_NAMES, extract_times, is_jummah_label, normalize_time
from ..renderer import RenderedPage
from ..results import Confidence, ExtractionResult

# "<prayer name> <anything but digits> <H:MM[am|pm]>", first match wins
PRAYER_PATTERNS = {
    name: re.compile(
        r"\b(?:" + "|".join(PRAYER_ALIASES[name]) + r")[^\d]*(\d{1,2}:\d{2}(?:\s?(?:am|pm))?)",
        re.IGNORECASE,
    )
    for name in PRAYER_NAMES
}

MAX_JUMMAH_NODES = 6


class GenericHtmlExtractor(HtmlExtractor):
    """Heuristics for any mosque homepage that prints times next to prayer names.

    Jummah times do not come from the plain first six elements mentioning
    jum'ah: only the innermost such elements count (up to six), and a bare
    label with no times borrows them from its parent element.
    """

    def parse(self, page: RenderedPage, target_date: date) -> ExtractionResult:
        soup = self._soup(page)
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        body_text = self._body_text(page, soup)

        jamaah = {name: self._find_prayer_time(name, body_text) for name in PRAYER_NAMES}
        jummah = self._find_jummah_times(soup)
        return ExtractionResult.build(jamaah, jummah, Confidence.LOW)

    def _find_prayer_time(self, name: str, text: str) -> Optional[str]:
        match = PRAYER_PATTERNS[name].search(text or "")
        if not match:
            return None
        return normalize_time(match.group(1))

    def _find_jummah_times(self, soup: BeautifulSoup) -> List[str]:
        """Times from the first few elements mentioning jum'ah.

        Only the innermost matching elements are used, so <html> and <body>
        don't drag every time on the page in. A bare label ("Jummah") borrows
        the times of its parent (the table row or list item around it).
        """
        root = soup.body or soup
        nodes = [
            tag for tag in root.find_all(True)
            if is_jummah_label(tag.get_text(" ", strip=True))
            and not tag.find(lambda child: is_jummah_label(child.get_text(" ", strip=True)))
        ]
        times: List[str] = []
        for node in nodes[:MAX_JUMMAH_NODES]:
            found = list(extract_times(node.get_text(" ", strip=True)))
            if not found and node.parent is not None and node.parent is not root:
                found = list(extract_times(node.parent.get_text(" ", strip=True)))
            times.extend(found)
        return times
