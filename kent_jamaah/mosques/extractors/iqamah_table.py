from datetime import date
from typing import Dict, List, Optional

from ..extractor_base import HtmlExtractor
from ..normalizer import PRAYER_NAMES, canonical_prayer_name, extract_times, is_jummah_label, normalize_time
from ..renderer import RenderedPage
from ..results import Confidence, ExtractionResult


class IqamahTableExtractor(HtmlExtractor):
    """Timetable pages laid out as rows of <prayer name> | <begins> | <iqamah>.

    source_params:
        row_selector: CSS selector for the rows (default "table tr")
        name_column: index of the prayer-name cell (default 0)
        time_column: index of the iqamah/jamaah cell (default 2)
    """

    def parse(self, page: RenderedPage, target_date: date) -> ExtractionResult:
        soup = self._soup(page)
        row_selector = self.params.get("row_selector", "table tr")
        name_column = int(self.params.get("name_column", 0))
        time_column = int(self.params.get("time_column", 2))

        rows = soup.select(row_selector)
        if not rows:
            self.logger.warning(f"No rows matching '{row_selector}' on {self.get_name()} page")
            return ExtractionResult.build({}, [], Confidence.NONE)

        jamaah: Dict[str, Optional[str]] = {}
        jummah: List[str] = []
        for row in rows:
            cells = row.find_all(["td", "th"])
            if len(cells) <= name_column:
                continue
            label = cells[name_column].get_text(" ", strip=True)

            if is_jummah_label(label):
                # Friday rows often list several times across the remaining cells
                for index, cell in enumerate(cells):
                    if index != name_column:
                        jummah.extend(extract_times(cell.get_text(" ", strip=True)))
                continue

            name = canonical_prayer_name(label)
            if not name or jamaah.get(name) or len(cells) <= time_column:
                continue
            jamaah[name] = normalize_time(cells[time_column].get_text(" ", strip=True))

        found = sum(1 for name in PRAYER_NAMES if jamaah.get(name))
        self.logger.info(f"{self.get_name()}: {found} iqamah time(s), {len(jummah)} jummah time(s) from table")
        return ExtractionResult.build(jamaah, jummah, Confidence.HIGH)
