import re
from datetime import date
from typing import Dict, List, Optional

from ..extractor_base import HtmlExtractor
from ..normalizer import canonical_prayer_name, extract_times, is_jummah_label, normalize_time
from ..renderer import RenderedPage
from ..results import Confidence, ExtractionResult

# "Fajr: 5:30am", "Zuhr Jamaat : 13:15"
NAME_TIME_PATTERN = re.compile(
    r"([A-Za-z][A-Za-z' ]*?)\s*:\s*(\d{1,2}:\d{2}(?:\s?(?:am|pm))?)",
    re.IGNORECASE,
)
JAMAAH_WORDS = ("jama", "iqama", "iqamah", "congregation")


class PrayerListExtractor(HtmlExtractor):
    """Widgets that print one "name: time" line per prayer in list items.

    A label that only says "Jamaah"/"Iqamah" belongs to the prayer named just
    before it and takes precedence over the begin time. Lines mentioning
    jumah/jummah/jumu'ah are Friday times.

    source_params:
        item_selector: CSS selector for the items (default "li")
    """

    def parse(self, page: RenderedPage, target_date: date) -> ExtractionResult:
        soup = self._soup(page)
        item_selector = self.params.get("item_selector", "li")
        items = soup.select(item_selector)
        if not items:
            self.logger.warning(f"No items matching '{item_selector}' on {self.get_name()} page")
            return ExtractionResult.build({}, [], Confidence.NONE)

        jamaah: Dict[str, Optional[str]] = {}
        from_jamaah_label = set()
        jummah: List[str] = []
        for item in items:
            lines = [line.strip() for line in item.get_text("\n").splitlines() if line.strip()]
            for line in lines:
                if is_jummah_label(line):
                    jummah.extend(extract_times(line))

            last_prayer = None
            for label, value in NAME_TIME_PATTERN.findall(" ".join(lines)):
                if is_jummah_label(label):
                    continue
                name = canonical_prayer_name(label)
                time_value = normalize_time(value)
                is_jamaah_label = any(word in label.lower() for word in JAMAAH_WORDS)
                if name is None and is_jamaah_label:
                    name = last_prayer
                if name is None:
                    continue
                last_prayer = name
                if name in from_jamaah_label:
                    continue
                if is_jamaah_label:
                    jamaah[name] = time_value
                    from_jamaah_label.add(name)
                elif not jamaah.get(name):
                    jamaah[name] = time_value

        return ExtractionResult.build(jamaah, jummah, Confidence.HIGH)
