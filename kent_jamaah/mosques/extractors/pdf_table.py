"""
Monthly PDF timetables. The PDF text is read with pdfplumber and scanned for
the row of the requested day; single-day or unstructured PDFs fall back to
reading times in document order.
"""
import calendar
import io
import re
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Tuple, Union

import pdfplumber
import requests

from kent_jamaah.core.cache_helper import CacheHelper
from ..errors import SourceFetchError
from ..extractor_base import MosqueExtractor
from ..normalizer import (
    PRAYER_NAMES,
    TIME_PATTERN,
    empty_prayer_set,
    extract_times,
    is_jummah_label,
    normalize_time,
)
from ..renderer import DEFAULT_USER_AGENT
from ..results import Confidence, ExtractionResult

# Column positions counted from the start of a day row laid out as
# Day | Date | Fajr begins | Fajr jamaah | Sunrise | Zuhr begins | Zuhr jamaah |
# Asr begins | Asr jamaah | Maghrib | Isha begins | Isha jamaah
DAY_COLUMN = 1
COLUMN_OFFSETS = {"Fajr": 3, "Dhuhr": 6, "Asr": 8, "Maghrib": 9, "Isha": 11}
# Same columns counted among the time tokens that follow the date
RELATIVE_POSITIONS = {"Fajr": 1, "Dhuhr": 4, "Asr": 6, "Maghrib": 7, "Isha": 9}

MONTH_NAMES = [calendar.month_name[number] for number in range(1, 13)]

LAYOUT_MONTHLY = "monthly"
LAYOUT_SEQUENTIAL = "sequential"

DEFAULT_REQUEST_TIMEOUT = 30


@dataclass(frozen=True)
class PdfDocument:
    """A downloaded PDF, or its text when read from the daily cache."""
    url: str
    data: Optional[bytes] = None
    text: Optional[str] = None


def extract_pdf_text(pdf_bytes: bytes) -> str:
    """Raw text of every page, pages separated by newlines."""
    with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
        return "\n".join(page.extract_text() or "" for page in pdf.pages)


def _month_pattern(name: str) -> "re.Pattern[str]":
    # Title or upper case only; lowercase "may" is prose
    return re.compile(rf"\b(?:{name}|{name.upper()})\b")


def month_block(text: str, month: int) -> Optional[str]:
    """Text from the first mention of the month's name up to the next month name."""
    target = MONTH_NAMES[month - 1]
    start_match = _month_pattern(target).search(text)
    if not start_match:
        return None
    end = len(text)
    for name in MONTH_NAMES:
        if name == target:
            continue
        other = _month_pattern(name).search(text, start_match.end())
        if other:
            end = min(end, other.start())
    return text[start_match.start():end]


def find_day_row(text: str, day: int) -> Optional[Tuple[List[str], int]]:
    """First line whose leading integer token is the day and which carries times.

    Returns the line's whitespace tokens and the index of the day token.
    """
    for line in text.splitlines():
        tokens = line.split()
        for index, token in enumerate(tokens):
            if TIME_PATTERN.search(token):
                break
            if not token.isdigit():
                continue
            if int(token) != day:
                break
            if any(TIME_PATTERN.search(rest) for rest in tokens[index + 1:]):
                return tokens, index
            break
    return None


def times_from_day_row(tokens: List[str], day_index: int) -> Tuple[Dict[str, Optional[str]], str]:
    """Map a day row to jamaah times by fixed column, or by relative position for short rows."""
    anchor = day_index - DAY_COLUMN
    if anchor + max(COLUMN_OFFSETS.values()) < len(tokens):
        jamaah = {
            name: normalize_time(tokens[anchor + offset]) if anchor + offset >= 0 else None
            for name, offset in COLUMN_OFFSETS.items()
        }
        confidence = Confidence.HIGH if all(jamaah.values()) else Confidence.LOW
        return jamaah, confidence

    times = [value for value in (normalize_time(token) for token in tokens[day_index + 1:]) if value]
    jamaah = {
        name: times[position] if position < len(times) else None
        for name, position in RELATIVE_POSITIONS.items()
    }
    return jamaah, Confidence.LOW


def sequential_times(text: str) -> Tuple[Dict[str, Optional[str]], List[str]]:
    """First five times are the day's jamaah times in prayer order, the next five jummah."""
    times = list(extract_times(text))
    jamaah = empty_prayer_set()
    if len(times) >= len(PRAYER_NAMES):
        jamaah = dict(zip(PRAYER_NAMES, times))
    return jamaah, times[5:10]


def jummah_from_notes(text: str) -> List[str]:
    times: List[str] = []
    for line in text.splitlines():
        if is_jummah_label(line):
            times.extend(extract_times(line))
    return times


class PdfTableExtractor(MosqueExtractor):
    """Published PDF timetable.

    source_params:
        layout: "monthly" (day-indexed table, default) or "sequential"
        url_template: optional per-month URL, see MosqueDescriptor.resolve_url
    """

    needs_browser = False

    def __init__(self, descriptor, settings=None):
        super().__init__(descriptor, settings)
        self.layout = self.params.get("layout", LAYOUT_MONTHLY)
        self.request_timeout = self.settings.get("request_timeout") or DEFAULT_REQUEST_TIMEOUT
        self._cache_helper = None

    @property
    def cache_helper(self) -> CacheHelper:
        if self._cache_helper is None:
            self._cache_helper = CacheHelper(self.settings.get("cache_dir"), "pdf_text")
        return self._cache_helper

    def load(self, session=None, target_date: Optional[date] = None) -> PdfDocument:
        """Download the PDF; carries cached text instead when it was already read today"""
        url = self.descriptor.resolve_url(target_date)
        cached_text = self.cache_helper.get_cached_content(url)
        if cached_text:
            self.logger.info(f"Using cached PDF text for {url}")
            return PdfDocument(url=url, text=cached_text)

        self.logger.info(f"Fetching PDF from {url}")
        try:
            response = requests.get(
                url,
                timeout=self.request_timeout,
                headers={"User-Agent": self.settings.get("user_agent") or DEFAULT_USER_AGENT},
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise SourceFetchError(f"PDF download failed for {url}: {e}") from e
        return PdfDocument(url=url, data=response.content)

    def parse(self, content: Union[PdfDocument, bytes, str], target_date: date) -> ExtractionResult:
        if isinstance(content, PdfDocument):
            text = content.text
            if text is None:
                text = extract_pdf_text(content.data or b"")
                if text.strip():
                    self.cache_helper.save_to_cache(content.url, text)
        elif isinstance(content, bytes):
            text = extract_pdf_text(content)
        else:
            text = content

        if not text.strip():
            self.logger.warning(f"No text extracted from {self.get_name()} PDF")
            return ExtractionResult.build({}, [], Confidence.NONE)

        if self.layout == LAYOUT_SEQUENTIAL:
            jamaah, jummah = sequential_times(text)
            return ExtractionResult.build(jamaah, jummah, Confidence.LOW)

        return self._parse_monthly(text, target_date)

    def _parse_monthly(self, text: str, target_date: date) -> ExtractionResult:
        row = None
        block = month_block(text, target_date.month)
        if block:
            row = find_day_row(block, target_date.day)
        if row is None:
            self.logger.info(f"{self.get_name()}: no day row in {MONTH_NAMES[target_date.month - 1]} block, scanning whole PDF")
            row = find_day_row(text, target_date.day)

        if row is None:
            self.logger.warning(f"{self.get_name()}: no row for day {target_date.day}, reading times in order")
            jamaah, jummah = sequential_times(text)
            return ExtractionResult.build(jamaah, jummah, Confidence.LOW)

        tokens, day_index = row
        jamaah, confidence = times_from_day_row(tokens, day_index)
        if confidence == Confidence.LOW:
            self.logger.warning(f"{self.get_name()}: low-confidence column mapping for day {target_date.day}")
        return ExtractionResult.build(jamaah, jummah_from_notes(text), confidence)
