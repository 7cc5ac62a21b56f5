"""Tests for PDF timetable parsing. Text is fed directly; downloads are faked."""

from datetime import date

import pytest
import requests

from kent_jamaah.mosques.errors import SourceFetchError
from kent_jamaah.mosques.extractors import PdfTableExtractor
from kent_jamaah.mosques.extractors.pdf_table import (
    PdfDocument,
    find_day_row,
    month_block,
    sequential_times,
    times_from_day_row,
)
from kent_jamaah.mosques.registry import SourceKind
from kent_jamaah.mosques.results import Confidence

FULL_ROW = "Mon 15 05:12 05:30 06:50 12:10 13:00 15:20 15:45 17:40 19:05 19:30"

MONTHLY_TEXT = """DMIC Monthly Prayer Timetable
March 2025
Day Date Fajr Jamaah Sunrise Zuhr Jamaah Asr Jamaah Maghrib Isha Jamaah
Fri 14 05:14 05:30 06:52 12:10 13:00 15:19 15:45 17:38 19:03 19:30
Sat 15 05:12 05:30 06:50 12:10 13:00 15:20 15:45 17:40 19:05 19:30
Sun 16 05:10 05:30 06:48 12:09 13:00 15:21 15:45 17:42 19:07 19:30
Jumu'ah Khutbah 13:15 and 14:00
"""


@pytest.fixture
def extractor(make_descriptor, tmp_path):
    descriptor = make_descriptor("dmic", source_kind=SourceKind.PDF_TABLE, url="https://dmic.example/t.pdf",
                                 source_params={"layout": "monthly"})
    return PdfTableExtractor(descriptor, {"cache_dir": str(tmp_path)})


class TestDayRow:
    def test_full_row_uses_fixed_columns(self):
        tokens, index = find_day_row(FULL_ROW, 15)
        jamaah, confidence = times_from_day_row(tokens, index)
        assert jamaah == {"Fajr": "05:30", "Dhuhr": "13:00", "Asr": "15:45", "Maghrib": "17:40", "Isha": "19:30"}
        assert confidence == Confidence.HIGH

    def test_short_row_uses_relative_positions(self):
        tokens, index = find_day_row("Mon 15 05:12 05:30 06:50", 15)
        jamaah, confidence = times_from_day_row(tokens, index)
        assert jamaah["Fajr"] == "05:30"
        assert jamaah["Isha"] is None
        assert confidence == Confidence.LOW

    def test_day_must_lead_the_row(self):
        """"15" appearing as the second number (e.g. a Hijri date) does not match."""
        assert find_day_row("Sat 14 15 05:12 05:30", 15) is None

    def test_row_without_times_ignored(self):
        assert find_day_row("Page 15 of 30", 15) is None


class TestMonthBlock:
    def test_cuts_at_next_month(self):
        text = "March\n1 05:00\nApril\n1 04:30"
        block = month_block(text, 3)
        assert "April" not in block
        assert "05:00" in block

    def test_missing_month(self):
        assert month_block("no months here", 7) is None

    def test_lowercase_may_is_prose(self):
        text = "March 2025\n31 05:00 05:20\nJamaah times may vary\nApril 2025\n1 04:30"
        block = month_block(text, 3)
        assert "times may vary" in block
        assert "April" not in block

    def test_upper_case_heading(self):
        block = month_block("MARCH 2025\n1 05:00\nAPRIL 2025\n1 04:30", 3)
        assert "05:00" in block
        assert "04:30" not in block


class TestSequential:
    def test_first_five_times_then_jummah(self):
        text = "05:30 13:00 16:00 18:10 20:00 13:15 14:00"
        jamaah, jummah = sequential_times(text)
        assert jamaah == {"Fajr": "05:30", "Dhuhr": "13:00", "Asr": "16:00", "Maghrib": "18:10", "Isha": "20:00"}
        assert jummah == ["13:15", "14:00"]

    def test_fewer_than_five_times_gives_nulls(self):
        jamaah, jummah = sequential_times("05:30 13:00")
        assert not any(jamaah.values())
        assert jummah == []


class TestPdfTableExtractor:
    def test_monthly_lookup(self, extractor):
        result = extractor.extract(MONTHLY_TEXT, date(2025, 3, 15))
        assert result.jamaah == {"Fajr": "05:30", "Dhuhr": "13:00", "Asr": "15:45", "Maghrib": "17:40", "Isha": "19:30"}
        assert result.jummah == ["13:15", "14:00"]
        assert result.confidence == Confidence.HIGH

    def test_missing_day_falls_back_to_document_order(self, extractor):
        result = extractor.extract(MONTHLY_TEXT, date(2025, 3, 28))
        assert result.jamaah["Fajr"] == "05:14"
        assert result.confidence == Confidence.LOW

    def test_row_outside_month_block_found_in_whole_document(self, extractor):
        text = (
            "Thu 20 05:01 05:15 06:40 12:08 13:00 15:25 15:45 17:55 19:20 19:45\n"
            "March 2025 notes: Jumu'ah 13:15\n"
            "Fri 14 05:14 05:30 06:52 12:10 13:00 15:19 15:45 17:38 19:03 19:30\n"
        )
        result = extractor.extract(text, date(2025, 3, 20))
        assert result.jamaah["Fajr"] == "05:15"
        assert result.jamaah["Isha"] == "19:45"
        assert result.confidence == Confidence.HIGH

    def test_hijri_month_row_is_not_jummah(self, extractor):
        text = (
            "November 2025\n"
            "Jumada al-Awwal 1447\n"
            "Sat 15 24 Jumada 05:12 05:30 06:50 12:10 13:00 15:20 15:45 17:40 19:05 19:30\n"
        )
        result = extractor.extract(text, date(2025, 11, 15))
        assert result.jummah == []

    def test_undecodable_pdf_bytes_yield_empty_result(self, extractor):
        result = extractor.extract(PdfDocument(url="https://dmic.example/t.pdf", data=b"not a pdf"), date(2025, 3, 15))
        assert result.jamaah == {}
        assert not result.ok
        assert extractor.cache_helper.get_cached_content("https://dmic.example/t.pdf") is None

    def test_sequential_layout(self, make_descriptor, tmp_path):
        descriptor = make_descriptor("seq", source_kind=SourceKind.PDF_TABLE, source_params={"layout": "sequential"})
        extractor = PdfTableExtractor(descriptor, {"cache_dir": str(tmp_path)})
        result = extractor.extract("Fajr 05:30 Zuhr 13:00 Asr 16:00 Maghrib 18:10 Isha 20:00", date(2025, 3, 15))
        assert result.jamaah["Isha"] == "20:00"
        assert result.confidence == Confidence.LOW

    def test_blank_text(self, extractor):
        result = extractor.extract("   ", date(2025, 3, 15))
        assert result.confidence == Confidence.NONE
        assert not any(result.jamaah.values())

    def test_cached_text_document(self, extractor):
        document = PdfDocument(url="https://dmic.example/t.pdf", text=MONTHLY_TEXT)
        assert extractor.extract(document, date(2025, 3, 16)).jamaah["Maghrib"] == "17:42"

    def test_does_not_need_browser(self, extractor):
        assert extractor.needs_browser is False


class TestPdfLoad:
    def test_download_failure_raises_fetch_error(self, extractor, monkeypatch):
        def fail(*args, **kwargs):
            raise requests.ConnectionError("unreachable")

        monkeypatch.setattr(requests, "get", fail)
        with pytest.raises(SourceFetchError):
            extractor.load(None, date(2025, 3, 15))

    def test_cached_text_skips_download(self, extractor, monkeypatch):
        extractor.cache_helper.save_to_cache("https://dmic.example/t.pdf", MONTHLY_TEXT)

        def fail(*args, **kwargs):
            raise AssertionError("should not download")

        monkeypatch.setattr(requests, "get", fail)
        document = extractor.load(None, date(2025, 3, 15))
        assert document.text == MONTHLY_TEXT
        assert document.data is None

    def test_downloaded_bytes_returned(self, extractor, monkeypatch):
        class FakeResponse:
            content = b"%PDF-1.4 fake"

            def raise_for_status(self):
                pass

        monkeypatch.setattr(requests, "get", lambda *args, **kwargs: FakeResponse())
        document = extractor.load(None, date(2025, 3, 15))
        assert document.data == b"%PDF-1.4 fake"
        assert document.url == "https://dmic.example/t.pdf"
