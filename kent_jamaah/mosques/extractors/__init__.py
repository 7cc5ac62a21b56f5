from .generic_html import GenericHtmlExtractor
from .iqamah_table import IqamahTableExtractor
from .pdf_table import PdfTableExtractor
from .prayer_list import PrayerListExtractor

__all__ = ["GenericHtmlExtractor", "IqamahTableExtractor", "PdfTableExtractor", "PrayerListExtractor"]
