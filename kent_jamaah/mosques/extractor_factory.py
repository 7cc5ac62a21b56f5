from typing import Any, Dict, Optional, Type
from .extractor_base import MosqueExtractor
from .extractors import GenericHtmlExtractor, IqamahTableExtractor, PdfTableExtractor, PrayerListExtractor
from .errors import UnknownSourceKindError
from .registry import MosqueDescriptor, SourceKind
import logging

logger = logging.getLogger(__name__)

EXTRACTOR_TYPES: Dict[str, Type[MosqueExtractor]] = {
    SourceKind.GENERIC_HTML: GenericHtmlExtractor,
    SourceKind.PDF_TABLE: PdfTableExtractor,
    SourceKind.IQAMAH_TABLE: IqamahTableExtractor,
    SourceKind.PRAYER_LIST: PrayerListExtractor,
}


def register_extractor(source_kind: str, extractor_class: Type[MosqueExtractor]) -> None:
    """Add a tailored strategy; descriptors opt in through their source_kind"""
    if source_kind in EXTRACTOR_TYPES:
        logger.info(f"Replacing extractor for source kind: {source_kind}")
    EXTRACTOR_TYPES[source_kind] = extractor_class


def create_extractor(descriptor: MosqueDescriptor, settings: Optional[Dict[str, Any]] = None) -> MosqueExtractor:
    """Create the extractor instance for a descriptor based on its source kind"""
    extractor_class = EXTRACTOR_TYPES.get(descriptor.source_kind)
    if extractor_class is None:
        raise UnknownSourceKindError(f"Unknown source kind '{descriptor.source_kind}' for {descriptor.id}")
    return extractor_class(descriptor, settings)
