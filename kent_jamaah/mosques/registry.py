"""
Static list of mosques and how to scrape each one. Loaded once at startup;
a deployment can replace it with a `mosques:` list in config.yaml.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, Optional, Tuple

logger = logging.getLogger(__name__)


class SourceKind:
    """Extraction strategy names. Tailored sites use the CustomHTML kinds."""
    GENERIC_HTML = "generic_html"
    PDF_TABLE = "pdf_table"
    IQAMAH_TABLE = "iqamah_table"
    PRAYER_LIST = "prayer_list"


@dataclass(frozen=True)
class MosqueDescriptor:
    id: str
    name: str
    url: str
    address: str = ""
    source_kind: str = SourceKind.GENERIC_HTML
    source_params: Dict[str, Any] = field(default_factory=dict, hash=False)

    def resolve_url(self, target_date: Optional[date] = None) -> str:
        """URL for target_date. Monthly PDFs are republished under a new name each month."""
        template = self.source_params.get("url_template")
        if not template:
            return self.url
        target_date = target_date or date.today()
        return template.format(
            month=target_date.strftime("%B"),
            month_num=f"{target_date.month:02d}",
            year=target_date.year,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "address": self.address,
            "sourceKind": self.source_kind,
            "sourceParams": dict(self.source_params),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MosqueDescriptor":
        """Build from a config entry; accepts wire (camelCase) or snake_case keys."""
        for key in ("id", "name", "url"):
            if not data.get(key):
                raise ValueError(f"Mosque entry missing '{key}': {data}")
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            url=str(data["url"]),
            address=str(data.get("address") or ""),
            source_kind=data.get("sourceKind") or data.get("source_kind") or SourceKind.GENERIC_HTML,
            source_params=dict(data.get("sourceParams") or data.get("source_params") or {}),
        )


DEFAULT_MOSQUES: Tuple[MosqueDescriptor, ...] = (
    MosqueDescriptor("kmwa", "Kent Muslim Welfare Association", "https://kmwa.org.uk/",
                     "Chatham, Kent"),
    MosqueDescriptor("chatham-hill", "Chatham Hill Mosque & Kent Islamic Centre",
                     "https://www.chathamhillmosque.co.uk/", "Chatham Hill, Chatham, Kent"),
    MosqueDescriptor("gravesend-central", "Gravesend Central Mosque",
                     "https://www.gravesendcentralmosque.com/", "Gravesend, Kent"),
    MosqueDescriptor("masjidul-abraar", "Masjidul Abraar", "https://www.masjidulabraar.org/",
                     "Medway, Kent"),
    MosqueDescriptor(
        "sittingbourne", "Sittingbourne Islamic Cultural Centre",
        "https://masjidbox.com/prayer-times/sittingbourne-islamic-cultural-centre",
        "Sittingbourne, Kent",
        SourceKind.PRAYER_LIST,
        {"item_selector": "li, .prayer, .iqamah"},
    ),
    MosqueDescriptor("maidstone", "Maidstone Mosque", "https://maidstonemosque.com/",
                     "Maidstone, Kent"),
    MosqueDescriptor("canterbury", "Canterbury Mosque", "https://canterburymosque.co.uk/",
                     "Canterbury, Kent"),
    MosqueDescriptor("ashford", "Ashford Mosque", "https://ashfordmosque.org/", "Ashford, Kent"),
    MosqueDescriptor("tonbridge", "Tonbridge Masjid", "https://tonbridgemasjid.org/",
                     "Tonbridge, Kent"),
    MosqueDescriptor("masjid-abubakr", "Masjid Abu Bakr", "https://masjidabubakr.co.uk/", "Kent"),
    MosqueDescriptor(
        "secc-sidcup", "SECC Sidcup", "http://www.seccsidcup.org.uk/prayer-times/",
        "Sidcup, Kent",
        SourceKind.IQAMAH_TABLE,
        {"row_selector": "table tr", "name_column": 0, "time_column": 2},
    ),
    MosqueDescriptor(
        "dmic", "DMIC", "https://dmic.co.uk/Prayer-Times/Monthly-Prayer-Timetable-November-2025.pdf",
        "Dartford, Kent",
        SourceKind.PDF_TABLE,
        {
            "layout": "monthly",
            "url_template": "https://dmic.co.uk/Prayer-Times/Monthly-Prayer-Timetable-{month}-{year}.pdf",
        },
    ),
)


def build_registry(entries: Iterable[MosqueDescriptor]) -> Tuple[MosqueDescriptor, ...]:
    """Freeze entries into a registry tuple; ids must be unique."""
    registry = tuple(entries)
    seen = set()
    for descriptor in registry:
        if descriptor.id in seen:
            raise ValueError(f"Duplicate mosque id in registry: {descriptor.id}")
        seen.add(descriptor.id)
    return registry


def load_registry(config_data: Optional[Dict[str, Any]] = None) -> Tuple[MosqueDescriptor, ...]:
    """Registry from config `mosques:` list, or DEFAULT_MOSQUES when absent."""
    entries = (config_data or {}).get("mosques")
    if not entries:
        return build_registry(DEFAULT_MOSQUES)
    registry = build_registry(MosqueDescriptor.from_dict(entry) for entry in entries)
    logger.info(f"Loaded {len(registry)} mosque(s) from config")
    return registry
