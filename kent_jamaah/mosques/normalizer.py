"""
Time token normalization: pull "H:MM" (optionally am/pm) substrings out of
free text and render them as 24-hour "HH:MM".
"""
import re
from typing import Any, Iterable, Iterator, List, Optional

PRAYER_NAMES = ("Fajr", "Dhuhr", "Asr", "Maghrib", "Isha")

MAX_JUMMAH_TIMES = 5

TIME_PATTERN = re.compile(r"(?<!\d)([01]?\d|2[0-3]):([0-5]\d)(?!\d)(?:\s?(am|pm))?", re.IGNORECASE)

# Spellings seen on mosque sites and timetables
PRAYER_ALIASES = {
    "Fajr": ("fajr", "fajar", "fajir"),
    "Dhuhr": ("dhuhr", "zuhr", "zohr", "duhr", "dhuhur", "zuhar", "zohar", "dhohr"),
    "Asr": ("asr", "asar"),
    "Maghrib": ("maghrib", "magrib", "maghreb"),
    "Isha": ("isha", "esha", "ishaa", "eisha"),
}

# Jummah, Jumu'ah, Jum'ah, Jumuah... but not the month Jumada / Jumaada / Jumādā
JUMMAH_PATTERN = re.compile(r"(?<![a-z])jum(?!a{0,2}d|ād)")


def _to_24h(hour: int, minute: str, suffix: Optional[str]) -> str:
    if suffix and hour <= 12:
        suffix = suffix.lower()
        if suffix == "pm" and hour != 12:
            hour += 12
        elif suffix == "am" and hour == 12:
            hour = 0
    return f"{hour:02d}:{minute}"


def extract_times(text: Any) -> Iterator[str]:
    """Yield every time token in text as "HH:MM", in order of appearance.

    "5:00am" -> "05:00", "12:00pm" -> "12:00", "12:00am" -> "00:00",
    "17:30" -> "17:30". Without an am/pm suffix the hour is taken literally.
    Anything that is not a string yields nothing.
    """
    if not isinstance(text, str):
        return
    for match in TIME_PATTERN.finditer(text):
        yield _to_24h(int(match.group(1)), match.group(2), match.group(3))


def normalize_time(token: Any) -> Optional[str]:
    """Normalize a single time token, or None if it holds no time."""
    return next(extract_times(token), None)


def unique_times(times: Iterable[str], limit: int = MAX_JUMMAH_TIMES) -> List[str]:
    """Deduplicate keeping first-seen order, capped at limit."""
    seen: List[str] = []
    for value in times:
        if value and value not in seen:
            seen.append(value)
            if len(seen) >= limit:
                break
    return seen


def canonical_prayer_name(label: Any) -> Optional[str]:
    """Map a source label ("Zuhr Jamaat", "ESHA", "Fajar") to one of PRAYER_NAMES."""
    if not isinstance(label, str):
        return None
    lowered = label.lower()
    words = re.findall(r"[a-z]+", lowered)
    for name, aliases in PRAYER_ALIASES.items():
        if any(word in aliases for word in words):
            return name
    # Glued labels such as "FajrJamaah"
    for name, aliases in PRAYER_ALIASES.items():
        if any(lowered.startswith(alias) for alias in aliases):
            return name
    return None


def is_jummah_label(text: Any) -> bool:
    return isinstance(text, str) and JUMMAH_PATTERN.search(text.casefold()) is not None


def empty_prayer_set() -> dict:
    return {name: None for name in PRAYER_NAMES}
